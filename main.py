"""
=============================================================================
MAIN.PY — The MindWell API
=============================================================================
Defines EVERY endpoint of the REST API (prefix /api).

Sections:
  1. AUTH          → Register, login, logout, profile
  2. ASSESSMENT    → Wellness questionnaire
  3. MOODS         → Mood check-ins
  4. EXERCISES     → Catalog and completions
  5. JOURNAL       → Journal entries
  6. ACHIEVEMENTS  → Badges
  7. CHAT          → AI assistant
  8. GOALS         → CRUD of goals
  9. AFFIRMATIONS  → CRUD + generation
  10. PROGRESS     → Level, streak, weekly report

Every write that earns XP calls the Progression Engine (gamification.py)
exactly once per logical event. The record and its XP are committed in the
same transaction, under the user's progression lock: either both are saved
or neither is.
"""

import os
import logging
import traceback
from datetime import datetime, timedelta
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db, init_db, SessionLocal
from models import (
    User, Mood, Exercise, ExerciseCompletion, JournalEntry, Goal,
    Affirmation, Achievement, UserAchievement, Assessment
)
from schemas import *
from errors import MindWellError, NotFoundError, UnauthorizedError
from storage import RecordStore
from auth import hash_password, verify_password, create_access_token, get_current_user
from gamification import (
    seed_achievements, seed_exercises, get_level_info, exercise_xp,
    award_for_mood, award_for_journal, award_for_goal_creation,
    award_for_goal_completion, award_for_exercise, award_for_achievement,
    award_for_affirmation, user_lock
)
from assessment import QUESTIONS, score, wellness_label
from reports import weekly_report
from chatbot import (
    ChatProvider, get_chat_provider, generate_chat_reply, chat_history,
    generate_affirmation_text
)

# ─────────────────────────────────────────────────────────────────────────────
# LOGGING
# ─────────────────────────────────────────────────────────────────────────────

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s"
)
logger = logging.getLogger("mindwell.api")

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")
SEED_DEMO_USER = os.getenv("MINDWELL_SEED_DEMO_USER", "").lower() in ("1", "true", "yes")


# ─────────────────────────────────────────────────────────────────────────────
# LIFESPAN (startup and shutdown)
# ─────────────────────────────────────────────────────────────────────────────

def seed_demo_user(db: Session):
    """Creates the 'demo' account with a little history, once"""
    store = RecordStore(db)
    if store.get_user_by_username("demo"):
        return

    user = store.create(
        User,
        username="demo",
        password_hash=hash_password("password123"),
        first_name="Demo",
        last_name="User",
        email="demo@example.com",
        initial_assessment_completed=True,
    )
    answers = {q["id"]: 1 for q in QUESTIONS}
    store.create(Assessment, user_id=user.id, answers={str(k): v for k, v in answers.items()},
                 score=score(answers))
    store.create(Mood, user_id=user.id, mood="happy", intensity=4, notes="Feeling good today")
    store.create(JournalEntry, user_id=user.id, title="First day",
                 content="This is my first journal entry in the app. Looking forward to tracking my progress!")
    logger.info(f"👤 Demo user created with id {user.id}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      1. Create the tables
      2. Seed reference data (badges, exercise catalog)
      3. Optionally seed the demo account
    """
    logger.info("🚀 Starting MindWell...")

    init_db()
    db = SessionLocal()
    try:
        seed_achievements(db)
        seed_exercises(db)
        if SEED_DEMO_USER:
            seed_demo_user(db)
    finally:
        db.close()

    logger.info("🎉 MindWell is up")
    yield
    logger.info("👋 MindWell stopped")


# ─────────────────────────────────────────────────────────────────────────────
# FASTAPI APPLICATION
# ─────────────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="MindWell API",
    description="Mood tracking, guided CBT exercises, journaling, goals and an AI assistant",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─────────────────────────────────────────────────────────────────────────────
# ERROR HANDLERS
# ─────────────────────────────────────────────────────────────────────────────

@app.exception_handler(MindWellError)
async def mindwell_error_handler(request: Request, exc: MindWellError):
    """Domain errors → their own status code and message"""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unhandled errors are logged with their traceback and reported as 500"""
    logger.error(f"❌ Unhandled error at {request.url}: {exc}\n{traceback.format_exc()}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": type(exc).__name__,
            "path": str(request.url.path)
        }
    )


def _get_owned(store: RecordStore, model, record_id: int, user: User, what: str):
    """Record by id, only if it belongs to the current user"""
    record = store.get_by_id(model, record_id)
    if record.user_id != user.id:
        raise UnauthorizedError.not_owner(what)
    return record


# =============================================================================
# ===================== HEALTH CHECK ==========================================
# =============================================================================

@app.get("/", tags=["Health"])
def health_check():
    return {
        "status": "ok",
        "app": "MindWell",
        "version": "1.0.0",
        "timestamp": datetime.utcnow().isoformat()
    }


# =============================================================================
# ===================== SECTION 1: AUTH =======================================
# =============================================================================

@app.post("/api/auth/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED, tags=["Auth"])
def register(data: UserRegister, db: Session = Depends(get_db)):
    """Creates the account (409 on duplicate username/email) and opens a session"""
    user = RecordStore(db).create(
        User,
        username=data.username,
        email=data.email,
        password_hash=hash_password(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
    )
    logger.info(f"👤 New user registered: {user.username}")
    return TokenResponse(
        access_token=create_access_token(user.id, user.username),
        user=UserResponse.model_validate(user),
    )


@app.post("/api/auth/login", response_model=TokenResponse, tags=["Auth"])
def login(data: UserLogin, db: Session = Depends(get_db)):
    user = RecordStore(db).get_user_by_username(data.username)
    if not user or not verify_password(data.password, user.password_hash):
        raise UnauthorizedError("Invalid username or password")

    return TokenResponse(
        access_token=create_access_token(user.id, user.username),
        user=UserResponse.model_validate(user),
    )


@app.post("/api/auth/logout", tags=["Auth"])
def logout(user: User = Depends(get_current_user)):
    """Tokens are stateless: the client drops its token"""
    logger.info(f"👋 {user.username} logged out")
    return {"message": "Successfully logged out"}


@app.get("/api/auth/me", response_model=UserResponse, tags=["Auth"])
def get_me(user: User = Depends(get_current_user)):
    return user


# =============================================================================
# ===================== SECTION 2: ASSESSMENT =================================
# =============================================================================

def _assessment_out(assessment: Assessment) -> AssessmentResponse:
    return AssessmentResponse(
        id=assessment.id,
        answers=assessment.answers,
        score=assessment.score,
        label=wellness_label(assessment.score),
        created_at=assessment.created_at,
    )


@app.get("/api/assessment/questions", tags=["Assessment"])
def get_assessment_questions(user: User = Depends(get_current_user)):
    return QUESTIONS


@app.post("/api/assessment", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED,
          tags=["Assessment"])
def submit_assessment(data: AssessmentCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Scores the questionnaire on the server. Every question must be answered."""
    store = RecordStore(db)
    result = score(data.answers)
    assessment = store.create(
        Assessment,
        user_id=user.id,
        answers={str(k): v for k, v in data.answers.items()},
        score=result,
    )
    if not user.initial_assessment_completed:
        store.update(User, user.id, initial_assessment_completed=True)
    return _assessment_out(assessment)


@app.get("/api/assessment", response_model=list[AssessmentResponse], tags=["Assessment"])
def list_assessments(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [_assessment_out(a) for a in RecordStore(db).list_by_user_id(Assessment, user.id)]


@app.get("/api/assessment/latest", response_model=AssessmentResponse, tags=["Assessment"])
def latest_assessment(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    assessment = RecordStore(db).latest_by_user_id(Assessment, user.id)
    if assessment is None:
        raise NotFoundError("No assessments found")
    return _assessment_out(assessment)


# =============================================================================
# ===================== SECTION 3: MOODS ======================================
# =============================================================================

@app.post("/api/moods", response_model=MoodLogged, status_code=status.HTTP_201_CREATED, tags=["Moods"])
def log_mood(data: MoodCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with user_lock(user.id):
        mood = RecordStore(db).create(
            Mood, commit=False, user_id=user.id, mood=data.mood.value, intensity=data.intensity, notes=data.notes
        )
        progress = award_for_mood(db, user.id)
    return {"mood": mood, "progress": progress}


@app.get("/api/moods", response_model=list[MoodResponse], tags=["Moods"])
def list_moods(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Mood history, newest first"""
    return RecordStore(db).list_by_user_id(Mood, user.id)


@app.get("/api/moods/latest", response_model=MoodResponse, tags=["Moods"])
def latest_mood(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    mood = RecordStore(db).latest_by_user_id(Mood, user.id)
    if mood is None:
        raise NotFoundError("No mood entries found")
    return mood


# =============================================================================
# ===================== SECTION 4: EXERCISES ==================================
# =============================================================================

@app.get("/api/exercises/catalog", response_model=list[ExerciseResponse], tags=["Exercises"])
def list_catalog(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Exercise).order_by(Exercise.id).all()


@app.get("/api/exercises/catalog/type/{exercise_type}", response_model=list[ExerciseResponse], tags=["Exercises"])
def list_catalog_by_type(exercise_type: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(Exercise).filter(Exercise.type == exercise_type).order_by(Exercise.id).all()


@app.get("/api/exercises/catalog/{exercise_id}", response_model=ExerciseResponse, tags=["Exercises"])
def get_catalog_exercise(exercise_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return RecordStore(db).get_by_id(Exercise, exercise_id)


@app.post("/api/exercises", response_model=ExerciseCompleted, status_code=status.HTTP_201_CREATED,
          tags=["Exercises"])
def complete_exercise(
    data: ExerciseCompletionCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Records a finished exercise.
    XP = xp_earned when given, otherwise 10 XP per minute of duration.
    Also moves the daily streak and checks the exercise badges.
    """
    store = RecordStore(db)
    if data.exercise_id is not None:
        store.get_by_id(Exercise, data.exercise_id)

    xp = exercise_xp(data.duration, data.xp_earned)
    with user_lock(user.id):
        completion = store.create(
            ExerciseCompletion,
            commit=False,
            user_id=user.id,
            exercise_id=data.exercise_id,
            type=data.type.value,
            duration=data.duration,
            notes=data.notes,
            xp_earned=xp,
        )
        progress = award_for_exercise(db, user.id, data.duration, explicit_xp=xp)
    return {"completion": completion, "progress": progress}


@app.get("/api/exercises", response_model=list[ExerciseCompletionResponse], tags=["Exercises"])
def list_completions(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Completed exercises, newest first"""
    return RecordStore(db).list_by_user_id(ExerciseCompletion, user.id)


@app.get("/api/exercises/recent", response_model=list[ExerciseCompletionResponse], tags=["Exercises"])
def list_recent_completions(
    days: int = Query(default=7, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    since = datetime.utcnow() - timedelta(days=days)
    return RecordStore(db).list_by_user_id(ExerciseCompletion, user.id, since=since)


# =============================================================================
# ===================== SECTION 5: JOURNAL ====================================
# =============================================================================

@app.post("/api/journals", response_model=JournalEntryCreated, status_code=status.HTTP_201_CREATED,
          tags=["Journal"])
def create_journal_entry(data: JournalEntryCreate, user: User = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    with user_lock(user.id):
        entry = RecordStore(db).create(
            JournalEntry, commit=False, user_id=user.id, title=data.title, content=data.content,
            mood=data.mood.value if data.mood else None
        )
        progress = award_for_journal(db, user.id)
    return {"entry": entry, "progress": progress}


@app.get("/api/journals", response_model=list[JournalEntryResponse], tags=["Journal"])
def list_journal_entries(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return RecordStore(db).list_by_user_id(JournalEntry, user.id)


@app.get("/api/journals/{entry_id}", response_model=JournalEntryResponse, tags=["Journal"])
def get_journal_entry(entry_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return _get_owned(RecordStore(db), JournalEntry, entry_id, user, "this entry")


# =============================================================================
# ===================== SECTION 6: ACHIEVEMENTS ===============================
# =============================================================================

@app.get("/api/achievements", response_model=list[AchievementStatus], tags=["Achievements"])
def list_achievements(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Every badge, unlocked or not"""
    user_achievements = db.query(UserAchievement).filter(UserAchievement.user_id == user.id).all()
    unlocked_map = {ua.achievement_id: ua.unlocked_at for ua in user_achievements}

    return [
        AchievementStatus(
            id=ach.id,
            code=ach.code,
            title=ach.title,
            description=ach.description,
            requirement=ach.requirement,
            icon=ach.icon,
            xp_reward=ach.xp_reward,
            unlocked=ach.id in unlocked_map,
            unlocked_at=unlocked_map.get(ach.id),
        )
        for ach in db.query(Achievement).order_by(Achievement.id).all()
    ]


@app.post("/api/achievements", tags=["Achievements"])
def grant_achievement(data: AchievementGrant, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Grants a badge. Granting it again changes nothing."""
    progress = award_for_achievement(db, user.id, data.badge_id)
    return {
        "badge_id": data.badge_id,
        "newly_unlocked": data.badge_id in progress["unlocked"],
        "progress": progress,
    }


# =============================================================================
# ===================== SECTION 7: CHAT =======================================
# =============================================================================

@app.post("/api/chat", response_model=ChatReply, tags=["Chat"])
def send_chat_message(
    data: ChatMessageCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: Optional[ChatProvider] = Depends(get_chat_provider),
):
    """One conversation turn. Always answers, with canned text if the AI is down."""
    reply = generate_chat_reply(db, user.id, data.message, provider)
    return {"response": reply.content, "message": reply}


@app.get("/api/chat", response_model=list[ChatMessageResponse], tags=["Chat"])
def get_chat_history(
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Conversation in chronological order"""
    return chat_history(db, user.id, limit=limit)


# =============================================================================
# ===================== SECTION 8: GOALS ======================================
# =============================================================================

@app.post("/api/goals", response_model=GoalSaved, status_code=status.HTTP_201_CREATED, tags=["Goals"])
def create_goal(data: GoalCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    with user_lock(user.id):
        goal = RecordStore(db).create(
            Goal, commit=False, user_id=user.id, title=data.title, description=data.description,
            target_date=data.target_date
        )
        progress = award_for_goal_creation(db, user.id)
    return {"goal": goal, "progress": progress}


@app.get("/api/goals", response_model=list[GoalResponse], tags=["Goals"])
def list_goals(
    completed: Optional[bool] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    store = RecordStore(db)
    if completed is None:
        return store.list_by_user_id(Goal, user.id)
    return store.list_by_user_id(Goal, user.id, completed=completed)


@app.put("/api/goals/{goal_id}", response_model=GoalSaved, tags=["Goals"])
def update_goal(
    goal_id: int, data: GoalUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """
    Updates a goal. Completing it pays +30 XP the first time only;
    un-completing it is allowed but never pays back or charges XP.
    """
    store = RecordStore(db)
    goal = _get_owned(store, Goal, goal_id, user, "this goal")

    update_data = data.model_dump(exclude_unset=True)
    completed = update_data.pop("completed", None)
    if completed is False:
        update_data["completed"] = False
        update_data["completed_at"] = None
    if update_data:
        goal = store.update(Goal, goal.id, **update_data)

    progress = None
    if completed:
        progress = award_for_goal_completion(db, user.id, goal.id)
        goal = store.get_by_id(Goal, goal.id)
    return {"goal": goal, "progress": progress}


@app.delete("/api/goals/{goal_id}", tags=["Goals"])
def delete_goal(goal_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = RecordStore(db)
    goal = _get_owned(store, Goal, goal_id, user, "this goal")
    title = goal.title
    store.delete(Goal, goal.id)
    return {"message": f"Goal '{title}' deleted"}


# =============================================================================
# ===================== SECTION 9: AFFIRMATIONS ===============================
# =============================================================================

@app.post("/api/affirmations", response_model=AffirmationSaved, status_code=status.HTTP_201_CREATED,
          tags=["Affirmations"])
def create_affirmation(data: AffirmationCreate, user: User = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    with user_lock(user.id):
        affirmation = RecordStore(db).create(
            Affirmation, commit=False, user_id=user.id, content=data.content, category=data.category,
            favorite=data.favorite
        )
        progress = award_for_affirmation(db, user.id)
    return {"affirmation": affirmation, "progress": progress}


@app.post("/api/affirmations/generate", response_model=AffirmationSaved, status_code=status.HTTP_201_CREATED,
          tags=["Affirmations"])
def generate_affirmation(
    data: AffirmationGenerate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    provider: Optional[ChatProvider] = Depends(get_chat_provider),
):
    """Writes a personalised affirmation (AI or canned) and saves it"""
    content = generate_affirmation_text(data.challenge, data.focus.value, provider)
    with user_lock(user.id):
        affirmation = RecordStore(db).create(
            Affirmation, commit=False, user_id=user.id, content=content, category=data.focus.value
        )
        progress = award_for_affirmation(db, user.id)
    return {"affirmation": affirmation, "progress": progress}


@app.get("/api/affirmations", response_model=list[AffirmationResponse], tags=["Affirmations"])
def list_affirmations(
    favorite: Optional[bool] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    store = RecordStore(db)
    if favorite is None:
        return store.list_by_user_id(Affirmation, user.id)
    return store.list_by_user_id(Affirmation, user.id, favorite=favorite)


@app.put("/api/affirmations/{affirmation_id}", response_model=AffirmationResponse, tags=["Affirmations"])
def update_affirmation(
    affirmation_id: int, data: AffirmationUpdate,
    user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    store = RecordStore(db)
    affirmation = _get_owned(store, Affirmation, affirmation_id, user, "this affirmation")
    update_data = data.model_dump(exclude_unset=True)
    if not update_data:
        return affirmation
    return store.update(Affirmation, affirmation.id, **update_data)


@app.delete("/api/affirmations/{affirmation_id}", tags=["Affirmations"])
def delete_affirmation(affirmation_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    store = RecordStore(db)
    affirmation = _get_owned(store, Affirmation, affirmation_id, user, "this affirmation")
    store.delete(Affirmation, affirmation.id)
    return {"message": "Affirmation deleted"}


# =============================================================================
# ===================== SECTION 10: PROGRESS & REPORTS ========================
# =============================================================================

@app.get("/api/progress", response_model=ProgressResponse, tags=["Progress"])
def get_progress(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {
        "level": get_level_info(user),
        "current_streak": user.current_streak,
        "last_active": user.last_active,
        "badges_unlocked": RecordStore(db).count_by_user_id(UserAchievement, user.id),
        "badges_total": db.query(Achievement).count(),
    }


@app.get("/api/reports/weekly", response_model=WeeklyReportResponse, tags=["Progress"])
def get_weekly_report(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Summary of the last 7 days, computed on demand"""
    return weekly_report(db, user.id)
