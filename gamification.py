"""
=============================================================================
GAMIFICATION.PY — Progression Engine
=============================================================================
The ONLY place where XP, level and streak arithmetic happens:
  - XP (experience points) for every qualifying action
  - Levels (level = xp // 100 + 1, never decreasing)
  - Daily exercise streak
  - Badges (achievements), unlocked at most once per user

Every award_for_* function is one read-modify-write of the user, serialised
per user and committed as a single transaction. If anything fails halfway,
the transaction is rolled back so xp and level never disagree.

Each award_for_* returns a summary dict:
  {
    "xp_earned": 10,          # XP of the event itself
    "total_xp": 195,          # XP after the event (badge XP included)
    "level": 2,
    "leveled_up": True,
    "level_title": "Sprout",
    "current_streak": 7,
    "unlocked": ["7-day-streak"]
  }
"""

import logging
import math
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from errors import NotFoundError
from models import (
    User, Mood, ExerciseCompletion, JournalEntry, Goal, Exercise,
    Achievement, UserAchievement
)

logger = logging.getLogger("mindwell.gamification")


# =============================================================================
# ===================== LEVEL SYSTEM ==========================================
# =============================================================================
# Flat thresholds: every 100 XP is one level.
# Level 1 → 0-99 XP, Level 2 → 100-199 XP, Level 10 → 900-999 XP...

XP_PER_LEVEL = 100

LEVEL_TITLES = {
    1: "Seedling",
    2: "Sprout",
    3: "Explorer",
    5: "Steady Mind",
    7: "Balanced",
    10: "Resilient",
    15: "Mindful Guide",
    20: "Zen Master",
    30: "Enlightened",
}


def get_level_title(level: int) -> str:
    """Title that corresponds to the user's level"""
    title = LEVEL_TITLES[1]
    for lvl, name in sorted(LEVEL_TITLES.items()):
        if level >= lvl:
            title = name
    return title


def calculate_level(total_xp: int) -> int:
    """Level for a given amount of accumulated XP"""
    return total_xp // XP_PER_LEVEL + 1


def get_level_info(user: User) -> dict:
    """Full level information for the progress screen"""
    xp_in_level = user.xp - (user.level - 1) * XP_PER_LEVEL
    return {
        "level": user.level,
        "xp": user.xp,
        "xp_in_level": xp_in_level,
        "xp_next_level": XP_PER_LEVEL,
        "xp_progress": round((xp_in_level / XP_PER_LEVEL) * 100, 1),
        "title": get_level_title(user.level),
    }


# =============================================================================
# ===================== XP SYSTEM =============================================
# =============================================================================

XP_REWARDS = {
    "mood_log": 10,          # Log a mood
    "journal_entry": 15,     # Write a journal entry
    "goal_created": 15,      # Create a goal
    "goal_completed": 30,    # Complete a goal (once per goal)
    "achievement": 25,       # Unlock a badge (once per badge)
    "affirmation": 10,       # Save or generate an affirmation
}

XP_PER_EXERCISE_MINUTE = 10


def exercise_xp(duration_seconds: int, explicit_xp: Optional[int] = None) -> int:
    """
    XP for an exercise: the caller's explicit amount when given, otherwise
    10 XP per minute with fractional minutes rounded half up.
    """
    if explicit_xp is not None:
        return explicit_xp
    return int(math.floor(duration_seconds / 60 * XP_PER_EXERCISE_MINUTE + 0.5))


def _apply_xp(user: User, amount: int) -> bool:
    """Adds XP and recomputes the level. Returns True on level-up."""
    user.xp = (user.xp or 0) + amount
    new_level = calculate_level(user.xp)
    if new_level > user.level:
        user.level = new_level
        logger.info(f"⬆️ {user.username} reached level {new_level} ({get_level_title(new_level)})")
        return True
    return False


# =============================================================================
# ===================== PER-USER SERIALISATION ================================
# =============================================================================

# Fixed pool of re-entrant locks: a user always maps to the same stripe,
# two users may share one.
LOCK_STRIPES = 64
_user_locks = tuple(threading.RLock() for _ in range(LOCK_STRIPES))


def user_lock(user_id: int) -> threading.RLock:
    """The lock that serialises progression updates of one user"""
    return _user_locks[user_id % LOCK_STRIPES]


@contextmanager
def _progression_update(db: Session, user_id: int):
    """
    Locks the user, re-reads it from the database and commits on exit.
    Any exception rolls back everything done inside the block.
    """
    with user_lock(user_id):
        user = (
            db.query(User)
            .filter(User.id == user_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        try:
            yield user
            db.commit()
        except Exception:
            db.rollback()
            raise


def _summary(user: User, xp_earned: int, start_level: int, unlocked: list) -> dict:
    return {
        "xp_earned": xp_earned,
        "total_xp": user.xp,
        "level": user.level,
        "leveled_up": user.level > start_level,
        "level_title": get_level_title(user.level),
        "current_streak": user.current_streak,
        "unlocked": [a.code for a in unlocked],
    }


def _award(db: Session, user_id: int, xp: int, event: Optional[str], now: Optional[datetime]) -> dict:
    now = now or datetime.utcnow()
    with _progression_update(db, user_id) as user:
        start_level = user.level
        _apply_xp(user, xp)
        unlocked = check_and_unlock_achievements(db, user, event, now) if event else []
        return _summary(user, xp, start_level, unlocked)


# ─────────────────────────────────────────────────────────────────────────────
# PUBLIC OPERATIONS (one call per logical event)
# ─────────────────────────────────────────────────────────────────────────────

def award_for_mood(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    return _award(db, user_id, XP_REWARDS["mood_log"], "mood", now)


def award_for_journal(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    return _award(db, user_id, XP_REWARDS["journal_entry"], "journal", now)


def award_for_goal_creation(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    return _award(db, user_id, XP_REWARDS["goal_created"], None, now)


def award_for_affirmation(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    return _award(db, user_id, XP_REWARDS["affirmation"], None, now)


def award_for_goal_completion(db: Session, user_id: int, goal_id: int, now: Optional[datetime] = None) -> dict:
    """
    Marks the goal as completed. The +30 XP bonus is paid only the first time
    the goal ever becomes completed; re-saving a completed goal pays nothing.
    """
    now = now or datetime.utcnow()
    with _progression_update(db, user_id) as user:
        goal = (
            db.query(Goal)
            .filter(Goal.id == goal_id, Goal.user_id == user_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if goal is None:
            raise NotFoundError(f"Goal {goal_id} not found")

        start_level = user.level
        if not goal.completed:
            goal.completed = True
            goal.completed_at = now
            goal.progress = 100

        xp = 0
        if not goal.completion_awarded:
            goal.completion_awarded = True
            xp = XP_REWARDS["goal_completed"]
            _apply_xp(user, xp)
            logger.info(f"🎯 {user.username} completed goal '{goal.title}'")

        return _summary(user, xp, start_level, [])


def award_for_exercise(
    db: Session,
    user_id: int,
    duration_seconds: int,
    explicit_xp: Optional[int] = None,
    now: Optional[datetime] = None,
) -> dict:
    """XP for the exercise, streak update, then badge checks"""
    now = now or datetime.utcnow()
    xp = exercise_xp(duration_seconds, explicit_xp)
    with _progression_update(db, user_id) as user:
        start_level = user.level
        _apply_xp(user, xp)
        update_streak(user, now)
        unlocked = check_and_unlock_achievements(db, user, "exercise", now)
        return _summary(user, xp, start_level, unlocked)


def award_for_achievement(db: Session, user_id: int, badge_code: str, now: Optional[datetime] = None) -> dict:
    """Grants a badge directly. Granting one the user already holds is a no-op."""
    now = now or datetime.utcnow()
    achievement = db.query(Achievement).filter(Achievement.code == badge_code).first()
    if achievement is None:
        raise NotFoundError(f"Badge '{badge_code}' does not exist")

    with _progression_update(db, user_id) as user:
        start_level = user.level
        unlocked = _unlock(db, user, achievement, now)
        if unlocked is None:
            return _summary(user, 0, start_level, [])
        return _summary(user, XP_REWARDS["achievement"], start_level, [unlocked])


# =============================================================================
# ===================== STREAK SYSTEM =========================================
# =============================================================================

def update_streak(user: User, now: datetime):
    """
    Daily exercise streak, by calendar date:
      - no streak yet            → 1
      - already active today     → unchanged
      - last active yesterday    → +1
      - last active before that  → back to 1
    last_active always moves to now.
    """
    today = now.date()
    last_day = user.last_active.date() if user.last_active else None

    if not user.current_streak or last_day is None:
        user.current_streak = 1
    elif last_day == today:
        pass
    elif last_day == today - timedelta(days=1):
        user.current_streak += 1
    elif last_day < today:
        user.current_streak = 1

    user.last_active = now


# =============================================================================
# ===================== ACHIEVEMENT SYSTEM ====================================
# =============================================================================

ACHIEVEMENTS_DEFINITIONS = [
    {"code": "mood-master", "title": "Mood Master", "icon": "😊",
     "description": "Check in with your mood every day for a week",
     "requirement": "Log a mood on 7 consecutive days"},
    {"code": "7-day-streak", "title": "7-Day Streak", "icon": "⚡",
     "description": "Keep your exercise streak alive for a full week",
     "requirement": "Reach a 7-day exercise streak"},
    {"code": "journal-master", "title": "Journal Master", "icon": "📖",
     "description": "Make journaling a habit",
     "requirement": "Write 5 journal entries"},
    {"code": "mindfulness", "title": "Mindfulness", "icon": "🧠",
     "description": "Take your first mindful pause",
     "requirement": "Complete 1 mindfulness exercise"},
    {"code": "breath-master", "title": "Breath Master", "icon": "🌬️",
     "description": "Learn to calm yourself with your breath",
     "requirement": "Complete 3 breathing exercises"},
    {"code": "cbt-champion", "title": "CBT Champion", "icon": "🏆",
     "description": "Challenge and reframe your thinking",
     "requirement": "Complete 5 cognitive exercises"},
]

# Which events can change each badge's requirement
BADGE_TRIGGERS = {
    "mood": ["mood-master"],
    "journal": ["journal-master"],
    "exercise": ["7-day-streak", "mindfulness", "breath-master", "cbt-champion"],
}


def seed_achievements(db: Session):
    """Inserts the badge definitions that are missing. Runs at startup."""
    for ach_def in ACHIEVEMENTS_DEFINITIONS:
        existing = db.query(Achievement).filter(Achievement.code == ach_def["code"]).first()
        if not existing:
            db.add(Achievement(
                code=ach_def["code"],
                title=ach_def["title"],
                description=ach_def["description"],
                requirement=ach_def["requirement"],
                icon=ach_def["icon"],
                xp_reward=XP_REWARDS["achievement"],
            ))
    db.commit()
    logger.info(f"✅ {len(ACHIEVEMENTS_DEFINITIONS)} badges verified")


def longest_mood_run(db: Session, user_id: int) -> int:
    """Longest run of consecutive calendar days with at least one mood entry"""
    days = sorted({
        row.created_at.date()
        for row in db.query(Mood.created_at).filter(Mood.user_id == user_id).all()
        if row.created_at
    })
    longest = run = 0
    previous = None
    for day in days:
        run = run + 1 if previous and day - previous == timedelta(days=1) else 1
        longest = max(longest, run)
        previous = day
    return longest


def _exercise_count(db: Session, user_id: int, exercise_type: str) -> int:
    return db.query(ExerciseCompletion).filter(
        ExerciseCompletion.user_id == user_id,
        ExerciseCompletion.type == exercise_type
    ).count()


BADGE_REQUIREMENTS = {
    "mood-master": lambda db, user: longest_mood_run(db, user.id) >= 7,
    "7-day-streak": lambda db, user: user.current_streak >= 7,
    "journal-master": lambda db, user: db.query(JournalEntry).filter(
        JournalEntry.user_id == user.id).count() >= 5,
    "mindfulness": lambda db, user: _exercise_count(db, user.id, "mindfulness") >= 1,
    "breath-master": lambda db, user: _exercise_count(db, user.id, "breathing") >= 3,
    "cbt-champion": lambda db, user: _exercise_count(db, user.id, "cognitive") >= 5,
}


def check_and_unlock_achievements(
    db: Session, user: User, event: Optional[str] = None, now: Optional[datetime] = None
) -> list[Achievement]:
    """
    Re-checks the badges the user does not hold yet. With an event, only the
    badges that event can affect are checked; without one, all of them.
    Returns the badges unlocked by this call.
    """
    now = now or datetime.utcnow()
    codes = BADGE_TRIGGERS.get(event, []) if event else list(BADGE_REQUIREMENTS)

    unlocked_ids = {
        ua.achievement_id for ua in
        db.query(UserAchievement).filter(UserAchievement.user_id == user.id).all()
    }

    newly_unlocked = []
    for code in codes:
        achievement = db.query(Achievement).filter(Achievement.code == code).first()
        if achievement is None or achievement.id in unlocked_ids:
            continue
        if BADGE_REQUIREMENTS[code](db, user):
            unlocked = _unlock(db, user, achievement, now)
            if unlocked:
                newly_unlocked.append(unlocked)
    return newly_unlocked


def _unlock(db: Session, user: User, achievement: Achievement, now: datetime) -> Optional[Achievement]:
    """Creates the user-badge row and pays its XP. None if already unlocked."""
    existing = db.query(UserAchievement).filter(
        UserAchievement.user_id == user.id,
        UserAchievement.achievement_id == achievement.id
    ).first()
    if existing:
        return None

    db.add(UserAchievement(user_id=user.id, achievement_id=achievement.id, unlocked_at=now))
    db.flush()
    _apply_xp(user, XP_REWARDS["achievement"])

    logger.info(f"🏆 {user.username} unlocked: {achievement.title}")
    return achievement


# =============================================================================
# ===================== EXERCISE CATALOG ======================================
# =============================================================================

EXERCISE_CATALOG = [
    {"slug": "cognitive", "title": "Cognitive Restructuring", "type": "cognitive", "minutes": 5, "icon": "🧩",
     "description": "Challenge and reframe negative thoughts with this guided exercise."},
    {"slug": "breathing", "title": "Breathing Exercise", "type": "breathing", "minutes": 3, "icon": "🌬️",
     "description": "Calm your mind with deep breathing techniques to reduce anxiety."},
    {"slug": "gratitude", "title": "Gratitude Practice", "type": "gratitude", "minutes": 7, "icon": "🙏",
     "description": "Focus on positive aspects of your life to improve your mood."},
    {"slug": "mindfulness", "title": "Mindfulness Meditation", "type": "mindfulness", "minutes": 10, "icon": "🧘",
     "description": "Practice being present in the moment to reduce stress and anxiety."},
    {"slug": "progressive-relaxation", "title": "Progressive Muscle Relaxation", "type": "mindfulness",
     "minutes": 12, "icon": "💆",
     "description": "Tense and relax each muscle group to reduce physical tension."},
    {"slug": "thought-record", "title": "Thought Record", "type": "cognitive", "minutes": 8, "icon": "📝",
     "description": "Record and analyze your thoughts to identify thinking patterns."},
    {"slug": "values-clarification", "title": "Values Clarification", "type": "cognitive", "minutes": 15,
     "icon": "🧭",
     "description": "Identify your core values to guide your actions and decisions."},
    {"slug": "box-breathing", "title": "Box Breathing", "type": "breathing", "minutes": 5, "icon": "⬛",
     "description": "A structured breathing technique to reduce stress and anxiety."},
]


def seed_exercises(db: Session):
    """Inserts the catalog exercises that are missing. Runs at startup."""
    for ex in EXERCISE_CATALOG:
        existing = db.query(Exercise).filter(Exercise.slug == ex["slug"]).first()
        if not existing:
            db.add(Exercise(
                slug=ex["slug"],
                title=ex["title"],
                description=ex["description"],
                type=ex["type"],
                duration_minutes=ex["minutes"],
                xp_reward=ex["minutes"] * XP_PER_EXERCISE_MINUTE,
                icon=ex["icon"],
            ))
    db.commit()
    logger.info(f"✅ {len(EXERCISE_CATALOG)} catalog exercises verified")
