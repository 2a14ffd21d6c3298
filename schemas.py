"""
=============================================================================
SCHEMAS.PY — Validation Schemas (Pydantic)
=============================================================================
Models (SQLAlchemy) define the TABLES.
Schemas (Pydantic) define the DATA the API accepts and returns.
If a request body does not match → automatic 422 with a clear message.

Naming convention:
  XxxCreate   → to create something (POST)
  XxxUpdate   → to change something (PUT)
  XxxResponse → what the API returns (GET)
"""

from pydantic import BaseModel, Field, EmailStr, field_validator
from datetime import date, datetime
from typing import Optional

from models import MoodLabel, ExerciseType, AffirmationFocus


def _not_null(value):
    """For XxxUpdate fields that may be omitted but never set to null"""
    if value is None:
        raise ValueError("may be omitted but cannot be null")
    return value


# =============================================================================
# ===================== PROGRESSION ===========================================
# =============================================================================

class ProgressionResult(BaseModel):
    """What an XP-awarding action changed for the user"""
    xp_earned: int
    total_xp: int
    level: int
    leveled_up: bool
    level_title: str
    current_streak: int
    unlocked: list[str] = []


class LevelInfo(BaseModel):
    level: int
    xp: int
    xp_in_level: int
    xp_next_level: int
    xp_progress: float
    title: str


class ProgressResponse(BaseModel):
    level: LevelInfo
    current_streak: int
    last_active: Optional[datetime]
    badges_unlocked: int
    badges_total: int


# =============================================================================
# ===================== AUTH ==================================================
# =============================================================================

class UserRegister(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6, description="At least 6 characters")
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)

class UserLogin(BaseModel):
    username: str
    password: str

class UserResponse(BaseModel):
    """User data for the API (never includes the password)"""
    id: int
    username: str
    email: str
    first_name: str
    last_name: Optional[str] = None
    initial_assessment_completed: bool
    level: int
    xp: int
    current_streak: int
    last_active: Optional[datetime]
    created_at: datetime
    model_config = {"from_attributes": True}

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# =============================================================================
# ===================== ASSESSMENT ============================================
# =============================================================================

class AssessmentCreate(BaseModel):
    answers: dict[int, int]
    # answers → {question_id: selected option value}

class AssessmentResponse(BaseModel):
    id: int
    answers: dict[int, int]
    score: int
    label: str = ""
    created_at: datetime
    model_config = {"from_attributes": True}


# =============================================================================
# ===================== MOODS =================================================
# =============================================================================

class MoodCreate(BaseModel):
    mood: MoodLabel
    intensity: int = Field(ge=1, le=5)
    notes: Optional[str] = None

class MoodResponse(BaseModel):
    id: int
    mood: str
    intensity: int
    notes: Optional[str]
    created_at: datetime
    model_config = {"from_attributes": True}

class MoodLogged(BaseModel):
    mood: MoodResponse
    progress: ProgressionResult


# =============================================================================
# ===================== EXERCISES =============================================
# =============================================================================

class ExerciseResponse(BaseModel):
    """Catalog entry"""
    id: int
    slug: str
    title: str
    description: str
    type: str
    duration_minutes: int
    xp_reward: int
    icon: str
    model_config = {"from_attributes": True}

class ExerciseCompletionCreate(BaseModel):
    type: ExerciseType
    duration: int = Field(ge=1, description="Seconds spent on the exercise")
    exercise_id: Optional[int] = None
    notes: Optional[str] = None
    xp_earned: Optional[int] = Field(default=None, ge=0)
    # xp_earned → explicit XP; when absent, 10 XP per minute

class ExerciseCompletionResponse(BaseModel):
    id: int
    exercise_id: Optional[int]
    type: str
    duration: int
    notes: Optional[str]
    xp_earned: int
    created_at: datetime
    model_config = {"from_attributes": True}

class ExerciseCompleted(BaseModel):
    completion: ExerciseCompletionResponse
    progress: ProgressionResult


# =============================================================================
# ===================== JOURNAL ===============================================
# =============================================================================

class JournalEntryCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    mood: Optional[MoodLabel] = None

class JournalEntryResponse(BaseModel):
    id: int
    title: str
    content: str
    mood: Optional[str]
    created_at: datetime
    model_config = {"from_attributes": True}

class JournalEntryCreated(BaseModel):
    entry: JournalEntryResponse
    progress: ProgressionResult


# =============================================================================
# ===================== ACHIEVEMENTS ==========================================
# =============================================================================

class AchievementGrant(BaseModel):
    badge_id: str
    # badge_id → badge code, e.g. "breath-master"

class AchievementStatus(BaseModel):
    id: int
    code: str
    title: str
    description: str
    requirement: str
    icon: str
    xp_reward: int
    unlocked: bool
    unlocked_at: Optional[datetime] = None


# =============================================================================
# ===================== CHAT ==================================================
# =============================================================================

class ChatMessageCreate(BaseModel):
    message: str = Field(min_length=1, max_length=4000)

class ChatMessageResponse(BaseModel):
    id: int
    content: str
    is_user_message: bool
    created_at: datetime
    model_config = {"from_attributes": True}

class ChatReply(BaseModel):
    response: str
    message: ChatMessageResponse


# =============================================================================
# ===================== GOALS =================================================
# =============================================================================

class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    target_date: Optional[date] = None

class GoalUpdate(BaseModel):
    """Only the fields sent are changed. description/target_date may be cleared with null."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    target_date: Optional[date] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    completed: Optional[bool] = None

    reject_nulls = field_validator("title", "progress", "completed")(_not_null)

class GoalResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    target_date: Optional[date]
    progress: int
    completed: bool
    completed_at: Optional[datetime]
    created_at: datetime
    model_config = {"from_attributes": True}

class GoalSaved(BaseModel):
    goal: GoalResponse
    progress: Optional[ProgressionResult] = None


# =============================================================================
# ===================== AFFIRMATIONS ==========================================
# =============================================================================

class AffirmationCreate(BaseModel):
    content: str = Field(min_length=1, max_length=500)
    category: str = Field(default="general", max_length=30)
    favorite: bool = False

class AffirmationUpdate(BaseModel):
    content: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[str] = Field(default=None, max_length=30)
    favorite: Optional[bool] = None

    reject_nulls = field_validator("content", "category", "favorite")(_not_null)

class AffirmationGenerate(BaseModel):
    challenge: Optional[str] = Field(default=None, max_length=300)
    focus: AffirmationFocus = AffirmationFocus.confidence

class AffirmationResponse(BaseModel):
    id: int
    content: str
    category: str
    favorite: bool
    created_at: datetime
    model_config = {"from_attributes": True}

class AffirmationSaved(BaseModel):
    affirmation: AffirmationResponse
    progress: ProgressionResult


# =============================================================================
# ===================== WEEKLY REPORT =========================================
# =============================================================================

class ReportPeriod(BaseModel):
    start: datetime
    end: datetime

class MoodSummary(BaseModel):
    entries: int
    average: Optional[float]
    trend: str

class ExerciseSummary(BaseModel):
    count: int
    total_minutes: int
    by_type: dict[str, int]

class JournalSummary(BaseModel):
    count: int

class GoalSummary(BaseModel):
    total: int
    completed: int
    in_progress: int

class WeeklyReportResponse(BaseModel):
    period: ReportPeriod
    mood_data: MoodSummary
    exercise_data: ExerciseSummary
    journal_data: JournalSummary
    goal_data: GoalSummary
    insights: list[str]
