"""
=============================================================================
MODELS.PY — Every Database Model (Table)
=============================================================================
Each class here = one table in the database.
Each class attribute = one column of that table.

RELATIONSHIPS:
  USER
  ├── moods[]
  ├── exercise_completions[] ──→ exercise (catalog entry, optional)
  ├── journal_entries[]
  ├── goals[]
  ├── affirmations[]
  ├── user_achievements[] ──→ achievement (badge definition)
  ├── chat_messages[]
  └── assessments[]

Reference data (seeded at startup, not user-owned):
  EXERCISES (catalog) and ACHIEVEMENTS (badge definitions)
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, Text, Date, DateTime, ForeignKey, JSON,
    UniqueConstraint
)
from sqlalchemy.orm import relationship
from database import Base
import enum


# =============================================================================
# ===================== ENUMS =================================================
# =============================================================================

class MoodLabel(str, enum.Enum):
    """Mood vocabulary. Every entry also carries an intensity from 1 to 5."""
    happy = "happy"
    calm = "calm"
    neutral = "neutral"
    anxious = "anxious"
    sad = "sad"

class ExerciseType(str, enum.Enum):
    """Guided exercise families"""
    breathing = "breathing"
    mindfulness = "mindfulness"
    cognitive = "cognitive"
    gratitude = "gratitude"

class AffirmationFocus(str, enum.Enum):
    """Focus areas offered by the affirmation generator"""
    confidence = "confidence"
    calm = "calm"
    motivation = "motivation"
    self_love = "self-love"
    growth = "growth"
    resilience = "resilience"
    happiness = "happiness"
    forgiveness = "forgiveness"


# =============================================================================
# ===================== TABLE 1: USERS ========================================
# =============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # ── Identity ──
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)

    initial_assessment_completed = Column(Boolean, default=False)

    # ── Progression ──
    xp = Column(Integer, default=0, nullable=False)
    level = Column(Integer, default=1, nullable=False)
    # invariant: level == xp // 100 + 1
    current_streak = Column(Integer, default=0, nullable=False)
    # current_streak → consecutive calendar days with at least one exercise

    # ── Timestamps ──
    created_at = Column(DateTime, default=datetime.utcnow)
    last_active = Column(DateTime, default=datetime.utcnow)
    # last_active → moment of the last exercise completion (drives the streak)

    # ── Relationships ──
    moods = relationship("Mood", back_populates="user", cascade="all, delete-orphan")
    exercise_completions = relationship("ExerciseCompletion", back_populates="user", cascade="all, delete-orphan")
    journal_entries = relationship("JournalEntry", back_populates="user", cascade="all, delete-orphan")
    goals = relationship("Goal", back_populates="user", cascade="all, delete-orphan")
    affirmations = relationship("Affirmation", back_populates="user", cascade="all, delete-orphan")
    user_achievements = relationship("UserAchievement", back_populates="user", cascade="all, delete-orphan")
    chat_messages = relationship("ChatMessage", back_populates="user", cascade="all, delete-orphan")
    assessments = relationship("Assessment", back_populates="user", cascade="all, delete-orphan")


# =============================================================================
# ===================== TABLE 2: MOODS ========================================
# =============================================================================
# Append-only log. Several entries per day are allowed.

class Mood(Base):
    __tablename__ = "moods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    mood = Column(String(20), nullable=False)
    # mood → one of MoodLabel
    intensity = Column(Integer, nullable=False)
    # intensity → 1 (barely) to 5 (very strongly)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="moods")


# =============================================================================
# ===================== TABLE 3: EXERCISES (catalog) ==========================
# =============================================================================

class Exercise(Base):
    __tablename__ = "exercises"

    id = Column(Integer, primary_key=True, autoincrement=True)
    slug = Column(String(50), unique=True, nullable=False)
    # slug → "box-breathing", "thought-record"...
    title = Column(String(100), nullable=False)
    description = Column(String(300), nullable=False)
    type = Column(String(20), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    xp_reward = Column(Integer, default=0)
    icon = Column(String(10), default="🧘")


# =============================================================================
# ===================== TABLE 4: EXERCISE_COMPLETIONS =========================
# =============================================================================

class ExerciseCompletion(Base):
    __tablename__ = "exercise_completions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id"), nullable=True)
    # exercise_id → catalog entry, when the exercise came from the catalog

    type = Column(String(20), nullable=False)
    duration = Column(Integer, nullable=False)
    # duration → seconds actually spent
    notes = Column(Text, nullable=True)
    xp_earned = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="exercise_completions")
    exercise = relationship("Exercise")


# =============================================================================
# ===================== TABLE 5: JOURNAL_ENTRIES ==============================
# =============================================================================

class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    mood = Column(String(20), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="journal_entries")


# =============================================================================
# ===================== TABLE 6: GOALS ========================================
# =============================================================================

class Goal(Base):
    __tablename__ = "goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    target_date = Column(Date, nullable=True)

    progress = Column(Integer, default=0, nullable=False)
    # progress → 0 to 100 (percentage)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    completion_awarded = Column(Boolean, default=False)
    # completion_awarded → the completion bonus was already paid for this goal

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="goals")


# =============================================================================
# ===================== TABLE 7: AFFIRMATIONS =================================
# =============================================================================

class Affirmation(Base):
    __tablename__ = "affirmations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)
    category = Column(String(30), default="general", nullable=False)
    favorite = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="affirmations")


# =============================================================================
# ===================== TABLE 8: ACHIEVEMENTS =================================
# =============================================================================
# Badge definitions (defined by the system, not by the user)

class Achievement(Base):
    __tablename__ = "achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), unique=True, nullable=False)
    # code → "mood-master", "7-day-streak", "journal-master"...
    title = Column(String(100), nullable=False)
    description = Column(String(300), nullable=False)
    requirement = Column(String(300), nullable=False)
    icon = Column(String(10), default="🏆")
    xp_reward = Column(Integer, default=0)


# =============================================================================
# ===================== TABLE 9: USER_ACHIEVEMENTS ============================
# =============================================================================
# Badges unlocked by each user. At most one row per (user, badge).

class UserAchievement(Base):
    __tablename__ = "user_achievements"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    achievement_id = Column(Integer, ForeignKey("achievements.id"), nullable=False)
    unlocked_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'achievement_id', name='uq_user_achievement'),
    )

    user = relationship("User", back_populates="user_achievements")
    achievement = relationship("Achievement")


# =============================================================================
# ===================== TABLE 10: CHAT_MESSAGES ===============================
# =============================================================================
# Conversation order = creation order (ties broken by id).

class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    content = Column(Text, nullable=False)
    is_user_message = Column(Boolean, default=True)
    # is_user_message → True = written by the human, False = by the assistant

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="chat_messages")


# =============================================================================
# ===================== TABLE 11: ASSESSMENTS =================================
# =============================================================================

class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    answers = Column(JSON, nullable=False)
    # answers → {"1": 0, "2": 3, ...} question id → selected option value
    score = Column(Integer, nullable=False)
    # score → 0 to 100, higher = better wellbeing

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="assessments")


# Tables that belong to a user (have a user_id foreign key)
USER_OWNED_MODELS = (
    Mood, ExerciseCompletion, JournalEntry, Goal, Affirmation,
    UserAchievement, ChatMessage, Assessment,
)
