from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import gamification
from database import Base
from errors import NotFoundError
from gamification import (
    calculate_level, get_level_title, get_level_info, exercise_xp, update_streak,
    award_for_mood, award_for_journal, award_for_exercise, award_for_achievement,
    award_for_goal_creation, award_for_goal_completion, award_for_affirmation,
    longest_mood_run, seed_achievements, user_lock, LOCK_STRIPES, XP_REWARDS
)
from models import User, Mood, Goal, JournalEntry, ExerciseCompletion
from storage import RecordStore

NOW = datetime(2026, 3, 10, 12, 0)


# ── Levels and XP ──

@pytest.mark.parametrize("xp,level", [(0, 1), (99, 1), (100, 2), (195, 2), (999, 10), (1000, 11)])
def test_calculate_level(xp, level):
    assert calculate_level(xp) == level


def test_level_titles():
    assert get_level_title(1) == "Seedling"
    assert get_level_title(4) == "Explorer"
    assert get_level_title(12) == "Resilient"
    assert get_level_title(99) == "Enlightened"


def test_exercise_xp_rounds_half_up():
    assert exercise_xp(600) == 100
    assert exercise_xp(90) == 15
    assert exercise_xp(3) == 1     # 0.5 XP → 1
    assert exercise_xp(2) == 0
    assert exercise_xp(600, explicit_xp=7) == 7


def test_level_info(make_user, store):
    user = make_user()
    user = store.update(User, user.id, xp=150, level=2)
    info = get_level_info(user)
    assert info["xp_in_level"] == 50
    assert info["xp_progress"] == 50.0
    assert info["title"] == "Sprout"


# ── Streak ──

def test_first_exercise_starts_the_streak():
    user = User(current_streak=0, last_active=None)
    update_streak(user, NOW)
    assert user.current_streak == 1
    assert user.last_active == NOW


def test_same_day_keeps_the_streak():
    user = User(current_streak=3, last_active=NOW - timedelta(hours=2))
    update_streak(user, NOW)
    update_streak(user, NOW + timedelta(hours=1))
    assert user.current_streak == 3


def test_yesterday_extends_the_streak():
    user = User(current_streak=3, last_active=NOW - timedelta(days=1))
    update_streak(user, NOW)
    assert user.current_streak == 4


def test_gap_resets_the_streak():
    user = User(current_streak=5, last_active=NOW - timedelta(days=3))
    update_streak(user, NOW)
    assert user.current_streak == 1


def test_streak_uses_calendar_days_not_hours():
    user = User(current_streak=2, last_active=datetime(2026, 3, 9, 23, 50))
    update_streak(user, datetime(2026, 3, 10, 0, 5))
    assert user.current_streak == 3


# ── Awards ──

def test_mood_awards_ten_xp(make_user, db):
    user = make_user()
    result = award_for_mood(db, user.id, now=NOW)
    assert result["xp_earned"] == 10
    assert result["total_xp"] == 10
    assert result["leveled_up"] is False
    assert db.get(User, user.id).xp == 10


def test_exercise_crosses_a_level(make_user, store, db):
    user = make_user()
    store.update(User, user.id, xp=95, level=1)

    result = award_for_exercise(db, user.id, 600, now=NOW)

    assert result["xp_earned"] == 100
    assert result["total_xp"] == 195
    assert result["level"] == 2
    assert result["leveled_up"] is True
    assert result["current_streak"] == 1


def test_seventh_day_unlocks_the_streak_badge(make_user, store, db):
    user = make_user()
    store.update(User, user.id, current_streak=6, last_active=NOW - timedelta(days=1))

    result = award_for_exercise(db, user.id, 300, now=NOW)

    assert result["current_streak"] == 7
    assert result["unlocked"] == ["7-day-streak"]
    assert result["total_xp"] == 50 + XP_REWARDS["achievement"]


def test_badges_are_unlocked_once(make_user, store, db):
    user = make_user()
    store.create(ExerciseCompletion, user_id=user.id, type="mindfulness", duration=600, created_at=NOW)

    first = award_for_exercise(db, user.id, 600, now=NOW)
    store.create(ExerciseCompletion, user_id=user.id, type="mindfulness", duration=600, created_at=NOW)
    second = award_for_exercise(db, user.id, 600, now=NOW)

    assert "mindfulness" in first["unlocked"]
    assert second["unlocked"] == []
    assert second["total_xp"] == 100 + 25 + 100


def test_journal_master_on_fifth_entry(make_user, store, db):
    user = make_user()
    results = []
    for i in range(5):
        store.create(JournalEntry, user_id=user.id, title=f"Day {i}", content="...")
        results.append(award_for_journal(db, user.id, now=NOW))

    assert all(r["unlocked"] == [] for r in results[:4])
    assert results[4]["unlocked"] == ["journal-master"]
    assert results[4]["total_xp"] == 5 * 15 + 25
    assert results[4]["level"] == 2


def test_mood_master_needs_seven_consecutive_days(make_user, store, db):
    user = make_user()
    for days_ago in range(6, 0, -1):
        store.create(Mood, user_id=user.id, mood="calm", intensity=3, created_at=NOW - timedelta(days=days_ago))
    assert award_for_mood(db, user.id, now=NOW)["unlocked"] == []

    store.create(Mood, user_id=user.id, mood="happy", intensity=4, created_at=NOW)
    assert award_for_mood(db, user.id, now=NOW)["unlocked"] == ["mood-master"]


def test_longest_mood_run_ignores_same_day_duplicates(make_user, store, db):
    user = make_user()
    for offset in (0, 0, 1, 2, 4):
        store.create(Mood, user_id=user.id, mood="neutral", intensity=3, created_at=NOW + timedelta(days=offset))
    assert longest_mood_run(db, user.id) == 3


def test_goal_completion_pays_once(make_user, store, db):
    user = make_user()
    goal = store.create(Goal, user_id=user.id, title="Meditate")

    first = award_for_goal_completion(db, user.id, goal.id, now=NOW)
    second = award_for_goal_completion(db, user.id, goal.id, now=NOW)
    store.update(Goal, goal.id, completed=False, completed_at=None)
    third = award_for_goal_completion(db, user.id, goal.id, now=NOW)

    assert first["xp_earned"] == 30
    assert second["xp_earned"] == 0
    assert third["xp_earned"] == 0
    assert third["total_xp"] == 30

    goal = store.get_by_id(Goal, goal.id)
    assert goal.completed is True
    assert goal.progress == 100
    assert goal.completed_at == NOW


def test_goal_completion_of_another_users_goal(make_user, store, db):
    alice = make_user("alice")
    bob = make_user("bob")
    goal = store.create(Goal, user_id=bob.id, title="Bob's goal")
    with pytest.raises(NotFoundError):
        award_for_goal_completion(db, alice.id, goal.id, now=NOW)
    assert db.get(User, alice.id).xp == 0


def test_achievement_grant_is_idempotent(make_user, db):
    user = make_user()
    first = award_for_achievement(db, user.id, "breath-master", now=NOW)
    second = award_for_achievement(db, user.id, "breath-master", now=NOW)

    assert first["xp_earned"] == 25
    assert first["unlocked"] == ["breath-master"]
    assert second["xp_earned"] == 0
    assert second["total_xp"] == 25


def test_unknown_badge(make_user, db):
    user = make_user()
    with pytest.raises(NotFoundError):
        award_for_achievement(db, user.id, "does-not-exist")


def test_award_for_missing_user(db):
    with pytest.raises(NotFoundError):
        award_for_mood(db, 4242)


def test_level_always_matches_xp(make_user, store, db):
    user = make_user()
    award_for_goal_creation(db, user.id, now=NOW)
    award_for_affirmation(db, user.id, now=NOW)
    for _ in range(4):
        award_for_exercise(db, user.id, 450, now=NOW)
    user = db.get(User, user.id)
    assert user.xp == 15 + 10 + 4 * 75
    assert user.level == user.xp // 100 + 1


def test_failed_update_is_rolled_back(make_user, db, monkeypatch):
    user = make_user()

    def explode(*args, **kwargs):
        raise RuntimeError("badge check failed")

    monkeypatch.setattr(gamification, "check_and_unlock_achievements", explode)
    with pytest.raises(RuntimeError):
        award_for_mood(db, user.id, now=NOW)

    assert db.get(User, user.id).xp == 0


def test_one_lock_per_user():
    assert user_lock(1) is user_lock(1)
    assert user_lock(1) is not user_lock(2)
    assert user_lock(1) is user_lock(1 + LOCK_STRIPES)


def test_concurrent_awards_lose_no_xp(tmp_path):
    # a file database: every session gets its own connection
    engine = create_engine(
        f"sqlite:///{tmp_path / 'concurrent.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with Session() as session:
        seed_achievements(session)
        user_id = RecordStore(session).create(
            User, username="racer", email="racer@example.com", password_hash="x", first_name="Racer"
        ).id

    def log_moods():
        with Session() as session:
            for _ in range(10):
                award_for_mood(session, user_id, now=NOW)

    def finish_exercises():
        with Session() as session:
            for _ in range(5):
                award_for_exercise(session, user_id, 60, now=NOW)

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [pool.submit(log_moods) for _ in range(4)]
        futures += [pool.submit(finish_exercises) for _ in range(4)]
        for future in futures:
            future.result()

    with Session() as session:
        user = session.get(User, user_id)
        assert user.xp == 4 * 10 * XP_REWARDS["mood_log"] + 4 * 5 * 10
        assert user.level == user.xp // 100 + 1 == 7
        assert user.current_streak == 1
    engine.dispose()
