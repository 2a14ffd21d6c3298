from datetime import datetime, timedelta

from models import Mood, ExerciseCompletion, JournalEntry, Goal
from reports import weekly_report, mood_trend, build_insights

NOW = datetime(2026, 3, 10, 12, 0)


def test_mood_trend():
    assert mood_trend([]) == "not enough data"
    assert mood_trend([3]) == "not enough data"
    assert mood_trend([2, 5, 4]) == "improving"
    assert mood_trend([4, 1, 2]) == "declining"
    assert mood_trend([3, 1, 3]) == "stable"


def test_empty_week(make_user, db):
    user = make_user()
    report = weekly_report(db, user.id, now=NOW)

    assert report["period"] == {"start": NOW - timedelta(days=7), "end": NOW}
    assert report["mood_data"] == {"entries": 0, "average": None, "trend": "not enough data"}
    assert report["exercise_data"] == {"count": 0, "total_minutes": 0, "by_type": {}}
    assert report["journal_data"] == {"count": 0}
    assert report["goal_data"] == {"total": 0, "completed": 0, "in_progress": 0}
    assert len(report["insights"]) == 4
    assert report["insights"][0].startswith("You haven't logged any moods this week")


def test_only_the_trailing_week_counts(make_user, store, db):
    user = make_user()
    store.create(Mood, user_id=user.id, mood="sad", intensity=1, created_at=NOW - timedelta(days=8))
    store.create(Mood, user_id=user.id, mood="neutral", intensity=2, created_at=NOW - timedelta(days=6))
    store.create(Mood, user_id=user.id, mood="happy", intensity=5, created_at=NOW - timedelta(days=1))
    store.create(Mood, user_id=user.id, mood="calm", intensity=4, created_at=NOW - timedelta(days=7))

    report = weekly_report(db, user.id, now=NOW)

    assert report["mood_data"]["entries"] == 2
    assert report["mood_data"]["average"] == 3.5
    assert report["mood_data"]["trend"] == "improving"


def test_exercise_summary_and_insights(make_user, store, db):
    user = make_user()
    for exercise_type, seconds in (("breathing", 90), ("breathing", 90), ("cognitive", 300)):
        store.create(ExerciseCompletion, user_id=user.id, type=exercise_type, duration=seconds,
                     created_at=NOW - timedelta(days=2))
    store.create(ExerciseCompletion, user_id=user.id, type="gratitude", duration=600,
                 created_at=NOW - timedelta(days=9))
    store.create(JournalEntry, user_id=user.id, title="Tuesday", content="Slept well",
                 created_at=NOW - timedelta(days=3))

    report = weekly_report(db, user.id, now=NOW)

    assert report["exercise_data"] == {
        "count": 3,
        "total_minutes": 8,
        "by_type": {"breathing": 2, "cognitive": 1},
    }
    assert report["journal_data"]["count"] == 1
    assert report["insights"][1].startswith("Great consistency!")


def test_goals_are_not_windowed(make_user, store, db):
    user = make_user()
    store.create(Goal, user_id=user.id, title="Old goal", completed=True, created_at=NOW - timedelta(days=60))
    store.create(Goal, user_id=user.id, title="New goal", created_at=NOW - timedelta(days=1))

    report = weekly_report(db, user.id, now=NOW)

    assert report["goal_data"] == {"total": 2, "completed": 1, "in_progress": 1}
    assert report["insights"][3] == "You've completed 1 of 2 goals. Well done!"


def test_insight_order():
    insights = build_insights(
        {"entries": 3, "average": 3.0, "trend": "declining"},
        {"count": 1, "total_minutes": 5, "by_type": {"breathing": 1}},
        {"count": 4},
        {"total": 1, "completed": 0, "in_progress": 1},
    )
    assert insights == [
        "Your mood has dipped this week. Consider a breathing or mindfulness exercise.",
        "You're building a routine. Aim for 3 exercises next week.",
        "Your regular journaling is a great habit for self-reflection.",
        "You have goals in progress. Break them into small steps to keep moving.",
    ]
