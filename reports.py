"""
=============================================================================
REPORTS.PY — Weekly Report
=============================================================================
Summarises the trailing 7 days (now - 7 days, now] of a user's activity and
picks canned insight sentences from a fixed decision table.

Goals are NOT windowed: the report shows the user's whole goal list.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from models import Mood, ExerciseCompletion, JournalEntry, Goal
from storage import RecordStore

REPORT_WINDOW_DAYS = 7


def mood_trend(intensities: list[int]) -> str:
    """Compares the last entry of the window with the first one"""
    if len(intensities) < 2:
        return "not enough data"
    first, last = intensities[0], intensities[-1]
    if last > first:
        return "improving"
    if last < first:
        return "declining"
    return "stable"


def build_insights(mood_data: dict, exercise_data: dict, journal_data: dict, goal_data: dict) -> list[str]:
    """One sentence per metric, in the order mood → exercise → journal → goals"""
    insights = []

    # ── Mood ──
    if mood_data["entries"] == 0:
        insights.append("You haven't logged any moods this week. Regular check-ins help you spot patterns.")
    elif mood_data["trend"] == "improving":
        insights.append("Your mood has been improving this week. Keep doing what works for you!")
    elif mood_data["trend"] == "declining":
        insights.append("Your mood has dipped this week. Consider a breathing or mindfulness exercise.")
    else:
        insights.append("Your mood has been steady this week.")

    # ── Exercises ──
    if exercise_data["count"] == 0:
        insights.append("Try completing at least one exercise next week to build momentum.")
    elif exercise_data["count"] >= 3:
        insights.append(
            f"Great consistency! You completed {exercise_data['count']} exercises "
            f"({exercise_data['total_minutes']} minutes) this week."
        )
    else:
        insights.append("You're building a routine. Aim for 3 exercises next week.")

    # ── Journal ──
    if journal_data["count"] == 0:
        insights.append("Journaling can bring clarity. Try writing a short entry this week.")
    elif journal_data["count"] >= 3:
        insights.append("Your regular journaling is a great habit for self-reflection.")
    else:
        insights.append("Nice work journaling this week. A few more entries can deepen your insights.")

    # ── Goals ──
    if goal_data["total"] == 0:
        insights.append("Setting a small, achievable goal can give your week direction.")
    elif goal_data["completed"] > 0:
        insights.append(f"You've completed {goal_data['completed']} of {goal_data['total']} goals. Well done!")
    else:
        insights.append("You have goals in progress. Break them into small steps to keep moving.")

    return insights


def weekly_report(db: Session, user_id: int, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    start = now - timedelta(days=REPORT_WINDOW_DAYS)
    store = RecordStore(db)

    def in_window(records):
        return [r for r in records if start < r.created_at <= now]

    # ascending → first/last of the window are the oldest/newest entries
    moods = in_window(store.list_by_user_id(Mood, user_id, ascending=True, since=start))
    exercises = in_window(store.list_by_user_id(ExerciseCompletion, user_id, since=start))
    journals = in_window(store.list_by_user_id(JournalEntry, user_id, since=start))
    goals = store.list_by_user_id(Goal, user_id)

    intensities = [m.intensity for m in moods]
    mood_data = {
        "entries": len(moods),
        "average": round(sum(intensities) / len(intensities), 1) if intensities else None,
        "trend": mood_trend(intensities),
    }

    by_type: dict[str, int] = {}
    for ex in exercises:
        by_type[ex.type] = by_type.get(ex.type, 0) + 1
    exercise_data = {
        "count": len(exercises),
        "total_minutes": round(sum(ex.duration for ex in exercises) / 60),
        "by_type": by_type,
    }

    journal_data = {"count": len(journals)}

    completed = sum(1 for g in goals if g.completed)
    goal_data = {
        "total": len(goals),
        "completed": completed,
        "in_progress": len(goals) - completed,
    }

    return {
        "period": {"start": start, "end": now},
        "mood_data": mood_data,
        "exercise_data": exercise_data,
        "journal_data": journal_data,
        "goal_data": goal_data,
        "insights": build_insights(mood_data, exercise_data, journal_data, goal_data),
    }
