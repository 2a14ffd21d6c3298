"""
=============================================================================
ASSESSMENT.PY — Wellness Questionnaire & Scorer
=============================================================================
A fixed 10-question symptom-severity questionnaire. Higher raw answers mean
more distress, so the score is inverted:

    score = round(100 - user_score / max_score * 100)

  all answers at their minimum → 100 (excellent wellbeing)
  all answers at their maximum → 0

A submission must answer every question with one of its option values.
"""

import math

from errors import ValidationError

FREQUENCY_OPTIONS = [
    {"value": 0, "label": "Not at all"},
    {"value": 1, "label": "Several days"},
    {"value": 2, "label": "More than half the days"},
    {"value": 3, "label": "Nearly every day"},
]

QUESTIONS = [
    {"id": 1, "question": "Over the past 2 weeks, how often have you felt down, depressed, or hopeless?",
     "options": FREQUENCY_OPTIONS},
    {"id": 2, "question": "Over the past 2 weeks, how often have you had little interest or pleasure in doing things?",
     "options": FREQUENCY_OPTIONS},
    {"id": 3, "question": "Over the past 2 weeks, how often have you been feeling nervous, anxious, or on edge?",
     "options": FREQUENCY_OPTIONS},
    {"id": 4, "question": "Over the past 2 weeks, how often have you had trouble relaxing?",
     "options": FREQUENCY_OPTIONS},
    {"id": 5, "question": "Over the past 2 weeks, how often have you had trouble falling or staying asleep, "
                          "or sleeping too much?",
     "options": FREQUENCY_OPTIONS},
    {"id": 6, "question": "Over the past 2 weeks, how often have you felt tired or had little energy?",
     "options": FREQUENCY_OPTIONS},
    {"id": 7, "question": "Over the past 2 weeks, how often have you been bothered by trouble concentrating on things?",
     "options": FREQUENCY_OPTIONS},
    {"id": 8, "question": "Over the past 2 weeks, how often have you been easily annoyed or irritable?",
     "options": FREQUENCY_OPTIONS},
    {"id": 9, "question": "How would you rate your overall mental wellbeing right now?",
     "options": [
         {"value": 0, "label": "Very poor"},
         {"value": 1, "label": "Poor"},
         {"value": 2, "label": "Fair"},
         {"value": 3, "label": "Good"},
         {"value": 4, "label": "Very good"},
     ]},
    {"id": 10, "question": "How much is your current mental health affecting your daily life?",
     "options": [
         {"value": 0, "label": "Not at all"},
         {"value": 1, "label": "A little bit"},
         {"value": 2, "label": "Moderately"},
         {"value": 3, "label": "Quite a bit"},
         {"value": 4, "label": "Extremely"},
     ]},
]

MAX_SCORE = sum(max(o["value"] for o in q["options"]) for q in QUESTIONS)

WELLNESS_LABELS = [
    (80, "Excellent"),
    (60, "Good"),
    (40, "Fair"),
    (20, "Needs attention"),
]


def validate_answers(answers: dict[int, int]) -> dict[int, int]:
    """Every question answered, each with one of its own option values"""
    by_id = {q["id"]: q for q in QUESTIONS}

    unknown = sorted(set(answers) - set(by_id))
    if unknown:
        raise ValidationError(f"Unknown question ids: {unknown}")

    missing = sorted(set(by_id) - set(answers))
    if missing:
        raise ValidationError(f"Every question must be answered; missing: {missing}")

    for question_id, value in answers.items():
        allowed = {o["value"] for o in by_id[question_id]["options"]}
        if value not in allowed:
            raise ValidationError(f"Invalid answer {value} for question {question_id}")
    return answers


def score(answers: dict[int, int]) -> int:
    """Wellness score between 0 and 100 for a complete answer set"""
    validate_answers(answers)
    user_score = sum(answers.values())
    return int(math.floor(100 - (user_score / MAX_SCORE) * 100 + 0.5))


def wellness_label(value: int) -> str:
    for threshold, label in WELLNESS_LABELS:
        if value >= threshold:
            return label
    return "Requires support"
