# tutorworld/services/grading.py
"""
Pure grading and timing rules for quiz attempts.

Nothing here touches the database: callers pass in the quiz, its question
bank and the submitted answers, and get plain values back.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from tutorworld.models.question import Question, QuestionType

# Submissions later than limit x LATE_SUBMISSION_MULTIPLIER are flagged late,
# later than limit x HARD_LIMIT_MULTIPLIER they are rejected.
LATE_SUBMISSION_MULTIPLIER = 1.0
HARD_LIMIT_MULTIPLIER = 1.5


@dataclass
class TimeCheck:
    elapsed_minutes: float
    is_late: bool
    is_rejected: bool


def is_answer_correct(question: Question, selected_answer: Any) -> bool:
    question_type = QuestionType(question.question_type)

    if question_type in (QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE):
        correct = question.correct_option_text
        return correct is not None and selected_answer == correct

    if question_type is QuestionType.SHORT_ANSWER:
        if not isinstance(selected_answer, str) or question.correct_answer is None:
            return False
        return selected_answer.lower().strip() == question.correct_answer.lower().strip()

    raise ValueError(f"Unhandled question type: {question_type!r}")


def grade_answers(
    questions: Iterable[Question], answers: Sequence[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Grade each submitted answer independently against the question bank.

    Unknown question ids are recorded as incorrect with 0 points. Only the
    first answer per question id counts; repeats are dropped.
    """
    bank = {question.question_id: question for question in questions}
    graded = []
    seen = set()

    for answer in answers:
        question_id = answer.get("question_id")
        if question_id in seen:
            continue
        seen.add(question_id)
        selected = answer.get("selected_answer")
        question = bank.get(question_id)

        if question is None:
            graded.append(
                {
                    "question_id": question_id,
                    "selected_answer": selected,
                    "is_correct": False,
                    "points_earned": 0,
                }
            )
            continue

        correct = is_answer_correct(question, selected)
        graded.append(
            {
                "question_id": question_id,
                "selected_answer": selected,
                "is_correct": correct,
                "points_earned": question.points if correct else 0,
            }
        )

    return graded


def total_score(graded: Iterable[Dict[str, Any]]) -> float:
    return sum(item["points_earned"] for item in graded)


def compute_percentage(score: float, total_points: int) -> float:
    if not total_points:
        return 0.0
    return score / total_points * 100


def is_passing(percentage: float, passing_score: float) -> bool:
    return percentage >= passing_score


def evaluate_time_limit(
    started_at: datetime, now: datetime, time_limit: Optional[int]
) -> TimeCheck:
    """Classify a submission against the quiz time limit (minutes)."""
    elapsed = (now - started_at).total_seconds() / 60

    if not time_limit:
        return TimeCheck(elapsed_minutes=elapsed, is_late=False, is_rejected=False)

    if elapsed > time_limit * HARD_LIMIT_MULTIPLIER:
        return TimeCheck(elapsed_minutes=elapsed, is_late=True, is_rejected=True)

    return TimeCheck(
        elapsed_minutes=elapsed,
        is_late=elapsed > time_limit * LATE_SUBMISSION_MULTIPLIER,
        is_rejected=False,
    )


def select_questions(
    questions: List[Question],
    is_randomized: bool,
    sample_size: Optional[int],
    rng: Optional[random.Random] = None,
) -> List[Question]:
    """Uniform sample without replacement when randomized, else the full ordered list."""
    if is_randomized and sample_size:
        rng = rng or random.Random()
        return rng.sample(questions, min(sample_size, len(questions)))
    return list(questions)


def strip_answer_key(question: Question) -> Dict[str, Any]:
    """Question view safe to show before grading."""
    return {
        "question_id": question.question_id,
        "title": question.title,
        "description": question.description,
        "question_type": question.question_type,
        "difficulty": question.difficulty,
        "subject": question.subject,
        "grade": question.grade,
        "options": [{"text": option["text"]} for option in question.options or []],
        "points": question.points,
        "image_url": question.image_url,
    }


def reveal_answer_key(question: Question) -> Dict[str, Any]:
    data = strip_answer_key(question)
    data.update(
        options=[
            {"text": option["text"], "is_correct": bool(option.get("is_correct"))}
            for option in question.options or []
        ],
        correct_answer=question.correct_answer,
        explanation=question.explanation,
    )
    return data
