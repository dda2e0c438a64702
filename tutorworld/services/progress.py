# tutorworld/services/progress.py
"""
Read-only aggregation over a student's completed attempts.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session, joinedload

from tutorworld.models.quiz_attempt import AttemptStatus, QuizAttempt
from tutorworld.models.user import User

logger = logging.getLogger(__name__)

EASY_THRESHOLD = 80
HARD_THRESHOLD = 60
TREND_WINDOW = 5
TREND_THRESHOLD = 5
RECENT_ATTEMPTS_LIMIT = 10


class Trend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


def _round(value: float) -> float:
    return round(value, 2)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def difficulty_bucket(percentage: float) -> str:
    """Classify an attempt by performance, not by declared question difficulty"""
    if percentage >= EASY_THRESHOLD:
        return "easy"
    if percentage < HARD_THRESHOLD:
        return "hard"
    return "medium"


def detect_trend(percentages: Sequence[float]) -> Trend:
    """
    Compare the mean of the last 5 points with the mean of the first points
    of the series (at most 5, never overlapping the last 5). Needs at least
    5 points.
    """
    if len(percentages) < TREND_WINDOW:
        return Trend.STABLE

    recent = percentages[-TREND_WINDOW:]
    earlier = percentages[: min(TREND_WINDOW, len(percentages) - TREND_WINDOW)]
    if not earlier:
        return Trend.STABLE

    recent_avg = _mean(recent)
    earlier_avg = _mean(earlier)
    if recent_avg > earlier_avg + TREND_THRESHOLD:
        return Trend.IMPROVING
    if recent_avg < earlier_avg - TREND_THRESHOLD:
        return Trend.DECLINING
    return Trend.STABLE


def attempt_summary(attempt: QuizAttempt) -> Dict[str, Any]:
    quiz = attempt.quiz
    return {
        "attempt_id": attempt.attempt_id,
        "quiz_id": quiz.quiz_id if quiz else None,
        "quiz_title": quiz.title if quiz else None,
        "subject": quiz.subject if quiz else None,
        "score": attempt.score,
        "percentage": attempt.percentage,
        "is_passed": attempt.is_passed,
        "is_late_submission": attempt.is_late_submission,
        "completed_at": attempt.completed_at,
    }


class ProgressService:
    def __init__(self, db: Session):
        self.db = db

    def _completed_attempts(
        self,
        student: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        newest_first: bool = True,
    ) -> List[QuizAttempt]:
        query = (
            self.db.query(QuizAttempt)
            .options(joinedload(QuizAttempt.quiz))
            .filter(
                QuizAttempt.student_id == student.id,
                QuizAttempt.status == AttemptStatus.COMPLETED.value,
            )
        )
        if start_date:
            query = query.filter(QuizAttempt.completed_at >= start_date)
        if end_date:
            query = query.filter(QuizAttempt.completed_at <= end_date)

        order = QuizAttempt.completed_at.desc() if newest_first else QuizAttempt.completed_at.asc()
        return query.order_by(order, QuizAttempt.id).all()

    def get_overview(self, student: User) -> Dict[str, Any]:
        attempts = self._completed_attempts(student)
        total = len(attempts)
        passed = sum(1 for attempt in attempts if attempt.is_passed)

        by_subject: Dict[str, List[QuizAttempt]] = {}
        for attempt in attempts:
            subject = attempt.quiz.subject if attempt.quiz else "unknown"
            by_subject.setdefault(subject, []).append(attempt)

        subjects = []
        for subject, items in by_subject.items():
            subjects.append(
                {
                    "subject": subject,
                    "attempts": len(items),
                    "average_score": _round(_mean([a.score for a in items])),
                    "average_percentage": _round(_mean([a.percentage for a in items])),
                    "pass_rate": _round(sum(1 for a in items if a.is_passed) / len(items) * 100),
                }
            )

        return {
            "total_quizzes": total,
            "passed_quizzes": passed,
            "failed_quizzes": total - passed,
            "average_score": _round(_mean([a.score for a in attempts])),
            "average_percentage": _round(_mean([a.percentage for a in attempts])),
            "pass_rate": _round(passed / total * 100) if total else 0.0,
            "subjects": subjects,
        }

    def get_detailed_statistics(self, student: User) -> Dict[str, Any]:
        attempts = self._completed_attempts(student)

        buckets = {name: [] for name in ("easy", "medium", "hard")}
        for attempt in attempts:
            buckets[difficulty_bucket(attempt.percentage)].append(attempt)

        difficulty_stats = {}
        for name, items in buckets.items():
            passed = sum(1 for a in items if a.is_passed)
            difficulty_stats[name] = {
                "total": len(items),
                "passed": passed,
                "average_percentage": _round(_mean([a.percentage for a in items])),
                "pass_rate": _round(passed / len(items) * 100) if items else 0.0,
            }

        return {
            "difficulty_stats": difficulty_stats,
            "recent_attempts": [attempt_summary(a) for a in attempts[:RECENT_ATTEMPTS_LIMIT]],
        }

    def get_chart(
        self,
        student: User,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        subject: Optional[str] = None,
    ) -> Dict[str, Any]:
        attempts = self._completed_attempts(student, start_date, end_date, newest_first=False)
        if subject:
            attempts = [a for a in attempts if a.quiz and a.quiz.subject == subject]

        chart_data = [
            {
                "date": attempt.completed_at,
                "score": attempt.score,
                "percentage": attempt.percentage,
                "quiz_title": attempt.quiz.title if attempt.quiz else None,
                "subject": attempt.quiz.subject if attempt.quiz else None,
                "is_passed": attempt.is_passed,
            }
            for attempt in attempts
        ]
        percentages = [point["percentage"] for point in chart_data]

        return {
            "chart_data": chart_data,
            "trend": detect_trend(percentages).value,
            "summary": {
                "total_attempts": len(chart_data),
                "average_percentage": _round(_mean(percentages)),
            },
        }
