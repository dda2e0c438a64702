# tutorworld/schemas/progress.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class SubjectBreakdown(BaseModel):
    subject: str
    attempts: int
    average_score: float
    average_percentage: float
    pass_rate: float


class RecentAttempt(BaseModel):
    attempt_id: str
    quiz_id: Optional[str] = None
    quiz_title: Optional[str] = None
    subject: Optional[str] = None
    score: float
    percentage: float
    is_passed: bool
    is_late_submission: bool = False
    completed_at: Optional[datetime] = None


class ProgressOverview(BaseModel):
    total_quizzes: int
    passed_quizzes: int
    failed_quizzes: int
    average_score: float
    average_percentage: float
    pass_rate: float
    subjects: List[SubjectBreakdown]


class DifficultyBucket(BaseModel):
    total: int
    passed: int
    average_percentage: float
    pass_rate: float


class DifficultyStats(BaseModel):
    easy: DifficultyBucket
    medium: DifficultyBucket
    hard: DifficultyBucket


class DetailedStatistics(BaseModel):
    difficulty_stats: DifficultyStats
    recent_attempts: List[RecentAttempt]


class ChartPoint(BaseModel):
    date: Optional[datetime] = None
    score: float
    percentage: float
    quiz_title: Optional[str] = None
    subject: Optional[str] = None
    is_passed: bool


class ChartSummary(BaseModel):
    total_attempts: int
    average_percentage: float


class ProgressChart(BaseModel):
    chart_data: List[ChartPoint]
    trend: str
    summary: ChartSummary
