"""Request and response payloads validated at the HTTP boundary."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .models import PracticeCard, ReviewCard, ScheduledTask


class LessonPayload(BaseModel):
    course_id: str = Field(..., min_length=1)
    course_title: str = ""
    lesson_index: int = Field(..., ge=0)
    lesson_title: str = ""


class LessonRefPayload(BaseModel):
    course_id: str = Field(..., min_length=1)
    lesson_index: int = Field(..., ge=0)


class MasteryPayload(BaseModel):
    course_id: str = Field(..., min_length=1)
    lesson_index: int = Field(..., ge=0)
    mastery: float = Field(..., ge=0.0, le=1.0)


class CourseMasteryPayload(BaseModel):
    course_id: str = Field(..., min_length=1)
    mastery_score: float = Field(..., ge=0.0, le=1.0)


class StudyPlanRequest(BaseModel):
    exam_date: date
    today: Optional[date] = None
    daily_time_minutes: int = Field(..., ge=1, le=24 * 60)
    skip_days: List[date] = Field(default_factory=list)
    skip_weekdays: List[int] = Field(
        default_factory=list,
        description="Recurring weekdays to skip, numbered as date.weekday(): Monday = 0, Sunday = 6.",
    )
    skipped_lessons: List[LessonRefPayload] = Field(default_factory=list)
    lessons: List[LessonPayload] = Field(default_factory=list)
    mastery_data: List[MasteryPayload] = Field(default_factory=list)
    review_placement: Optional[Literal["random", "even"]] = None
    seed: Optional[int] = None

    @field_validator("skip_weekdays")
    @classmethod
    def _validate_weekdays(cls, value: List[int]) -> List[int]:
        invalid = [day for day in value if day < 0 or day > 6]
        if invalid:
            raise ValueError(f"Weekdays must be between 0 (Monday) and 6 (Sunday); got {invalid}.")
        return value


class RecalculatePlanRequest(BaseModel):
    completed_tasks: List[ScheduledTask] = Field(default_factory=list)
    plan: StudyPlanRequest


class StudyPlanResponse(BaseModel):
    generated_at: datetime
    today: date
    exam_date: date
    study_days: List[date] = Field(default_factory=list)
    phases: Dict[str, int] = Field(default_factory=dict)
    summary: Dict[str, Any] = Field(default_factory=dict)
    tasks: List[ScheduledTask] = Field(default_factory=list)


class PracticeSessionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    cards: List[ReviewCard] = Field(default_factory=list)
    mastery_data: List[CourseMasteryPayload] = Field(default_factory=list)
    card_count: Optional[int] = Field(default=None, ge=1, le=500)
    max_consecutive_same_topic: Optional[int] = Field(default=None, ge=1)
    max_new_cards: Optional[int] = Field(default=None, ge=0)
    prioritize_low_mastery: Optional[bool] = None
    shuffle: Optional[bool] = None
    seed: Optional[int] = None
    now: Optional[datetime] = None


class InterleaveRequest(BaseModel):
    cards: List[PracticeCard] = Field(default_factory=list)
    card_count: Optional[int] = Field(default=None, ge=1, le=500)


class InterleaveResponse(BaseModel):
    cards: List[PracticeCard] = Field(default_factory=list)
    topic_count: int = 0
