"""Domain models shared by the study-plan scheduler and the practice composer."""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

TaskType = Literal[
    "learn_lesson",
    "review_lesson",
    "practice_test",
    "review_weak",
    "light_review",
    "mock_exam",
]
TaskStatus = Literal["pending", "completed", "skipped"]
PlanStatus = Literal["active", "completed", "abandoned"]
CardState = Literal["new", "learning", "review", "relearning"]


def lesson_key(course_id: str, lesson_index: int) -> str:
    return f"{course_id}:{lesson_index}"


class TaskPriority(IntEnum):
    """Intra-day ordering slots; lower values run first.

    ``DAY_ANCHOR`` is shared by the first new lesson of a day, mock exams and
    taper reviews. The phases emitting those never overlap on one day, so the
    shared slot never needs a tie-break beyond insertion order. Later new
    lessons of the same day take ``DAY_ANCHOR + position``.
    """

    DAY_ANCHOR = 0
    WEAK_AREA = 5
    REVIEW = 10
    PRACTICE_TEST = 20


class Lesson(BaseModel):
    """Immutable reference to a lesson within a course."""

    course_id: str
    course_title: str
    lesson_index: int
    lesson_title: str

    @property
    def key(self) -> str:
        return lesson_key(self.course_id, self.lesson_index)


class LessonRef(BaseModel):
    course_id: str
    lesson_index: int

    @property
    def key(self) -> str:
        return lesson_key(self.course_id, self.lesson_index)


class MasteryRecord(BaseModel):
    course_id: str
    lesson_index: int
    mastery: float

    @property
    def key(self) -> str:
        return lesson_key(self.course_id, self.lesson_index)


class ScheduledTask(BaseModel):
    """One unit of planned work on a single study day."""

    scheduled_date: date
    task_type: TaskType
    course_id: Optional[str] = None
    lesson_index: Optional[int] = None
    lesson_title: Optional[str] = None
    description: str
    estimated_minutes: int
    status: TaskStatus = "pending"
    sort_order: int = TaskPriority.DAY_ANCHOR
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def lesson_key(self) -> Optional[str]:
        if self.course_id is None or self.lesson_index is None:
            return None
        return lesson_key(self.course_id, self.lesson_index)


class PlanConfig(BaseModel):
    daily_time_minutes: int
    skip_days: List[date] = Field(default_factory=list)
    skipped_lessons: List[LessonRef] = Field(default_factory=list)


class GeneratePlanInput(BaseModel):
    """Everything the plan generator needs for one run.

    ``review_placement`` and ``seed`` control where reviews for lessons that
    were already learned land inside the consolidation phase.
    """

    exam_date: date
    daily_time_minutes: int
    skip_days: List[date] = Field(default_factory=list)
    skipped_lessons: List[LessonRef] = Field(default_factory=list)
    lessons: List[Lesson] = Field(default_factory=list)
    mastery_data: List[MasteryRecord] = Field(default_factory=list)
    review_placement: Literal["random", "even"] = "random"
    seed: Optional[int] = None

    @property
    def config(self) -> PlanConfig:
        return PlanConfig(
            daily_time_minutes=self.daily_time_minutes,
            skip_days=list(self.skip_days),
            skipped_lessons=list(self.skipped_lessons),
        )


class PlanProgress(BaseModel):
    total_tasks: int = 0
    completed: int = 0
    skipped: int = 0
    pending: int = 0
    completed_minutes: int = 0
    remaining_minutes: int = 0

    @property
    def completion_ratio(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return self.completed / self.total_tasks


class StudyPlan(BaseModel):
    """Aggregate root owning the scheduled tasks of one exam plan."""

    exam_date: date
    config: PlanConfig
    status: PlanStatus = "active"
    tasks: List[ScheduledTask] = Field(default_factory=list)

    def replace_forward_tasks(self, tasks: List[ScheduledTask], today: date) -> None:
        """Swap the pending forward window for freshly generated ``tasks``.

        Completed and skipped tasks, and anything dated before ``today``, are
        kept as history.
        """
        history = [
            task
            for task in self.tasks
            if task.status != "pending" or task.scheduled_date < today
        ]
        forward = [task for task in tasks if task.scheduled_date >= today]
        self.tasks = history + forward

    def progress(self) -> PlanProgress:
        progress = PlanProgress(total_tasks=len(self.tasks))
        for task in self.tasks:
            if task.status == "completed":
                progress.completed += 1
                progress.completed_minutes += task.estimated_minutes
            elif task.status == "skipped":
                progress.skipped += 1
            else:
                progress.pending += 1
                progress.remaining_minutes += task.estimated_minutes
        return progress


class ReviewCard(BaseModel):
    """Spaced-repetition card as stored for a single learner."""

    id: str
    user_id: str
    course_id: str
    lesson_index: int
    step_index: int = 0
    card_type: str = "flashcard"
    front: str = ""
    back: str = ""
    stability: float = 0.0
    difficulty: float = 0.0
    elapsed_days: int = 0
    scheduled_days: int = 0
    reps: int = 0
    lapses: int = 0
    state: CardState = "new"
    due_date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_review: Optional[datetime] = None


class PracticeCard(ReviewCard):
    """Review card annotated for a practice session."""

    topic_key: str = ""
    lesson_mastery: float = 0.5
    priority_score: float = 0.0
    backfilled: bool = False


class CourseMastery(BaseModel):
    course_id: str
    mastery_score: float


class PracticeSessionConfig(BaseModel):
    card_count: int = 20
    max_consecutive_same_topic: int = 2
    prioritize_low_mastery: bool = True
    max_new_cards: int = 5
    shuffle: bool = False


class PracticeSessionStats(BaseModel):
    total_cards: int = 0
    requested: int = 0
    delivered: int = 0
    available: int = 0
    backfilled: int = 0
    due_today: int = 0
    new_cards: int = 0
    from_low_mastery: int = 0
    course_breakdown: Dict[str, int] = Field(default_factory=dict)
    topic_breakdown: Dict[str, int] = Field(default_factory=dict)
    mastery_buckets: Dict[str, int] = Field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0}
    )


class PracticeSessionResult(BaseModel):
    cards: List[PracticeCard] = Field(default_factory=list)
    stats: PracticeSessionStats = Field(default_factory=PracticeSessionStats)


__all__ = [
    "CardState",
    "CourseMastery",
    "GeneratePlanInput",
    "Lesson",
    "LessonRef",
    "MasteryRecord",
    "PlanConfig",
    "PlanProgress",
    "PlanStatus",
    "PracticeCard",
    "PracticeSessionConfig",
    "PracticeSessionResult",
    "PracticeSessionStats",
    "ReviewCard",
    "ScheduledTask",
    "StudyPlan",
    "TaskPriority",
    "TaskStatus",
    "TaskType",
    "lesson_key",
]
