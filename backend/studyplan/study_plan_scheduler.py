"""Exam study-plan generation: new material, spaced review and phase drills."""

from __future__ import annotations

import logging
import random
from collections import OrderedDict
from datetime import date
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from .lesson_classifier import LessonClassification, classify_lessons
from .models import (
    GeneratePlanInput,
    Lesson,
    MasteryRecord,
    ScheduledTask,
    TaskPriority,
)
from .phases import PhaseBoundaries, plan_phases
from .study_calendar import build_study_days

logger = logging.getLogger(__name__)

LESSON_MINUTES = 15
REVIEW_INTERVALS = (1, 3, 7, 14)
REVIEW_MINUTES = 10
WEAK_REVIEW_MINUTES = 15
WEAK_REINFORCEMENT_MINUTES = 20
WEAK_REINFORCEMENT_COUNT = 3
PRACTICE_TEST_MINUTES = 30
PRACTICE_TEST_SPACING_DAYS = 4
MOCK_EXAM_MINUTES = 45
MOCK_EXAM_EVERY_DAYS = 3
DRILL_MINUTES = 15
DRILLS_PER_DAY = 2
LIGHT_REVIEW_MINUTES = 20
COMPLETED_LESSON_MIN_MASTERY = 0.3

ReviewPlacement = Literal["random", "even"]


class _ReviewDayPicker:
    """Chooses consolidation-phase days for reviews of already-learned lessons."""

    def __init__(self, phases: PhaseBoundaries, mode: ReviewPlacement, seed: Optional[int]) -> None:
        self._start = phases.acquisition_end
        self._span = phases.consolidation_end - phases.acquisition_end
        self._mode = mode
        self._rng = random.Random(seed)
        self._cursor = 0

    def next_day(self) -> int:
        if self._span <= 0:
            return self._start
        if self._mode == "even":
            offset = self._cursor % self._span
            self._cursor += 1
            return self._start + offset
        return self._start + self._rng.randrange(self._span)


class StudyPlanScheduler:
    """Lays out learn, review, practice and taper tasks across the study days."""

    def __init__(self, *, review_intervals: Sequence[int] = REVIEW_INTERVALS) -> None:
        self._review_intervals = tuple(review_intervals)

    def build_plan(self, plan_input: GeneratePlanInput, *, today: Optional[date] = None) -> List[ScheduledTask]:
        today = today or date.today()
        study_days = build_study_days(today, plan_input.exam_date, plan_input.skip_days)
        if not study_days:
            return []

        classification = classify_lessons(
            plan_input.lessons,
            plan_input.mastery_data,
            plan_input.skipped_lessons,
        )
        phases = plan_phases(len(study_days))
        daily_minutes = plan_input.daily_time_minutes
        logger.debug(
            "Planning %d days (phases %s) for %d new, %d learned, %d weak lessons.",
            phases.total_days,
            phases.as_dict(),
            len(classification.new_lessons),
            len(classification.learned_lessons),
            len(classification.weak_lessons),
        )

        tasks, learn_day_map = self._schedule_new_material(
            study_days,
            phases,
            classification.new_lessons,
            daily_minutes,
        )
        tasks.extend(self._schedule_spaced_reviews(study_days, classification, learn_day_map))
        tasks.extend(
            self._schedule_learned_reviews(
                study_days,
                phases,
                classification,
                _ReviewDayPicker(phases, plan_input.review_placement, plan_input.seed),
            )
        )
        tasks.extend(self._inject_practice_tests(study_days, phases, daily_minutes))
        tasks.extend(self._inject_intensive_phase(study_days, phases, classification.weak_lessons, daily_minutes))
        tasks.extend(self._inject_taper_phase(study_days, phases, daily_minutes))
        return sequence_tasks(tasks)

    def _schedule_new_material(
        self,
        study_days: Sequence[date],
        phases: PhaseBoundaries,
        new_lessons: Sequence[Lesson],
        daily_minutes: int,
    ) -> Tuple[List[ScheduledTask], "OrderedDict[str, Tuple[Lesson, int]]"]:
        queue = iter(interleave_by_course(new_lessons))
        max_per_day = max(1, daily_minutes // LESSON_MINUTES)
        learn_day_map: "OrderedDict[str, Tuple[Lesson, int]]" = OrderedDict()
        tasks: List[ScheduledTask] = []
        pending: Optional[Lesson] = next(queue, None)

        for day_index in range(phases.acquisition_end):
            if pending is None:
                break
            day_minutes = 0
            placed = 0
            while (
                pending is not None
                and day_minutes + LESSON_MINUTES <= daily_minutes
                and placed < max_per_day
            ):
                learn_day_map[pending.key] = (pending, day_index)
                tasks.append(self._learn_task(pending, study_days[day_index], TaskPriority.DAY_ANCHOR + placed))
                day_minutes += LESSON_MINUTES
                placed += 1
                pending = next(queue, None)

        # Leftovers spill one per day into consolidation without a budget check.
        for day_index in range(phases.acquisition_end, phases.consolidation_end):
            if pending is None:
                break
            learn_day_map[pending.key] = (pending, day_index)
            tasks.append(self._learn_task(pending, study_days[day_index], TaskPriority.DAY_ANCHOR))
            pending = next(queue, None)

        if pending is not None:
            dropped = 1 + sum(1 for _ in queue)
            logger.warning(
                "%d new lessons did not fit before the intensive phase and were left unscheduled.",
                dropped,
            )
        return tasks, learn_day_map

    def _learn_task(self, lesson: Lesson, day: date, sort_order: int) -> ScheduledTask:
        return ScheduledTask(
            scheduled_date=day,
            task_type="learn_lesson",
            course_id=lesson.course_id,
            lesson_index=lesson.lesson_index,
            lesson_title=lesson.lesson_title,
            description=f"Learn: {lesson.lesson_title} ({lesson.course_title})",
            estimated_minutes=LESSON_MINUTES,
            sort_order=int(sort_order),
            metadata={"course_title": lesson.course_title},
        )

    def _schedule_spaced_reviews(
        self,
        study_days: Sequence[date],
        classification: LessonClassification,
        learn_day_map: "OrderedDict[str, Tuple[Lesson, int]]",
    ) -> List[ScheduledTask]:
        total_days = len(study_days)
        tasks: List[ScheduledTask] = []
        for key, (lesson, learn_day) in learn_day_map.items():
            is_weak = classification.is_weak(key)
            for interval in self._review_intervals:
                review_day = learn_day + interval
                if review_day >= total_days:
                    continue
                tasks.append(
                    ScheduledTask(
                        scheduled_date=study_days[review_day],
                        task_type="review_lesson",
                        course_id=lesson.course_id,
                        lesson_index=lesson.lesson_index,
                        lesson_title=lesson.lesson_title,
                        description=f"Review: {lesson.lesson_title}",
                        estimated_minutes=WEAK_REVIEW_MINUTES if is_weak else REVIEW_MINUTES,
                        sort_order=int(TaskPriority.REVIEW),
                        metadata={"review_interval": interval, "is_weak": is_weak},
                    )
                )
        return tasks

    def _schedule_learned_reviews(
        self,
        study_days: Sequence[date],
        phases: PhaseBoundaries,
        classification: LessonClassification,
        picker: _ReviewDayPicker,
    ) -> List[ScheduledTask]:
        tasks: List[ScheduledTask] = []
        for lesson in classification.learned_lessons:
            mastery = classification.mastery.get(lesson.key, 0.0)
            is_weak = classification.is_weak(lesson.key)
            for _ in range(WEAK_REINFORCEMENT_COUNT if is_weak else 1):
                day_index = picker.next_day()
                if day_index >= phases.total_days:
                    continue
                if is_weak:
                    tasks.append(
                        ScheduledTask(
                            scheduled_date=study_days[day_index],
                            task_type="review_weak",
                            course_id=lesson.course_id,
                            lesson_index=lesson.lesson_index,
                            lesson_title=lesson.lesson_title,
                            description=f"Strengthen weak area: {lesson.lesson_title}",
                            estimated_minutes=WEAK_REINFORCEMENT_MINUTES,
                            sort_order=int(TaskPriority.WEAK_AREA),
                            metadata={"mastery": mastery, "is_weak": True},
                        )
                    )
                else:
                    tasks.append(
                        ScheduledTask(
                            scheduled_date=study_days[day_index],
                            task_type="review_lesson",
                            course_id=lesson.course_id,
                            lesson_index=lesson.lesson_index,
                            lesson_title=lesson.lesson_title,
                            description=f"Review: {lesson.lesson_title}",
                            estimated_minutes=REVIEW_MINUTES,
                            sort_order=int(TaskPriority.REVIEW),
                            metadata={"mastery": mastery, "is_weak": False},
                        )
                    )
        return tasks

    def _inject_practice_tests(
        self,
        study_days: Sequence[date],
        phases: PhaseBoundaries,
        daily_minutes: int,
    ) -> List[ScheduledTask]:
        span = phases.consolidation_end - phases.acquisition_end
        count = max(1, span // PRACTICE_TEST_SPACING_DAYS)
        tasks: List[ScheduledTask] = []
        for index in range(count):
            day_index = phases.acquisition_end + ((index + 1) * span) // (count + 1)
            if day_index >= phases.total_days:
                continue
            tasks.append(
                ScheduledTask(
                    scheduled_date=study_days[day_index],
                    task_type="practice_test",
                    description="Practice test - mixed questions",
                    estimated_minutes=min(PRACTICE_TEST_MINUTES, daily_minutes),
                    sort_order=int(TaskPriority.PRACTICE_TEST),
                    metadata={"sequence": index + 1, "of": count},
                )
            )
        return tasks

    def _inject_intensive_phase(
        self,
        study_days: Sequence[date],
        phases: PhaseBoundaries,
        weak_lessons: Sequence[Lesson],
        daily_minutes: int,
    ) -> List[ScheduledTask]:
        drill_targets = list(weak_lessons[:DRILLS_PER_DAY])
        tasks: List[ScheduledTask] = []
        for day_index in range(phases.consolidation_end, min(phases.intensive_end, phases.total_days)):
            day = study_days[day_index]
            if (day_index - phases.consolidation_end) % MOCK_EXAM_EVERY_DAYS == 0:
                tasks.append(
                    ScheduledTask(
                        scheduled_date=day,
                        task_type="mock_exam",
                        description="Mock exam - full simulation",
                        estimated_minutes=min(MOCK_EXAM_MINUTES, daily_minutes),
                        sort_order=int(TaskPriority.DAY_ANCHOR),
                    )
                )
                continue
            for lesson in drill_targets:
                tasks.append(
                    ScheduledTask(
                        scheduled_date=day,
                        task_type="review_weak",
                        course_id=lesson.course_id,
                        lesson_index=lesson.lesson_index,
                        lesson_title=lesson.lesson_title,
                        description=f"Drill weak area: {lesson.lesson_title}",
                        estimated_minutes=DRILL_MINUTES,
                        sort_order=int(TaskPriority.WEAK_AREA),
                        metadata={"drill": True},
                    )
                )
        return tasks

    def _inject_taper_phase(
        self,
        study_days: Sequence[date],
        phases: PhaseBoundaries,
        daily_minutes: int,
    ) -> List[ScheduledTask]:
        return [
            ScheduledTask(
                scheduled_date=study_days[day_index],
                task_type="light_review",
                description="Light review - skim key concepts and formulas",
                estimated_minutes=min(LIGHT_REVIEW_MINUTES, daily_minutes),
                sort_order=int(TaskPriority.DAY_ANCHOR),
                metadata={"phase": "final"},
            )
            for day_index in range(phases.intensive_end, phases.total_days)
        ]


def interleave_by_course(lessons: Sequence[Lesson]) -> List[Lesson]:
    """Round-robin lessons across courses in first-seen course order."""
    by_course: "OrderedDict[str, List[Lesson]]" = OrderedDict()
    for lesson in lessons:
        by_course.setdefault(lesson.course_id, []).append(lesson)
    if len(by_course) <= 1:
        return list(lessons)

    interleaved: List[Lesson] = []
    longest = max(len(group) for group in by_course.values())
    for position in range(longest):
        for group in by_course.values():
            if position < len(group):
                interleaved.append(group[position])
    return interleaved


def sequence_tasks(tasks: Iterable[ScheduledTask]) -> List[ScheduledTask]:
    """Stable sort by day, then intra-day priority slot."""
    return sorted(tasks, key=lambda task: (task.scheduled_date, task.sort_order))


def credit_completed_lessons(
    completed_tasks: Iterable[ScheduledTask],
    mastery_data: Iterable[MasteryRecord],
) -> List[MasteryRecord]:
    """Return a mastery copy where completed learn tasks count as at least partly learned."""
    learned_keys: Dict[str, Tuple[str, int]] = OrderedDict()
    for task in completed_tasks:
        if task.task_type != "learn_lesson" or task.status != "completed":
            continue
        if task.course_id is None or task.lesson_index is None:
            continue
        learned_keys[task.lesson_key] = (task.course_id, task.lesson_index)

    updated = [record.model_copy() for record in mastery_data]
    for key, (course_id, lesson_index) in learned_keys.items():
        existing = next((record for record in updated if record.key == key), None)
        if existing is not None:
            existing.mastery = max(existing.mastery, COMPLETED_LESSON_MIN_MASTERY)
        else:
            updated.append(
                MasteryRecord(
                    course_id=course_id,
                    lesson_index=lesson_index,
                    mastery=COMPLETED_LESSON_MIN_MASTERY,
                )
            )
    return updated


scheduler = StudyPlanScheduler()


def generate_study_plan(plan_input: GeneratePlanInput, *, today: Optional[date] = None) -> List[ScheduledTask]:
    """Generate the full task list for ``plan_input``; empty when no study day remains."""
    return scheduler.build_plan(plan_input, today=today)


def recalculate_plan(
    completed_tasks: Iterable[ScheduledTask],
    plan_input: GeneratePlanInput,
    *,
    today: Optional[date] = None,
) -> List[ScheduledTask]:
    """Regenerate the forward plan from ``today``, crediting completed learn tasks.

    Historical tasks are not re-emitted; merging them with the new forward
    window is up to the caller (see ``StudyPlan.replace_forward_tasks``).
    """
    adjusted = plan_input.model_copy(
        update={"mastery_data": credit_completed_lessons(completed_tasks, plan_input.mastery_data)}
    )
    return scheduler.build_plan(adjusted, today=today)


__all__ = [
    "REVIEW_INTERVALS",
    "StudyPlanScheduler",
    "credit_completed_lessons",
    "generate_study_plan",
    "interleave_by_course",
    "recalculate_plan",
    "scheduler",
    "sequence_tasks",
]
