"""Study-plan endpoints: generate and recalculate exam plans."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import List

from fastapi import APIRouter, status

from .config import Settings, get_settings
from .models import GeneratePlanInput, Lesson, LessonRef, MasteryRecord, ScheduledTask
from .payloads import RecalculatePlanRequest, StudyPlanRequest, StudyPlanResponse
from .phases import plan_phases
from .plan_summary import plan_summary
from .study_calendar import build_study_days, expand_skip_weekdays
from .study_plan_scheduler import generate_study_plan, recalculate_plan
from .telemetry import STUDY_PLAN_GENERATED, STUDY_PLAN_RECALCULATED, timed_event

router = APIRouter(prefix="/api/study-plan", tags=["study-plan"])
logger = logging.getLogger(__name__)


def _plan_input(payload: StudyPlanRequest, today: date, settings: Settings) -> GeneratePlanInput:
    skip_days = expand_skip_weekdays(
        today,
        payload.exam_date,
        payload.skip_weekdays,
        extra_dates=payload.skip_days,
    )
    return GeneratePlanInput(
        exam_date=payload.exam_date,
        daily_time_minutes=payload.daily_time_minutes,
        skip_days=skip_days,
        skipped_lessons=[
            LessonRef(course_id=ref.course_id, lesson_index=ref.lesson_index) for ref in payload.skipped_lessons
        ],
        lessons=[
            Lesson(
                course_id=lesson.course_id,
                course_title=lesson.course_title or lesson.course_id,
                lesson_index=lesson.lesson_index,
                lesson_title=lesson.lesson_title or f"Lesson {lesson.lesson_index + 1}",
            )
            for lesson in payload.lessons
        ],
        mastery_data=[
            MasteryRecord(course_id=entry.course_id, lesson_index=entry.lesson_index, mastery=entry.mastery)
            for entry in payload.mastery_data
        ],
        review_placement=payload.review_placement or settings.review_placement,
        seed=payload.seed if payload.seed is not None else settings.review_seed,
    )


def _plan_response(tasks: List[ScheduledTask], plan_input: GeneratePlanInput, today: date) -> StudyPlanResponse:
    study_days = build_study_days(today, plan_input.exam_date, plan_input.skip_days)
    phases = plan_phases(len(study_days))
    return StudyPlanResponse(
        generated_at=datetime.now(timezone.utc),
        today=today,
        exam_date=plan_input.exam_date,
        study_days=study_days,
        phases=phases.as_dict(),
        summary=plan_summary(tasks, study_days, phases),
        tasks=tasks,
    )


@router.post("/generate", response_model=StudyPlanResponse, status_code=status.HTTP_200_OK)
def generate_plan(payload: StudyPlanRequest) -> StudyPlanResponse:
    today = payload.today or date.today()
    plan_input = _plan_input(payload, today, get_settings())
    with timed_event(
        STUDY_PLAN_GENERATED,
        exam_date=plan_input.exam_date,
        lesson_count=len(plan_input.lessons),
        review_placement=plan_input.review_placement,
    ) as outcome:
        tasks = generate_study_plan(plan_input, today=today)
        outcome["task_count"] = len(tasks)
        if not tasks:
            outcome["status"] = "empty"
            logger.info("No study plan possible before %s (today %s).", plan_input.exam_date, today)
    return _plan_response(tasks, plan_input, today)


@router.post("/recalculate", response_model=StudyPlanResponse, status_code=status.HTTP_200_OK)
def recalculate(payload: RecalculatePlanRequest) -> StudyPlanResponse:
    today = payload.plan.today or date.today()
    plan_input = _plan_input(payload.plan, today, get_settings())
    completed = [task for task in payload.completed_tasks if task.status == "completed"]
    with timed_event(
        STUDY_PLAN_RECALCULATED,
        exam_date=plan_input.exam_date,
        completed_task_count=len(completed),
        review_placement=plan_input.review_placement,
    ) as outcome:
        tasks = recalculate_plan(payload.completed_tasks, plan_input, today=today)
        outcome["task_count"] = len(tasks)
        if not tasks:
            outcome["status"] = "empty"
    return _plan_response(tasks, plan_input, today)
