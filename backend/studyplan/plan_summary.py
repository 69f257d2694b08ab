"""Aggregate views over a generated task list."""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date
from typing import Any, Dict, List, Sequence

from .models import ScheduledTask
from .phases import PhaseBoundaries


def plan_summary(
    tasks: Sequence[ScheduledTask],
    study_days: Sequence[date],
    phases: PhaseBoundaries,
) -> Dict[str, Any]:
    """Count tasks per type and phase and total the minutes per day."""
    day_index = {day: index for index, day in enumerate(study_days)}
    type_counts: Counter[str] = Counter()
    phase_counts: Counter[str] = Counter()
    minutes_by_day: Dict[str, int] = defaultdict(int)

    for task in tasks:
        type_counts[task.task_type] += 1
        minutes_by_day[task.scheduled_date.isoformat()] += task.estimated_minutes
        index = day_index.get(task.scheduled_date)
        if index is not None:
            phase_counts[phases.phase_for_day(index)] += 1

    total_minutes = sum(task.estimated_minutes for task in tasks)
    busiest: List[int] = sorted(minutes_by_day.values(), reverse=True)
    return {
        "task_count": len(tasks),
        "study_day_count": len(study_days),
        "total_minutes": total_minutes,
        "average_daily_minutes": int(round(total_minutes / len(study_days))) if study_days else 0,
        "peak_daily_minutes": busiest[0] if busiest else 0,
        "task_type_counts": dict(type_counts),
        "phase_task_counts": dict(phase_counts),
        "minutes_by_day": dict(minutes_by_day),
    }


__all__ = ["plan_summary"]
