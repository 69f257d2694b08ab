"""Eligible study days between today and the exam."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional, Set

logger = logging.getLogger(__name__)


def build_study_days(today: date, exam_date: date, skip_days: Iterable[date] = ()) -> List[date]:
    """Return days from tomorrow up to, not including, ``exam_date``.

    Days listed in ``skip_days`` are left out. An empty list means no plan is
    possible; it is not an error.
    """
    skipped: Set[date] = set(skip_days)
    days: List[date] = []
    current = today + timedelta(days=1)
    while current < exam_date:
        if current not in skipped:
            days.append(current)
        current += timedelta(days=1)
    if not days:
        logger.info("No eligible study days between %s and exam on %s.", today, exam_date)
    return days


def expand_skip_weekdays(
    today: date,
    exam_date: date,
    weekdays: Iterable[int],
    extra_dates: Optional[Iterable[date]] = None,
) -> List[date]:
    """Turn recurring weekday skips into concrete dates before the exam.

    Weekdays use ``date.weekday()`` numbering (Monday is 0). ``extra_dates``
    are kept as given, ahead of the expanded weekdays, without duplicates.
    """
    skip_weekdays = {day for day in weekdays if 0 <= day <= 6}
    days: List[date] = []
    seen: Set[date] = set()
    for extra in extra_dates or ():
        if extra not in seen:
            seen.add(extra)
            days.append(extra)
    if not skip_weekdays:
        return days
    current = today + timedelta(days=1)
    while current < exam_date:
        if current.weekday() in skip_weekdays and current not in seen:
            seen.add(current)
            days.append(current)
        current += timedelta(days=1)
    return days


__all__ = ["build_study_days", "expand_skip_weekdays"]
