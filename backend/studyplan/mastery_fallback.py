"""Lesson-level mastery lookup strategies for practice composition."""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Protocol

from .models import CourseMastery, MasteryRecord, lesson_key

DEFAULT_LESSON_MASTERY = 0.5


class LessonMasteryStrategy(Protocol):
    def lesson_mastery(self, course_id: str, lesson_index: int) -> float:
        ...


class CourseMasteryFallback:
    """Every lesson inherits the mastery score of its course.

    An approximation used while only course-level mastery is available.
    Unknown courses fall back to ``default``.
    """

    def __init__(self, course_mastery: Iterable[CourseMastery], *, default: float = DEFAULT_LESSON_MASTERY) -> None:
        self._scores: Dict[str, float] = {entry.course_id: entry.mastery_score for entry in course_mastery}
        self._default = default

    def lesson_mastery(self, course_id: str, lesson_index: int) -> float:
        return self._scores.get(course_id, self._default)


class LessonMasteryTable:
    """Per-lesson mastery with an optional course-level fallback."""

    def __init__(
        self,
        records: Iterable[MasteryRecord],
        *,
        fallback: Optional[LessonMasteryStrategy] = None,
        default: float = DEFAULT_LESSON_MASTERY,
    ) -> None:
        self._scores: Dict[str, float] = {record.key: record.mastery for record in records}
        self._fallback = fallback
        self._default = default

    def lesson_mastery(self, course_id: str, lesson_index: int) -> float:
        score = self._scores.get(lesson_key(course_id, lesson_index))
        if score is not None:
            return score
        if self._fallback is not None:
            return self._fallback.lesson_mastery(course_id, lesson_index)
        return self._default


__all__ = [
    "CourseMasteryFallback",
    "DEFAULT_LESSON_MASTERY",
    "LessonMasteryStrategy",
    "LessonMasteryTable",
]
