"""Partition lessons into new, learned and weak by mastery."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from .models import Lesson, LessonRef, MasteryRecord

NEW_LESSON_THRESHOLD = 0.1
WEAK_LESSON_THRESHOLD = 0.6


@dataclass
class LessonClassification:
    active_lessons: List[Lesson] = field(default_factory=list)
    new_lessons: List[Lesson] = field(default_factory=list)
    learned_lessons: List[Lesson] = field(default_factory=list)
    weak_lessons: List[Lesson] = field(default_factory=list)
    mastery: Dict[str, float] = field(default_factory=dict)

    def is_weak(self, key: str) -> bool:
        return any(lesson.key == key for lesson in self.weak_lessons)


def build_mastery_map(records: Iterable[MasteryRecord]) -> Dict[str, float]:
    """Index mastery by lesson key; later records win."""
    return {record.key: record.mastery for record in records}


def classify_lessons(
    lessons: Sequence[Lesson],
    mastery_data: Iterable[MasteryRecord],
    skipped_lessons: Iterable[LessonRef] = (),
) -> LessonClassification:
    skipped = {ref.key for ref in skipped_lessons}
    mastery = build_mastery_map(mastery_data)
    result = LessonClassification(mastery=mastery)

    for lesson in lessons:
        if lesson.key in skipped:
            continue
        result.active_lessons.append(lesson)
        score = mastery.get(lesson.key)
        if score is None or score < NEW_LESSON_THRESHOLD:
            result.new_lessons.append(lesson)
            continue
        result.learned_lessons.append(lesson)
        if score < WEAK_LESSON_THRESHOLD:
            result.weak_lessons.append(lesson)

    return result


__all__ = [
    "LessonClassification",
    "NEW_LESSON_THRESHOLD",
    "WEAK_LESSON_THRESHOLD",
    "build_mastery_map",
    "classify_lessons",
]
