"""Interleaved practice sessions composed from a learner's review cards."""

from __future__ import annotations

import logging
import math
import random
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .mastery_fallback import CourseMasteryFallback, LessonMasteryStrategy
from .models import (
    CourseMastery,
    PracticeCard,
    PracticeSessionConfig,
    PracticeSessionResult,
    PracticeSessionStats,
    ReviewCard,
    lesson_key,
)

logger = logging.getLogger(__name__)

LOW_MASTERY_THRESHOLD = 0.4
HIGH_MASTERY_THRESHOLD = 0.7
BACKFILL_LESSON_MASTERY = 0.5
BACKFILL_PRIORITY = 0.0
SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class PriorityWeights:
    """Card priority policy. Higher scores are picked first."""

    due_today: float = 100.0
    overdue: float = 150.0
    overdue_per_day: float = 5.0
    overdue_cap: float = 50.0
    low_mastery: float = 80.0
    low_mastery_threshold: float = LOW_MASTERY_THRESHOLD
    new_card: float = 40.0
    recently_reviewed: float = 10.0
    lapse_threshold: int = 2
    per_lapse: float = 10.0
    lapse_cap: float = 30.0


DEFAULT_PRIORITY_WEIGHTS = PriorityWeights()


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def calculate_priority_score(
    card: ReviewCard,
    lesson_mastery: float,
    now: Optional[datetime] = None,
    weights: PriorityWeights = DEFAULT_PRIORITY_WEIGHTS,
    *,
    prioritize_low_mastery: bool = True,
) -> float:
    now = _as_utc(now or datetime.now(timezone.utc))
    days_until_due = math.floor((_as_utc(card.due_date) - now).total_seconds() / SECONDS_PER_DAY)
    score = 0.0

    if days_until_due <= 0:
        score += weights.overdue if days_until_due < 0 else weights.due_today
        score += min(abs(days_until_due) * weights.overdue_per_day, weights.overdue_cap)

    if prioritize_low_mastery and lesson_mastery < weights.low_mastery_threshold:
        score += weights.low_mastery * (1 - lesson_mastery)

    if card.state == "new":
        score += weights.new_card

    if days_until_due > 0 and card.last_review is not None:
        score += weights.recently_reviewed

    if card.lapses > weights.lapse_threshold:
        score += min(card.lapses * weights.per_lapse, weights.lapse_cap)

    return score


def _review_fields(card: ReviewCard) -> Dict[str, object]:
    return card.model_dump(include=set(ReviewCard.model_fields))


def _trailing_run(cards: Sequence[PracticeCard], topic_key: str, end: int) -> int:
    run = 0
    for index in range(end - 1, -1, -1):
        if cards[index].topic_key != topic_key:
            break
        run += 1
    return run


def _leading_run(cards: Sequence[PracticeCard], topic_key: str, start: int) -> int:
    run = 0
    for index in range(start, len(cards)):
        if cards[index].topic_key != topic_key:
            break
        run += 1
    return run


def _insertion_point(cards: Sequence[PracticeCard], topic_key: str, max_consecutive: int) -> int:
    """Latest position where ``topic_key`` fits without an over-long run; the end otherwise."""
    for position in range(len(cards), -1, -1):
        run = _trailing_run(cards, topic_key, position) + 1 + _leading_run(cards, topic_key, position)
        if run <= max_consecutive:
            return position
    return len(cards)


class PracticeSessionComposer:
    """Selects and orders a bounded, interleaved subset of a card pool."""

    def __init__(self, *, weights: PriorityWeights = DEFAULT_PRIORITY_WEIGHTS) -> None:
        self._weights = weights

    def compose(
        self,
        user_id: str,
        cards: Sequence[ReviewCard],
        mastery_data: Iterable[CourseMastery],
        config: Optional[PracticeSessionConfig] = None,
        *,
        now: Optional[datetime] = None,
        seed: Optional[int] = None,
        mastery_strategy: Optional[LessonMasteryStrategy] = None,
    ) -> PracticeSessionResult:
        config = config or PracticeSessionConfig()
        now = _as_utc(now or datetime.now(timezone.utc))
        strategy = mastery_strategy or CourseMasteryFallback(mastery_data)
        max_consecutive = max(1, config.max_consecutive_same_topic)
        target = max(0, config.card_count)

        pool = [card for card in cards if card.user_id == user_id]
        if len(pool) != len(cards):
            logger.warning(
                "Dropped %d cards not owned by %s from the practice pool.",
                len(cards) - len(pool),
                user_id,
            )

        annotated = [self._annotate(card, strategy, now, config) for card in pool]
        ranked = sorted(range(len(annotated)), key=lambda index: -annotated[index].priority_score)

        session: List[PracticeCard] = []
        chosen: Set[int] = set()
        new_taken = 0
        while len(session) < target:
            pick: Optional[int] = None
            for index in ranked:
                if index in chosen:
                    continue
                card = annotated[index]
                if card.state == "new" and new_taken >= config.max_new_cards:
                    continue
                if _trailing_run(session, card.topic_key, len(session)) >= max_consecutive:
                    continue
                pick = index
                break
            if pick is None:
                break
            chosen.add(pick)
            session.append(annotated[pick])
            if annotated[pick].state == "new":
                new_taken += 1

        backfilled = 0
        for index, card in enumerate(pool):
            if len(session) >= target:
                break
            if index in chosen:
                continue
            if card.state == "new" and new_taken >= config.max_new_cards:
                continue
            filler = PracticeCard(
                **_review_fields(card),
                topic_key=lesson_key(card.course_id, card.lesson_index),
                lesson_mastery=BACKFILL_LESSON_MASTERY,
                priority_score=BACKFILL_PRIORITY,
                backfilled=True,
            )
            session.insert(_insertion_point(session, filler.topic_key, max_consecutive), filler)
            chosen.add(index)
            backfilled += 1
            if card.state == "new":
                new_taken += 1

        if config.shuffle:
            session = shuffle_with_constraints(session, max_consecutive, random.Random(seed))

        stats = session_stats(session, now=now)
        stats.requested = target
        stats.delivered = len(session)
        stats.available = len(pool)
        stats.backfilled = backfilled
        if stats.delivered < target:
            logger.info(
                "Practice session for %s delivered %d of %d requested cards (%d available).",
                user_id,
                stats.delivered,
                target,
                stats.available,
            )
        return PracticeSessionResult(cards=session, stats=stats)

    def _annotate(
        self,
        card: ReviewCard,
        strategy: LessonMasteryStrategy,
        now: datetime,
        config: PracticeSessionConfig,
    ) -> PracticeCard:
        mastery = strategy.lesson_mastery(card.course_id, card.lesson_index)
        return PracticeCard(
            **_review_fields(card),
            topic_key=lesson_key(card.course_id, card.lesson_index),
            lesson_mastery=mastery,
            priority_score=calculate_priority_score(
                card,
                mastery,
                now,
                self._weights,
                prioritize_low_mastery=config.prioritize_low_mastery,
            ),
        )


def session_stats(cards: Sequence[PracticeCard], *, now: Optional[datetime] = None) -> PracticeSessionStats:
    now = _as_utc(now or datetime.now(timezone.utc))
    stats = PracticeSessionStats(total_cards=len(cards), delivered=len(cards))
    for card in cards:
        stats.course_breakdown[card.course_id] = stats.course_breakdown.get(card.course_id, 0) + 1
        stats.topic_breakdown[card.topic_key] = stats.topic_breakdown.get(card.topic_key, 0) + 1
        if _as_utc(card.due_date) <= now:
            stats.due_today += 1
        if card.state == "new":
            stats.new_cards += 1
        if card.lesson_mastery < LOW_MASTERY_THRESHOLD:
            stats.from_low_mastery += 1
            stats.mastery_buckets["low"] += 1
        elif card.lesson_mastery < HIGH_MASTERY_THRESHOLD:
            stats.mastery_buckets["medium"] += 1
        else:
            stats.mastery_buckets["high"] += 1
    return stats


def shuffle_with_constraints(
    cards: Sequence[PracticeCard],
    max_consecutive: int = 2,
    rng: Optional[random.Random] = None,
) -> List[PracticeCard]:
    """Shuffle, then swap-repair topic runs longer than ``max_consecutive``.

    Repair stops after ``3 * len(cards)`` attempts, so a pool dominated by a
    single topic can still contain long runs.
    """
    rng = rng or random.Random()
    result = list(cards)
    rng.shuffle(result)
    if len(result) <= max_consecutive:
        return result

    for _ in range(len(result) * 3):
        violation = _find_violation(result, max_consecutive)
        if violation is None:
            break
        swap = _find_swap_candidate(result, violation, max_consecutive)
        if swap is not None:
            result[violation], result[swap] = result[swap], result[violation]
            continue
        start = max(0, violation - max_consecutive)
        end = min(len(result), violation + max_consecutive + 1)
        portion = result[start:end]
        rng.shuffle(portion)
        result[start:end] = portion
    return result


def _find_violation(cards: Sequence[PracticeCard], max_consecutive: int) -> Optional[int]:
    run = 1
    for index in range(1, len(cards)):
        if cards[index].topic_key == cards[index - 1].topic_key:
            run += 1
            if run > max_consecutive:
                return index
        else:
            run = 1
    return None


def _find_swap_candidate(cards: Sequence[PracticeCard], violation: int, max_consecutive: int) -> Optional[int]:
    topic = cards[violation].topic_key
    forward = range(violation + 1, len(cards))
    backward = range(violation - max_consecutive - 1, -1, -1)
    for candidates in (forward, backward):
        for index in candidates:
            if cards[index].topic_key == topic:
                continue
            if not _swap_would_violate(cards, violation, index, max_consecutive):
                return index
    return None


def _swap_would_violate(cards: Sequence[PracticeCard], first: int, second: int, max_consecutive: int) -> bool:
    if _neighbour_topics(cards, second, max_consecutive).count(cards[first].topic_key) >= max_consecutive:
        return True
    return _neighbour_topics(cards, first, max_consecutive).count(cards[second].topic_key) >= max_consecutive


def _neighbour_topics(cards: Sequence[PracticeCard], index: int, span: int) -> List[str]:
    low = max(0, index - span)
    high = min(len(cards) - 1, index + span)
    return [cards[position].topic_key for position in range(low, high + 1) if position != index]


def generate_spaced_interleaving(
    cards: Sequence[PracticeCard],
    config: Optional[PracticeSessionConfig] = None,
) -> List[PracticeCard]:
    """Re-order an already selected set round-robin across topics (ABCABC).

    Each topic contributes at most ``ceil(card_count / topics)`` cards, best
    priority first. A single-topic set is only truncated.
    """
    config = config or PracticeSessionConfig()
    target = max(0, config.card_count)
    groups: "OrderedDict[str, List[PracticeCard]]" = OrderedDict()
    for card in cards:
        groups.setdefault(card.topic_key, []).append(card)
    if len(groups) <= 1:
        return list(cards[:target])

    per_topic = math.ceil(target / len(groups))
    queues = [
        sorted(group, key=lambda card: -card.priority_score)[:per_topic]
        for group in groups.values()
    ]
    result: List[PracticeCard] = []
    depth = 0
    while len(result) < target and any(depth < len(queue) for queue in queues):
        for queue in queues:
            if len(result) >= target:
                break
            if depth < len(queue):
                result.append(queue[depth])
        depth += 1
    return result


def get_due_cards(cards: Iterable[ReviewCard], now: Optional[datetime] = None) -> List[ReviewCard]:
    now = _as_utc(now or datetime.now(timezone.utc))
    return [card for card in cards if _as_utc(card.due_date) <= now]


def get_weak_area_cards(
    cards: Iterable[PracticeCard],
    threshold: float = LOW_MASTERY_THRESHOLD,
) -> List[PracticeCard]:
    return [card for card in cards if card.lesson_mastery < threshold]


def balance_across_courses(cards: Iterable[PracticeCard], max_per_course: int) -> List[PracticeCard]:
    """Keep at most ``max_per_course`` highest-priority cards from each course."""
    by_course: Dict[str, List[PracticeCard]] = OrderedDict()
    for card in cards:
        by_course.setdefault(card.course_id, []).append(card)
    balanced: List[PracticeCard] = []
    for course_cards in by_course.values():
        balanced.extend(sorted(course_cards, key=lambda card: -card.priority_score)[:max_per_course])
    return balanced


composer = PracticeSessionComposer()


def generate_mixed_practice(
    user_id: str,
    cards: Sequence[ReviewCard],
    mastery_data: Iterable[CourseMastery],
    config: Optional[PracticeSessionConfig] = None,
    *,
    now: Optional[datetime] = None,
    seed: Optional[int] = None,
) -> PracticeSessionResult:
    return composer.compose(user_id, cards, mastery_data, config, now=now, seed=seed)


__all__ = [
    "DEFAULT_PRIORITY_WEIGHTS",
    "LOW_MASTERY_THRESHOLD",
    "PracticeSessionComposer",
    "PriorityWeights",
    "balance_across_courses",
    "calculate_priority_score",
    "composer",
    "generate_mixed_practice",
    "generate_spaced_interleaving",
    "get_due_cards",
    "get_weak_area_cards",
    "session_stats",
    "shuffle_with_constraints",
]
