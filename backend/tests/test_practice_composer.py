"""Tests for practice-session composition and interleaving."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import List

from studyplan.mastery_fallback import LessonMasteryTable
from studyplan.models import CourseMastery, MasteryRecord, PracticeCard, PracticeSessionConfig, ReviewCard
from studyplan.practice_composer import (
    PracticeSessionComposer,
    PriorityWeights,
    _insertion_point,
    balance_across_courses,
    calculate_priority_score,
    generate_mixed_practice,
    generate_spaced_interleaving,
    get_due_cards,
    get_weak_area_cards,
    shuffle_with_constraints,
)

NOW = datetime(2026, 2, 10, 12, 0, tzinfo=timezone.utc)


def _card(
    card_id: str,
    course_id: str = "bio",
    lesson_index: int = 0,
    *,
    due_in_days: float = 0,
    state: str = "review",
    user_id: str = "learner-1",
    **extra,
) -> ReviewCard:
    return ReviewCard(
        id=card_id,
        user_id=user_id,
        course_id=course_id,
        lesson_index=lesson_index,
        state=state,
        due_date=NOW + timedelta(days=due_in_days),
        **extra,
    )


def _practice_card(card_id: str, topic: str, priority: float = 0.0) -> PracticeCard:
    course_id, lesson_index = topic.split(":")
    return PracticeCard(
        id=card_id,
        user_id="learner-1",
        course_id=course_id,
        lesson_index=int(lesson_index),
        topic_key=topic,
        priority_score=priority,
        due_date=NOW,
    )


def _longest_run(cards: List[PracticeCard]) -> int:
    longest = run = 0
    previous = None
    for card in cards:
        run = run + 1 if card.topic_key == previous else 1
        previous = card.topic_key
        longest = max(longest, run)
    return longest


def test_priority_score_combines_overdue_mastery_and_lapses() -> None:
    card = _card("c1", due_in_days=-3, lapses=4)

    score = calculate_priority_score(card, 0.2, NOW)

    assert abs(score - 259.0) < 1e-6


def test_priority_score_for_new_card_due_today() -> None:
    card = _card("c1", state="new")

    assert calculate_priority_score(card, 0.5, NOW) == 140.0


def test_priority_score_for_recently_reviewed_future_card() -> None:
    card = _card("c1", due_in_days=5, last_review=NOW - timedelta(days=1))

    assert calculate_priority_score(card, 0.9, NOW) == 10.0


def test_priority_low_mastery_bonus_can_be_disabled() -> None:
    card = _card("c1", due_in_days=5)

    assert calculate_priority_score(card, 0.1, NOW) == 72.0
    assert calculate_priority_score(card, 0.1, NOW, prioritize_low_mastery=False) == 0.0


def test_overdue_bonus_is_capped() -> None:
    card = _card("c1", due_in_days=-30)

    assert calculate_priority_score(card, 0.9, NOW) == 200.0


def test_custom_weights_change_scoring() -> None:
    weights = PriorityWeights(due_today=1.0)

    assert calculate_priority_score(_card("c1"), 0.9, NOW, weights) == 1.0


def test_session_interleaves_topics_and_backfills() -> None:
    overdue = [_card(f"a{index}", "bio", 0, due_in_days=-1) for index in range(6)]
    upcoming = [_card(f"b{index}", "chem", 0, due_in_days=4) for index in range(6)]
    config = PracticeSessionConfig(card_count=12, max_consecutive_same_topic=2)

    result = generate_mixed_practice("learner-1", overdue + upcoming, [], config, now=NOW)

    assert len(result.cards) == 12
    assert len({card.id for card in result.cards}) == 12
    assert _longest_run(result.cards) <= 2
    assert result.stats.delivered == 12
    assert result.stats.requested == 12
    assert result.stats.available == 12
    assert result.stats.backfilled == 2
    backfilled = [card for card in result.cards if card.backfilled]
    assert all(card.priority_score == 0.0 and card.lesson_mastery == 0.5 for card in backfilled)


def test_high_priority_cards_lead_the_session() -> None:
    cards = [
        _card("later", "bio", 1, due_in_days=6),
        _card("overdue", "bio", 0, due_in_days=-2),
        _card("due", "chem", 0),
    ]

    result = generate_mixed_practice("learner-1", cards, [], PracticeSessionConfig(card_count=2), now=NOW)

    assert [card.id for card in result.cards] == ["overdue", "due"]


def test_new_card_cap_is_never_exceeded() -> None:
    cards = [_card(f"n{index}", "bio", index, state="new") for index in range(8)]
    cards.append(_card("r0", "chem", 0, due_in_days=3))

    result = generate_mixed_practice(
        "learner-1",
        cards,
        [],
        PracticeSessionConfig(card_count=8, max_new_cards=2),
        now=NOW,
    )

    assert sum(1 for card in result.cards if card.state == "new") == 2
    assert len(result.cards) == 3
    assert result.stats.delivered == 3
    assert result.stats.new_cards == 2


def test_session_ignores_cards_of_other_users() -> None:
    cards = [_card("mine"), _card("theirs", user_id="someone-else")]

    result = generate_mixed_practice("learner-1", cards, [], PracticeSessionConfig(card_count=5), now=NOW)

    assert [card.id for card in result.cards] == ["mine"]
    assert result.stats.available == 1


def test_small_pool_returns_everything() -> None:
    cards = [_card("c0", "bio", 0), _card("c1", "chem", 0)]

    result = generate_mixed_practice("learner-1", cards, [], PracticeSessionConfig(card_count=10), now=NOW)

    assert {card.id for card in result.cards} == {"c0", "c1"}
    assert result.stats.delivered == 2
    assert result.stats.requested == 10


def test_empty_pool_yields_empty_session() -> None:
    result = generate_mixed_practice("learner-1", [], [], now=NOW)

    assert result.cards == []
    assert result.stats.delivered == 0
    assert result.stats.mastery_buckets == {"low": 0, "medium": 0, "high": 0}


def test_course_mastery_drives_stats_buckets() -> None:
    cards = [_card("c0", "bio", 0), _card("c1", "chem", 0), _card("c2", "art", 0)]
    mastery = [
        CourseMastery(course_id="bio", mastery_score=0.1),
        CourseMastery(course_id="chem", mastery_score=0.9),
    ]

    result = generate_mixed_practice("learner-1", cards, mastery, PracticeSessionConfig(card_count=3), now=NOW)

    assert result.cards[0].course_id == "bio"
    assert result.stats.mastery_buckets == {"low": 1, "medium": 1, "high": 1}
    assert result.stats.from_low_mastery == 1
    assert result.stats.course_breakdown == {"bio": 1, "chem": 1, "art": 1}
    assert result.stats.due_today == 3


def test_lesson_level_strategy_can_be_injected() -> None:
    cards = [_card("weak", "bio", 1, due_in_days=2), _card("strong", "bio", 0, due_in_days=2)]
    table = LessonMasteryTable(
        [
            MasteryRecord(course_id="bio", lesson_index=0, mastery=0.9),
            MasteryRecord(course_id="bio", lesson_index=1, mastery=0.1),
        ]
    )

    result = PracticeSessionComposer().compose(
        "learner-1",
        cards,
        [],
        PracticeSessionConfig(card_count=1),
        now=NOW,
        mastery_strategy=table,
    )

    assert [card.id for card in result.cards] == ["weak"]
    assert result.cards[0].lesson_mastery == 0.1


def test_seeded_shuffle_is_reproducible_and_keeps_cards() -> None:
    cards = [_card(f"c{index}", f"course{index % 3}", 0, due_in_days=-index) for index in range(9)]
    config = PracticeSessionConfig(card_count=9, shuffle=True)

    first = generate_mixed_practice("learner-1", cards, [], config, now=NOW, seed=11)
    second = generate_mixed_practice("learner-1", cards, [], config, now=NOW, seed=11)

    assert [card.id for card in first.cards] == [card.id for card in second.cards]
    assert sorted(card.id for card in first.cards) == sorted(card.id for card in cards)


def test_shuffle_with_constraints_breaks_long_runs() -> None:
    cards = (
        [_practice_card(f"a{index}", "bio:0") for index in range(4)]
        + [_practice_card(f"b{index}", "chem:0") for index in range(4)]
        + [_practice_card(f"c{index}", "art:0") for index in range(4)]
    )

    shuffled = shuffle_with_constraints(cards, 2, random.Random(3))

    assert sorted(card.id for card in shuffled) == sorted(card.id for card in cards)
    assert _longest_run(shuffled) <= 2


def test_shuffle_of_short_list_only_permutes() -> None:
    cards = [_practice_card("a", "bio:0"), _practice_card("b", "bio:0")]

    shuffled = shuffle_with_constraints(cards, 2, random.Random(0))

    assert sorted(card.id for card in shuffled) == ["a", "b"]


def test_spaced_interleaving_round_robins_topics() -> None:
    cards = (
        [_practice_card(f"a{index}", "bio:0", priority=10 - index) for index in range(3)]
        + [_practice_card(f"b{index}", "chem:0", priority=10 - index) for index in range(3)]
        + [_practice_card("c0", "art:0")]
    )

    ordered = generate_spaced_interleaving(cards, PracticeSessionConfig(card_count=6))

    assert [card.id for card in ordered] == ["a0", "b0", "c0", "a1", "b1"]


def test_spaced_interleaving_single_topic_truncates() -> None:
    cards = [_practice_card(f"a{index}", "bio:0") for index in range(5)]

    ordered = generate_spaced_interleaving(cards, PracticeSessionConfig(card_count=3))

    assert [card.id for card in ordered] == ["a0", "a1", "a2"]


def test_due_and_weak_area_filters() -> None:
    cards = [_card("due", due_in_days=-1), _card("later", due_in_days=2)]
    assert [card.id for card in get_due_cards(cards, NOW)] == ["due"]

    weak = _practice_card("weak", "bio:0").model_copy(update={"lesson_mastery": 0.2})
    strong = _practice_card("strong", "bio:0").model_copy(update={"lesson_mastery": 0.8})
    assert [card.id for card in get_weak_area_cards([weak, strong])] == ["weak"]


def test_balance_across_courses_keeps_top_cards() -> None:
    cards = [
        _practice_card("a-low", "bio:0", priority=1),
        _practice_card("a-high", "bio:1", priority=9),
        _practice_card("a-mid", "bio:2", priority=5),
        _practice_card("b-only", "chem:0", priority=3),
    ]

    balanced = balance_across_courses(cards, 2)

    assert [card.id for card in balanced] == ["a-high", "a-mid", "b-only"]


def test_five_card_pool_with_default_count() -> None:
    cards = [_card(f"c{index}", "bio", index % 2, due_in_days=index - 2) for index in range(5)]

    result = generate_mixed_practice("learner-1", cards, [], PracticeSessionConfig(card_count=20), now=NOW)

    assert len(result.cards) == 5
    assert result.stats.delivered == result.stats.available == 5
    assert result.stats.requested == 20


def test_spaced_interleaving_with_negative_count_is_empty() -> None:
    single = [_practice_card(f"a{index}", "bio:0") for index in range(4)]
    mixed = single + [_practice_card("b0", "chem:0")]
    config = PracticeSessionConfig(card_count=-2)

    assert generate_spaced_interleaving(single, config) == []
    assert generate_spaced_interleaving(mixed, config) == []


def test_backfill_goes_to_latest_position_without_long_run() -> None:
    session = [
        _practice_card("a0", "bio:0"),
        _practice_card("a1", "bio:0"),
        _practice_card("b0", "chem:0"),
        _practice_card("b1", "chem:0"),
    ]

    assert _insertion_point(session, "bio:0", 2) == 4
    assert _insertion_point(session, "chem:0", 2) == 1
    assert _insertion_point(session[:2], "bio:0", 2) == 2
