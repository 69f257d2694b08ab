"""Practice-session endpoints: mixed practice and spaced interleaving."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from .config import get_settings
from .models import CourseMastery, PracticeSessionConfig, PracticeSessionResult
from .payloads import InterleaveRequest, InterleaveResponse, PracticeSessionRequest
from .practice_composer import generate_mixed_practice, generate_spaced_interleaving
from .telemetry import PRACTICE_SESSION_COMPOSED, timed_event

router = APIRouter(prefix="/api/practice", tags=["practice"])
logger = logging.getLogger(__name__)


def _session_config(payload: PracticeSessionRequest) -> PracticeSessionConfig:
    settings = get_settings()

    def pick(value, default):
        return default if value is None else value

    return PracticeSessionConfig(
        card_count=pick(payload.card_count, settings.practice_card_count),
        max_consecutive_same_topic=pick(payload.max_consecutive_same_topic, settings.practice_max_consecutive),
        max_new_cards=pick(payload.max_new_cards, settings.practice_max_new_cards),
        prioritize_low_mastery=pick(payload.prioritize_low_mastery, settings.practice_prioritize_low_mastery),
        shuffle=pick(payload.shuffle, settings.practice_shuffle),
    )


@router.post("/mixed", response_model=PracticeSessionResult, status_code=status.HTTP_200_OK)
def compose_mixed_practice(payload: PracticeSessionRequest) -> PracticeSessionResult:
    config = _session_config(payload)
    mastery = [
        CourseMastery(course_id=entry.course_id, mastery_score=entry.mastery_score)
        for entry in payload.mastery_data
    ]
    with timed_event(
        PRACTICE_SESSION_COMPOSED,
        user_id=payload.user_id,
        pool_size=len(payload.cards),
        requested=config.card_count,
    ) as outcome:
        result = generate_mixed_practice(
            payload.user_id,
            payload.cards,
            mastery,
            config,
            now=payload.now,
            seed=payload.seed,
        )
        outcome["delivered"] = result.stats.delivered
        outcome["available"] = result.stats.available
        outcome["backfilled"] = result.stats.backfilled
        if result.stats.delivered < config.card_count:
            outcome["status"] = "short"
    return result


@router.post("/interleave", response_model=InterleaveResponse, status_code=status.HTTP_200_OK)
def interleave_cards(payload: InterleaveRequest) -> InterleaveResponse:
    card_count = payload.card_count or len(payload.cards) or 1
    cards = generate_spaced_interleaving(payload.cards, PracticeSessionConfig(card_count=card_count))
    return InterleaveResponse(cards=cards, topic_count=len({card.topic_key for card in cards}))
