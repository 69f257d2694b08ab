import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    review_placement: Literal["random", "even"] = Field("random", alias="STUDYPLAN_REVIEW_PLACEMENT")
    review_seed: Optional[int] = Field(None, alias="STUDYPLAN_REVIEW_SEED")
    practice_card_count: int = Field(20, ge=1, alias="STUDYPLAN_PRACTICE_CARD_COUNT")
    practice_max_consecutive: int = Field(2, ge=1, alias="STUDYPLAN_PRACTICE_MAX_CONSECUTIVE")
    practice_max_new_cards: int = Field(5, ge=0, alias="STUDYPLAN_PRACTICE_MAX_NEW_CARDS")
    practice_prioritize_low_mastery: bool = Field(True, alias="STUDYPLAN_PRACTICE_PRIORITIZE_LOW_MASTERY")
    practice_shuffle: bool = Field(False, alias="STUDYPLAN_PRACTICE_SHUFFLE")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[call-arg]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid scheduler configuration: {exc}") from exc
