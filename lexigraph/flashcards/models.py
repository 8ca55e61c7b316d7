from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


def as_utc(value: datetime) -> datetime:
    # naive timestamps coming from the review collaborator are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class FlashcardRecord(BaseModel):
    """Read-only view of a flashcard owned by the content collaborator."""

    id: str
    user_id: str
    word: str
    definition: str = ''
    example: Optional[str] = None
    part_of_speech: Optional[str] = None
    difficulty: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator('tags', mode='before')
    @classmethod
    def _split_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(',') if t.strip()]
        return v


class ReviewEvent(BaseModel):
    id: Optional[str] = None
    flashcard_id: str
    user_id: str
    is_correct: bool
    reviewed_at: datetime

    @field_validator('reviewed_at')
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)
