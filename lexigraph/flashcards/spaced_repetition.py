"""Interval schedule used to decide when a reviewed flashcard is due again.

Review counts index into a fixed interval ladder (days); counts past the end
of the ladder reuse the last interval.
"""
from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel

from .models import ReviewEvent, as_utc

REVIEW_INTERVALS_DAYS = (1, 3, 7, 14)
SECONDS_PER_DAY = 24 * 60 * 60


class ReviewSchedule(BaseModel):
    review_count: int
    days_since_review: int
    expected_interval: int
    days_overdue: int
    due: bool


def expected_interval(review_count: int, intervals: Sequence[int] = REVIEW_INTERVALS_DAYS) -> int:
    if review_count < 1:
        raise ValueError('review_count must be >= 1')
    return intervals[min(review_count - 1, len(intervals) - 1)]


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, rounded down."""
    elapsed = (as_utc(later) - as_utc(earlier)).total_seconds()
    return max(0, math.floor(elapsed / SECONDS_PER_DAY))


def review_schedule(reviews: List[ReviewEvent], now: datetime, intervals: Sequence[int] = REVIEW_INTERVALS_DAYS) -> Optional[ReviewSchedule]:
    """Schedule for a flashcard given its reviews (any order); None when never reviewed."""
    if not reviews:
        return None
    last = max(r.reviewed_at for r in reviews)
    count = len(reviews)
    days = days_between(last, now)
    interval = expected_interval(count, intervals)
    return ReviewSchedule(
        review_count=count,
        days_since_review=days,
        expected_interval=interval,
        days_overdue=days - interval,
        due=days >= interval,
    )


def accuracy(reviews: List[ReviewEvent]) -> Optional[float]:
    if not reviews:
        return None
    return sum(1 for r in reviews if r.is_correct) / len(reviews)
