"""
Flashcard records consumed from the content collaborator and the
spaced repetition schedule used by the recommendation engine.
"""

from .models import FlashcardRecord, ReviewEvent
from .spaced_repetition import (
	REVIEW_INTERVALS_DAYS,
	ReviewSchedule,
	expected_interval,
	review_schedule,
	days_between,
	accuracy,
)

__all__ = [
	'FlashcardRecord',
	'ReviewEvent',
	'REVIEW_INTERVALS_DAYS',
	'ReviewSchedule',
	'expected_interval',
	'review_schedule',
	'days_between',
	'accuracy',
]
