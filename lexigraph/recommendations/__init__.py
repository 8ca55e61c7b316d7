"""
Personalised study recommendations built from review history and the
concept graph.
"""

from .engine import (
	RecommendationEngine,
	RecommendationResult,
	Recommendation,
	RecommendationType,
	Priority,
	UserStats,
	merge_recommendations,
	current_streak,
	NO_FLASHCARDS_REASON,
)

__all__ = [
	'RecommendationEngine',
	'RecommendationResult',
	'Recommendation',
	'RecommendationType',
	'Priority',
	'UserStats',
	'merge_recommendations',
	'current_streak',
	'NO_FLASHCARDS_REASON',
]
