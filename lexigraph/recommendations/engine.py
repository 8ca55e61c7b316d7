import time
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from lexigraph.config import Settings, get_settings
from lexigraph.flashcards.models import FlashcardRecord, as_utc
from lexigraph.flashcards.spaced_repetition import accuracy, review_schedule
from lexigraph.knowledge_graph.graph_queries import GraphQueries
from lexigraph.knowledge_graph.store import ConceptStore
from lexigraph.knowledge_graph.validation import InvalidParameter, require_non_negative, require_query
from lexigraph.utils import get_logger, log_recommendations

LOG = get_logger()

NO_FLASHCARDS_REASON = 'No flashcards found. Create some flashcards to get recommendations!'

WEAK_AREA_SCORE_SCALE = 100
SPACED_BASE_SCORE = 80
SPACED_OVERDUE_STEP = 5
GRAPH_SCORE = 75
STALE_SCORE = 70

GRAPH_SIGNAL_DEPTH = 1
GRAPH_SIGNAL_RELATED_LIMIT = 3


class RecommendationType(str, Enum):
    WEAK_AREA = 'weak_area'
    SPACED_REPETITION = 'spaced_repetition'
    KNOWLEDGE_GRAPH = 'knowledge_graph'
    RELATED_CONCEPT = 'related_concept'


class Priority(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


PRIORITY_ORDER = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}

DIFFICULTY_FILTERS = ('easy', 'medium', 'hard', 'all')


class Recommendation(BaseModel):
    flashcard: FlashcardRecord
    type: RecommendationType
    score: float
    reason: str
    priority: Priority


class UserStats(BaseModel):
    total_flashcards: int = 0
    studied_today: int = 0
    current_streak: int = 0
    weak_areas: int = 0


class RecommendationResult(BaseModel):
    recommendations: List[Recommendation] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)
    total_found: int = 0
    user_stats: UserStats = Field(default_factory=UserStats)


def merge_recommendations(candidates: Iterable[Recommendation], limit: int) -> List[Recommendation]:
    """First occurrence per flashcard wins, then priority bucket, then score."""
    seen = set()
    unique = []
    for rec in candidates:
        if rec.flashcard.id in seen:
            continue
        seen.add(rec.flashcard.id)
        unique.append(rec)
    unique.sort(key=lambda r: (PRIORITY_ORDER[r.priority], r.score), reverse=True)
    return unique[:limit]


def current_streak(days: Iterable[date], today: date) -> int:
    """Consecutive study days ending today, or yesterday when today is still empty."""
    studied = set(days)
    cursor = today if today in studied else today - timedelta(days=1)
    streak = 0
    while cursor in studied:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecommendationEngine:
    """Combines four study signals into one ranked list per user.

    Signals run in a fixed order (weak area, spaced repetition, knowledge
    graph, staleness) and each is isolated: an exception inside one is logged
    and that signal contributes nothing. Only failing to list the user's
    flashcards aborts the request.
    """

    def __init__(
        self,
        store: ConceptStore,
        queries: Optional[GraphQueries] = None,
        settings: Optional[Settings] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.queries = queries or GraphQueries(store, self.settings)
        self.now_fn = now_fn or _utcnow

    def recommendations(self, user_id: str, limit: int = 10, include_reasons: bool = True, difficulty: str = 'all') -> RecommendationResult:
        user_id = require_query(user_id, 'user_id')
        require_non_negative(limit, 'limit')
        if not isinstance(difficulty, str) or difficulty.lower() not in DIFFICULTY_FILTERS:
            raise InvalidParameter(f'difficulty must be one of {", ".join(DIFFICULTY_FILTERS)}')
        difficulty = difficulty.lower()

        started = time.time()
        now = as_utc(self.now_fn())
        flashcards = self.store.flashcards_for_user(user_id)
        if not flashcards:
            LOG.info('no_flashcards', extra={'user_id': user_id})
            return RecommendationResult(reasons=[NO_FLASHCARDS_REASON])

        stats = self.user_stats(user_id, len(flashcards), now)

        if difficulty != 'all':
            flashcards = [f for f in flashcards if (f.difficulty or '').lower() == difficulty]

        signals = [
            (RecommendationType.WEAK_AREA, self._weak_area),
            (RecommendationType.SPACED_REPETITION, self._spaced_repetition),
            (RecommendationType.KNOWLEDGE_GRAPH, self._knowledge_graph),
            (RecommendationType.RELATED_CONCEPT, self._stale),
        ]
        candidates: List[Recommendation] = []
        signal_counts: Dict[str, int] = {}
        failed: List[str] = []
        if flashcards and limit > 0:
            for kind, generate in signals:
                try:
                    found = generate(flashcards, limit, now)
                except Exception:
                    LOG.exception('signal_failed', exc_info=True, extra={'signal': kind.value, 'user_id': user_id})
                    failed.append(kind.value)
                    found = []
                signal_counts[kind.value] = len(found)
                candidates.extend(found)

        merged = merge_recommendations(candidates, limit)
        reasons = self.reasons(merged, stats) if include_reasons else []
        log_recommendations(user_id, len(merged), signal_counts, int((time.time() - started) * 1000), failed_signals=failed)
        return RecommendationResult(recommendations=merged, reasons=reasons, total_found=len(merged), user_stats=stats)

    def _weak_area(self, flashcards: List[FlashcardRecord], limit: int, now: datetime) -> List[Recommendation]:
        threshold = self.settings.WEAK_AREA_ACCURACY_THRESHOLD
        found = []
        for card in flashcards:
            reviews = self.store.reviews_for_flashcard(card.id, limit=self.settings.WEAK_AREA_REVIEW_WINDOW)
            acc = accuracy(reviews)
            if acc is None or acc >= threshold:
                continue
            found.append(Recommendation(
                flashcard=card,
                type=RecommendationType.WEAK_AREA,
                score=(threshold - acc) * WEAK_AREA_SCORE_SCALE,
                reason=f'Low accuracy ({acc * 100:.0f}%) - needs more practice',
                priority=Priority.HIGH,
            ))
        found.sort(key=lambda r: r.score, reverse=True)
        return found[:limit]

    def _spaced_repetition(self, flashcards: List[FlashcardRecord], limit: int, now: datetime) -> List[Recommendation]:
        found = []
        for card in flashcards:
            schedule = review_schedule(self.store.reviews_for_flashcard(card.id), now)
            if schedule is None or not schedule.due:
                continue
            found.append(Recommendation(
                flashcard=card,
                type=RecommendationType.SPACED_REPETITION,
                score=SPACED_BASE_SCORE + SPACED_OVERDUE_STEP * schedule.days_overdue,
                reason=f'Due for review ({schedule.days_since_review} days since last study)',
                priority=Priority.HIGH,
            ))
        found.sort(key=lambda r: r.score, reverse=True)
        return found[:limit]

    def _knowledge_graph(self, flashcards: List[FlashcardRecord], limit: int, now: datetime) -> List[Recommendation]:
        since = now - timedelta(days=self.settings.GRAPH_SIGNAL_LOOKBACK_DAYS)
        seeds: List[str] = []
        for review in self.store.recent_reviews(since, limit=self.settings.GRAPH_SIGNAL_SEED_LIMIT):
            card = self.store.get_flashcard(review.flashcard_id)
            if card is not None and card.word not in seeds:
                seeds.append(card.word)

        owned = {c.id: c for c in flashcards}
        found = []
        for word in seeds:
            related = self.queries.related_concepts(word, max_depth=GRAPH_SIGNAL_DEPTH, limit=GRAPH_SIGNAL_RELATED_LIMIT, include_flashcards=True)
            for card in related.flashcards:
                if card.id not in owned:
                    continue
                found.append(Recommendation(
                    flashcard=owned[card.id],
                    type=RecommendationType.KNOWLEDGE_GRAPH,
                    score=GRAPH_SCORE,
                    reason=f'Related to "{word}" - builds on recent learning',
                    priority=Priority.MEDIUM,
                ))
        return found[:limit]

    def _stale(self, flashcards: List[FlashcardRecord], limit: int, now: datetime) -> List[Recommendation]:
        threshold = now - timedelta(days=self.settings.STALE_AFTER_DAYS)
        found = []
        for card in flashcards:
            last = self.store.reviews_for_flashcard(card.id, limit=1)
            if last and last[0].reviewed_at >= threshold:
                continue
            found.append(Recommendation(
                flashcard=card,
                type=RecommendationType.RELATED_CONCEPT,
                score=STALE_SCORE,
                reason="Related to concepts you've been studying",
                priority=Priority.MEDIUM,
            ))
        return found[:limit]

    def user_stats(self, user_id: str, total_flashcards: int, now: datetime) -> UserStats:
        try:
            midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
            studied_today = len(self.store.reviews_for_user(user_id, since=midnight))

            recent = self.store.reviews_for_user(user_id, since=now - timedelta(days=self.settings.STATS_WEAK_AREA_DAYS))
            per_card = defaultdict(list)
            for review in recent:
                per_card[review.flashcard_id].append(review)
            weak_areas = sum(
                1 for reviews in per_card.values()
                if len(reviews) >= self.settings.STATS_WEAK_AREA_MIN_REVIEWS
                and accuracy(reviews) < self.settings.WEAK_AREA_ACCURACY_THRESHOLD
            )

            history = self.store.reviews_for_user(user_id, since=now - timedelta(days=self.settings.STATS_STREAK_LOOKBACK_DAYS))
            streak = current_streak((r.reviewed_at.date() for r in history), now.date())
        except Exception:
            LOG.exception('user_stats_failed', exc_info=True, extra={'user_id': user_id})
            return UserStats(total_flashcards=total_flashcards)

        return UserStats(total_flashcards=total_flashcards, studied_today=studied_today, current_streak=streak, weak_areas=weak_areas)

    def reasons(self, recommendations: List[Recommendation], stats: UserStats) -> List[str]:
        reasons = []
        if stats.studied_today == 0:
            reasons.append('Start your daily study session!')
        if stats.weak_areas > 0:
            reasons.append(f'Focus on {stats.weak_areas} weak areas to improve accuracy')
        if stats.current_streak > 0:
            reasons.append(f'Keep your {stats.current_streak}-day streak going!')

        types = {r.type for r in recommendations}
        if RecommendationType.WEAK_AREA in types:
            reasons.append('Review flashcards with low accuracy')
        if RecommendationType.SPACED_REPETITION in types:
            reasons.append('Study overdue flashcards for better retention')
        if RecommendationType.KNOWLEDGE_GRAPH in types:
            reasons.append("Build on related concepts you've been studying")
        if RecommendationType.RELATED_CONCEPT in types:
            reasons.append('Revisit flashcards you have not reviewed lately')
        return reasons
