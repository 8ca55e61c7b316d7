import time
from typing import List, Optional

from lexigraph.config import Settings, get_settings
from lexigraph.flashcards.models import FlashcardRecord
from lexigraph.utils import get_logger, log_graph_operation
from .models import ConceptCluster, EnhancedContext, LearningPath, RelatedConcept, RelatedConceptsResult, SimilarConcept
from .paths import find_learning_paths
from .similarity import find_similar_concepts
from .store import ConceptStore
from .traversal import find_concept_clusters, find_related_concepts
from .validation import require_query

LOG = get_logger()

ENHANCED_RELATED_DEPTH = 2
ENHANCED_RELATED_LIMIT = 5
ENHANCED_PATH_MAX_LENGTH = 3
ENHANCED_PATH_MIN_STRENGTH = 0.6
ENHANCED_SIMILAR_LIMIT = 5
ENHANCED_SIMILAR_MIN = 0.5


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


def build_context_text(concepts: List[RelatedConcept], flashcards: List[FlashcardRecord]) -> str:
    """Plain-text block describing graph neighbourhood, for prompt enrichment."""
    lines = ['', '', 'Enhanced Knowledge Graph Context:']
    if concepts:
        lines.append('Related Concepts:')
        for i, c in enumerate(concepts, 1):
            lines.append(f'{i}. {c.title}: {c.description or ""} ({c.relationship_type}, strength: {c.strength:g})')
    if flashcards:
        lines.append('')
        lines.append('Related Flashcards:')
        for i, card in enumerate(flashcards, 1):
            lines.append(f'{i}. {card.word}: {card.definition}')
            if card.example:
                lines.append(f'   Example: {card.example}')
    return '\n'.join(lines) + '\n'


class GraphQueries:
    """Read-side entry point over one store: timing and logging around the engines."""

    def __init__(self, store: ConceptStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()

    def related_concepts(self, word: str, max_depth: int = 1, limit: int = 10, include_flashcards: bool = True) -> RelatedConceptsResult:
        start = time.time()
        result = find_related_concepts(self.store, word, max_depth=max_depth, limit=limit, include_flashcards=include_flashcards, settings=self.settings)
        log_graph_operation(
            'related_concepts', len(result.concepts), len(result.concepts), _elapsed_ms(start),
            query=word, max_depth=max_depth, total_found=result.total_found, flashcards=len(result.flashcards),
        )
        return result

    def learning_paths(self, start_word: str, end_word: Optional[str] = None, max_length: int = 5, min_strength: float = 0.5, include_difficulty: bool = True) -> List[LearningPath]:
        start = time.time()
        paths = find_learning_paths(
            self.store, start_word, end_word=end_word, max_length=max_length,
            min_strength=min_strength, include_difficulty=include_difficulty, settings=self.settings,
        )
        hops = sum(p.length for p in paths)
        log_graph_operation('learning_paths', hops + len(paths), hops, _elapsed_ms(start), query=start_word, end=end_word, paths=len(paths))
        return paths

    def similar_concepts(self, word: str, limit: int = 10, min_similarity: float = 0.5, include_context: bool = True) -> List[SimilarConcept]:
        start = time.time()
        similar = find_similar_concepts(self.store, word, limit=limit, min_similarity=min_similarity, include_context=include_context, settings=self.settings)
        log_graph_operation('similar_concepts', len(similar), 0, _elapsed_ms(start), query=word)
        return similar

    def concept_clusters(self, min_cluster_size: int = 3, min_strength: Optional[float] = None) -> List[ConceptCluster]:
        start = time.time()
        clusters = find_concept_clusters(self.store, min_cluster_size=min_cluster_size, min_strength=min_strength, settings=self.settings)
        log_graph_operation('concept_clusters', sum(c.size for c in clusters), 0, _elapsed_ms(start), clusters=len(clusters))
        return clusters

    def enhanced_context(self, query: str) -> EnhancedContext:
        query = require_query(query, 'query')
        related = self.related_concepts(query, max_depth=ENHANCED_RELATED_DEPTH, limit=ENHANCED_RELATED_LIMIT, include_flashcards=True)
        paths = self.learning_paths(query, max_length=ENHANCED_PATH_MAX_LENGTH, min_strength=ENHANCED_PATH_MIN_STRENGTH)
        similar = self.similar_concepts(query, limit=ENHANCED_SIMILAR_LIMIT, min_similarity=ENHANCED_SIMILAR_MIN, include_context=True)
        return EnhancedContext(
            query=query,
            related_concepts=related.concepts,
            related_flashcards=related.flashcards,
            learning_paths=paths,
            similar_concepts=similar,
            context_text=build_context_text(related.concepts, related.flashcards),
        )
