"""Structural similarity between concepts.

Two concepts are similar when their typed, weighted relationships look alike:
for every edge of the query concept, every other edge of the same type with a
comparable strength counts as one match for each of its endpoints. The score
is the raw match count, not a normalised value.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from lexigraph.config import Settings, get_settings
from lexigraph.utils import get_logger
from .models import ConceptContext, ConceptEdge, SimilarConcept
from .store import GraphStore
from .validation import require_non_negative, require_non_negative_number, require_query

LOG = get_logger()

# absorbs float noise such as 0.8 - 0.2 == 0.6000000000000001
_EPSILON = 1e-9


def _sibling_edges(store: GraphStore, edge: ConceptEdge, tolerance: float) -> List[ConceptEdge]:
    low = max(0.0, edge.strength - tolerance - _EPSILON)
    high = min(1.0, edge.strength + tolerance + _EPSILON)
    return [e for e in store.edges_by_type(edge.type, low, high) if e.id != edge.id]


def concept_context(store: GraphStore, node_id: str, size: int) -> List[ConceptContext]:
    context = []
    for edge in store.edges_touching(node_id)[:size]:
        other = store.get_node(edge.other_end(node_id))
        if other is None:
            continue
        context.append(ConceptContext(concept=other.title, relationship=edge.type, strength=edge.strength))
    return context


def find_similar_concepts(
    store: GraphStore,
    word: str,
    limit: int = 10,
    min_similarity: float = 0.5,
    include_context: bool = True,
    settings: Optional[Settings] = None,
) -> List[SimilarConcept]:
    settings = settings or get_settings()
    word = require_query(word)
    require_non_negative(limit, 'limit')
    min_similarity = require_non_negative_number(min_similarity, 'min_similarity')
    if limit == 0:
        return []

    target = store.find_node_by_text(word)
    if target is None:
        LOG.info('concept_not_found', extra={'query': word})
        return []

    own_edges = store.edges_touching(target.id)
    tolerance = settings.SIMILARITY_STRENGTH_TOLERANCE
    workers = max(1, settings.SIMILARITY_WORKERS)
    if workers > 1 and len(own_edges) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(own_edges))) as pool:
            sibling_lists = list(pool.map(lambda e: _sibling_edges(store, e, tolerance), own_edges))
    else:
        sibling_lists = [_sibling_edges(store, e, tolerance) for e in own_edges]

    scores: Dict[str, Dict] = {}
    for siblings in sibling_lists:
        for sibling in siblings:
            for node_id in sibling.endpoints:
                if node_id == target.id:
                    continue
                entry = scores.setdefault(node_id, {'score': 0})
                entry['score'] += 1
                entry['type'] = sibling.type
                entry['strength'] = sibling.strength

    candidates = [(nid, e) for nid, e in scores.items() if e['score'] >= min_similarity]
    candidates.sort(key=lambda item: item[1]['score'], reverse=True)

    results: List[SimilarConcept] = []
    for node_id, entry in candidates:
        if len(results) >= limit:
            break
        node = store.get_node(node_id)
        if node is None:
            continue
        results.append(SimilarConcept(
            id=node.id,
            concept=node.title,
            description=node.description,
            shared_relationship_type=entry['type'],
            similarity_score=entry['score'],
            strength=entry['strength'],
            context=concept_context(store, node.id, settings.SIMILARITY_CONTEXT_SIZE) if include_context else None,
        ))
    return results
