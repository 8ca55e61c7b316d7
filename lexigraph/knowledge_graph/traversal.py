"""Breadth-first related-concept expansion and strong-edge clustering."""
from collections import deque
from typing import Dict, List, Optional

from lexigraph.config import Settings, get_settings
from lexigraph.utils import get_logger
from .models import ClusterMember, ConceptCluster, ConceptNode, RelatedConcept, RelatedConceptsResult
from .store import ConceptStore, GraphStore
from .validation import require_non_negative, require_query, require_strength

LOG = get_logger()


def find_related_concepts(
    store: ConceptStore,
    word: str,
    max_depth: int = 1,
    limit: int = 10,
    include_flashcards: bool = True,
    settings: Optional[Settings] = None,
) -> RelatedConceptsResult:
    """Concepts reachable from ``word`` within ``max_depth`` expansions.

    The start node is expanded at depth 0, so its direct neighbours are
    reported with depth 0 and ``max_depth=0`` returns exactly those. A node
    is claimed by the first expansion that discovers it and is never
    re-reported, even if a stronger edge reaches it later.
    """
    settings = settings or get_settings()
    word = require_query(word)
    require_non_negative(max_depth, 'max_depth')
    require_non_negative(limit, 'limit')
    if limit == 0:
        return RelatedConceptsResult()

    start = store.find_node_by_text(word)
    if start is None:
        LOG.info('concept_not_found', extra={'query': word})
        return RelatedConceptsResult()

    visited = {start.id}
    queue = deque([(start.id, 0)])
    found: List[RelatedConcept] = []
    capped = False

    while queue and not capped:
        node_id, depth = queue.popleft()
        for edge in store.edges_touching(node_id):
            other_id = edge.other_end(node_id)
            if other_id in visited:
                continue
            if len(visited) > settings.TRAVERSAL_MAX_NODES:
                capped = True
                break
            visited.add(other_id)
            other = store.get_node(other_id)
            if other is None:
                continue
            found.append(RelatedConcept(
                id=other.id,
                title=other.title,
                description=other.description,
                relationship_type=edge.type,
                strength=edge.strength,
                direction=edge.direction_from(node_id),
                depth=depth,
            ))
            if depth < max_depth:
                queue.append((other_id, depth + 1))

    if capped:
        LOG.warning('traversal_node_cap_reached', extra={'query': word, 'cap': settings.TRAVERSAL_MAX_NODES})

    ranked = sorted(found, key=lambda c: c.strength, reverse=True)[:limit]

    flashcards = []
    if include_flashcards and ranked:
        titles = [c.title for c in ranked] + [word]
        flashcards = store.search_flashcards(titles, word, limit=settings.RELATED_FLASHCARD_LIMIT)

    return RelatedConceptsResult(concepts=ranked, flashcards=flashcards, total_found=len(found))


def find_concept_clusters(store: GraphStore, min_cluster_size: int = 3, min_strength: Optional[float] = None, settings: Optional[Settings] = None) -> List[ConceptCluster]:
    """Connected components over edges at least ``min_strength`` strong."""
    settings = settings or get_settings()
    require_non_negative(min_cluster_size, 'min_cluster_size')
    min_strength = require_strength(settings.CLUSTER_MIN_STRENGTH if min_strength is None else min_strength, 'min_strength')

    nodes: Dict[str, ConceptNode] = {n.id: n for n in store.list_nodes()}
    visited = set()
    clusters: List[ConceptCluster] = []

    for node in nodes.values():
        if node.id in visited:
            continue
        visited.add(node.id)
        members: List[ClusterMember] = []
        queue = deque([node.id])
        while queue:
            current = nodes.get(queue.popleft())
            if current is None:
                continue
            members.append(ClusterMember(id=current.id, title=current.title, description=current.description))
            for edge in store.edges_touching(current.id):
                if edge.strength < min_strength:
                    continue
                neighbour = edge.other_end(current.id)
                if neighbour not in visited:
                    visited.add(neighbour)
                    queue.append(neighbour)

        if len(members) >= max(1, min_cluster_size):
            clusters.append(ConceptCluster(
                cluster_id=len(clusters) + 1,
                concepts=members,
                size=len(members),
                center_concept=members[0].title,
            ))

    return clusters
