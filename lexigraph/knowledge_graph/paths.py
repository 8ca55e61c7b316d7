"""Depth-first enumeration of learning paths along outgoing edges."""
from typing import Dict, List, Optional, Tuple

from lexigraph.config import Settings, get_settings
from lexigraph.utils import get_logger
from .models import ConceptNode, LearningPath, PathStep
from .store import GraphStore
from .validation import require_non_negative, require_query, require_strength

LOG = get_logger()

EASY = 'easy'
MEDIUM = 'medium'
HARD = 'hard'


def path_difficulty(avg_strength: float, length: int) -> str:
    if avg_strength >= 0.8 and length <= 2:
        return EASY
    if avg_strength >= 0.6 and length <= 3:
        return MEDIUM
    return HARD


def _to_path(steps: Tuple[PathStep, ...], include_difficulty: bool) -> LearningPath:
    total = sum(s.strength for s in steps)
    length = len(steps)
    avg = total / length
    return LearningPath(
        path=list(steps),
        length=length,
        total_strength=total,
        avg_strength=avg,
        difficulty=path_difficulty(avg, length) if include_difficulty else None,
    )


def find_learning_paths(
    store: GraphStore,
    start_word: str,
    end_word: Optional[str] = None,
    max_length: int = 5,
    min_strength: float = 0.5,
    include_difficulty: bool = True,
    settings: Optional[Settings] = None,
) -> List[LearningPath]:
    """Top paths from ``start_word``, ranked by average strength per hop.

    With ``end_word`` a path is accepted when it reaches the end concept.
    Without it every path of two or more hops is a candidate. Nodes never
    repeat within one path. The number of expanded nodes is capped by
    ``PATH_MAX_EXPANSIONS`` whatever ``max_length`` is.
    """
    settings = settings or get_settings()
    start_word = require_query(start_word, 'start_word')
    if end_word is not None:
        end_word = require_query(end_word, 'end_word')
    require_non_negative(max_length, 'max_length')
    min_strength = require_strength(min_strength, 'min_strength')
    if max_length == 0:
        return []

    start = store.find_node_by_text(start_word)
    if start is None:
        LOG.info('concept_not_found', extra={'query': start_word})
        return []

    end: Optional[ConceptNode] = None
    if end_word is not None:
        end = store.find_node_by_text(end_word)
        if end is None:
            LOG.info('concept_not_found', extra={'query': end_word})
            return []
        if end.id == start.id:
            return []

    nodes: Dict[str, ConceptNode] = {start.id: start}
    accepted: List[LearningPath] = []
    stack = [(start.id, (), frozenset([start.id]))]
    expansions = 0

    while stack:
        node_id, steps, on_path = stack.pop()
        if len(steps) >= max_length:
            continue
        if expansions >= settings.PATH_MAX_EXPANSIONS:
            LOG.warning('path_expansion_cap_reached', extra={'start': start_word, 'end': end_word, 'cap': settings.PATH_MAX_EXPANSIONS})
            break
        expansions += 1

        children = []
        for edge in store.outgoing_edges(node_id, min_strength):
            if edge.strength < min_strength or edge.target_id in on_path:
                continue
            target = nodes.get(edge.target_id)
            if target is None:
                target = store.get_node(edge.target_id)
                if target is None:
                    continue
                nodes[target.id] = target
            step = PathStep(
                id=target.id,
                concept=target.title,
                description=target.description,
                relationship_type=edge.type,
                strength=edge.strength,
            )
            path_steps = steps + (step,)
            # accept on discovery; the cap only limits further expansion
            if end is not None:
                if target.id == end.id:
                    accepted.append(_to_path(path_steps, include_difficulty))
                    continue
            elif len(path_steps) >= 2:
                accepted.append(_to_path(path_steps, include_difficulty))
            children.append((target.id, path_steps, on_path | {target.id}))
        # strongest edge is explored first
        stack.extend(reversed(children))

    ranked = sorted(accepted, key=lambda p: p.score, reverse=True)
    return ranked[:settings.PATH_RESULT_LIMIT]
