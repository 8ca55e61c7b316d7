import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from lexigraph.flashcards.models import FlashcardRecord, ReviewEvent, as_utc
from lexigraph.utils import get_logger
from .models import ConceptEdge, ConceptNode, pair_key
from .store import ConceptNotFound, ConceptStore, DuplicateEdge, DuplicateNode, title_key
from .validation import InvalidParameter, require_strength

LOG = get_logger()


class InMemoryGraphStore(ConceptStore):
    """Process-local store used for tests and embedded use.

    Every mutation happens under one lock, so the duplicate checks in
    create_node/create_edge are atomic with the insert.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._nodes: Dict[str, ConceptNode] = {}
        self._titles: Dict[str, str] = {}
        self._edges: Dict[str, ConceptEdge] = {}
        self._pairs: Dict[str, str] = {}
        self._flashcards: Dict[str, FlashcardRecord] = {}
        self._reviews: List[ReviewEvent] = []

    # graph side

    def find_node_by_text(self, query: str) -> Optional[ConceptNode]:
        q = title_key(query)
        if not q:
            return None
        with self._lock:
            nodes = list(self._nodes.values())
        for n in nodes:
            if n.title.lower() == q:
                return n
        for n in nodes:
            if q in n.title.lower():
                return n
        for n in nodes:
            if q in (n.description or '').lower():
                return n
        return None

    def find_node_by_title(self, title: str) -> Optional[ConceptNode]:
        with self._lock:
            nid = self._titles.get(title_key(title))
            return self._nodes.get(nid) if nid else None

    def get_node(self, node_id: str) -> Optional[ConceptNode]:
        with self._lock:
            return self._nodes.get(node_id)

    def list_nodes(self) -> List[ConceptNode]:
        with self._lock:
            return list(self._nodes.values())

    def create_node(self, type: str, title: str, description: Optional[str] = None, content: Optional[str] = None) -> ConceptNode:
        key = title_key(title)
        if not key:
            raise InvalidParameter('title must not be empty')
        with self._lock:
            existing = self._titles.get(key)
            if existing:
                raise DuplicateNode(key, self._nodes[existing])
            node = ConceptNode(id=uuid.uuid4().hex, type=type, title=key, description=description, content=content)
            self._nodes[node.id] = node
            self._titles[key] = node.id
        LOG.debug('node_created', extra={'node_id': node.id, 'title': key, 'node_type': type})
        return node

    def update_node(self, node_id: str, description: Optional[str] = None, content: Optional[str] = None) -> ConceptNode:
        changes = {k: v for k, v in (('description', description), ('content', content)) if v is not None}
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                raise ConceptNotFound(f'unknown node {node_id}')
            updated = node.model_copy(update=changes)
            self._nodes[node_id] = updated
            return updated

    def create_edge(self, source_id: str, target_id: str, type: str, strength: float, metadata: Optional[Dict[str, Any]] = None) -> ConceptEdge:
        if source_id == target_id:
            raise InvalidParameter('an edge needs two distinct nodes')
        strength = require_strength(strength)
        key = pair_key(source_id, target_id)
        with self._lock:
            for nid in (source_id, target_id):
                if nid not in self._nodes:
                    raise InvalidParameter(f'unknown node {nid}')
            existing = self._pairs.get(key)
            if existing:
                raise DuplicateEdge(source_id, target_id, self._edges[existing])
            edge = ConceptEdge(id=uuid.uuid4().hex, source_id=source_id, target_id=target_id, type=type, strength=strength, metadata=dict(metadata or {}))
            self._edges[edge.id] = edge
            self._pairs[key] = edge.id
        LOG.debug('edge_created', extra={'edge_id': edge.id, 'source': source_id, 'target': target_id, 'edge_type': type})
        return edge

    def find_edge_between(self, a: str, b: str) -> Optional[ConceptEdge]:
        with self._lock:
            eid = self._pairs.get(pair_key(a, b))
            return self._edges.get(eid) if eid else None

    def _sorted(self, edges: List[ConceptEdge]) -> List[ConceptEdge]:
        return sorted(edges, key=lambda e: e.strength, reverse=True)

    def edges_touching(self, node_id: str) -> List[ConceptEdge]:
        with self._lock:
            edges = [e for e in self._edges.values() if node_id in (e.source_id, e.target_id)]
        return self._sorted(edges)

    def outgoing_edges(self, node_id: str, min_strength: float = 0.0) -> List[ConceptEdge]:
        with self._lock:
            edges = [e for e in self._edges.values() if e.source_id == node_id and e.strength >= min_strength]
        return self._sorted(edges)

    def edges_by_type(self, type: str, min_strength: float, max_strength: float) -> List[ConceptEdge]:
        with self._lock:
            return [e for e in self._edges.values() if e.type == type and min_strength <= e.strength <= max_strength]

    def reinforce(self, edge_id: str, delta: float) -> ConceptEdge:
        with self._lock:
            edge = self._edges[edge_id]
            updated = edge.model_copy(update={'strength': min(1.0, max(0.0, edge.strength + delta))})
            self._edges[edge_id] = updated
            return updated

    # study records side

    def add_flashcard(self, flashcard: FlashcardRecord) -> FlashcardRecord:
        with self._lock:
            self._flashcards[flashcard.id] = flashcard
        return flashcard

    def add_review(self, review: ReviewEvent) -> ReviewEvent:
        if review.id is None:
            review = review.model_copy(update={'id': uuid.uuid4().hex})
        with self._lock:
            self._reviews.append(review)
        return review

    def get_flashcard(self, flashcard_id: str) -> Optional[FlashcardRecord]:
        with self._lock:
            return self._flashcards.get(flashcard_id)

    def flashcards_for_user(self, user_id: str) -> List[FlashcardRecord]:
        with self._lock:
            return [f for f in self._flashcards.values() if f.user_id == user_id]

    def search_flashcards(self, words: List[str], text: str, limit: int = 10) -> List[FlashcardRecord]:
        wanted = {title_key(w) for w in words if w}
        needle = title_key(text)
        out = []
        with self._lock:
            cards = list(self._flashcards.values())
        for f in cards:
            if len(out) >= limit:
                break
            if title_key(f.word) in wanted:
                out.append(f)
            elif needle and (needle in f.definition.lower() or any(needle in t.lower() for t in f.tags)):
                out.append(f)
        return out

    def flashcards_with_definition_containing(self, word: str, exclude_id: Optional[str] = None, limit: int = 3) -> List[FlashcardRecord]:
        needle = title_key(word)
        with self._lock:
            cards = [f for f in self._flashcards.values() if f.id != exclude_id and needle in f.definition.lower()]
        return cards[:limit]

    def _newest_first(self, reviews: List[ReviewEvent], limit: Optional[int]) -> List[ReviewEvent]:
        ordered = sorted(reviews, key=lambda r: r.reviewed_at, reverse=True)
        return ordered[:limit] if limit is not None else ordered

    def reviews_for_flashcard(self, flashcard_id: str, limit: Optional[int] = None) -> List[ReviewEvent]:
        with self._lock:
            reviews = [r for r in self._reviews if r.flashcard_id == flashcard_id]
        return self._newest_first(reviews, limit)

    def reviews_for_user(self, user_id: str, since: Optional[datetime] = None, exclude_flashcard_id: Optional[str] = None, limit: Optional[int] = None) -> List[ReviewEvent]:
        since = as_utc(since) if since else None
        with self._lock:
            reviews = [
                r for r in self._reviews
                if r.user_id == user_id
                and (since is None or r.reviewed_at >= since)
                and (exclude_flashcard_id is None or r.flashcard_id != exclude_flashcard_id)
            ]
        return self._newest_first(reviews, limit)

    def recent_reviews(self, since: datetime, limit: Optional[int] = None) -> List[ReviewEvent]:
        since = as_utc(since)
        with self._lock:
            reviews = [r for r in self._reviews if r.reviewed_at >= since]
        return self._newest_first(reviews, limit)
