"""Store adapter contract for the concept graph and the study records it reads.

Engines never talk to a database directly: they receive a store instance and
call the operations declared here. Adapters live in ``memory_store`` and
``sql_store``.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from lexigraph.flashcards.models import FlashcardRecord, ReviewEvent
from .models import ConceptEdge, ConceptNode


class GraphStoreError(Exception):
    pass


class StoreUnavailable(GraphStoreError):
    """The persistence collaborator failed; safe to retry."""


class DuplicateEdge(GraphStoreError):
    def __init__(self, source_id: str, target_id: str, existing: Optional[ConceptEdge] = None):
        super().__init__(f'edge already exists between {source_id} and {target_id}')
        self.source_id = source_id
        self.target_id = target_id
        self.existing = existing


class DuplicateNode(GraphStoreError):
    def __init__(self, title: str, existing: Optional[ConceptNode] = None):
        super().__init__(f'node already exists for title {title!r}')
        self.title = title
        self.existing = existing


class ConceptNotFound(GraphStoreError):
    pass


def title_key(title: str) -> str:
    return (title or '').strip().lower()


class GraphStore(ABC):

    @abstractmethod
    def find_node_by_text(self, query: str) -> Optional[ConceptNode]:
        """Exact title match, else title substring, else description substring (case-insensitive)."""

    @abstractmethod
    def find_node_by_title(self, title: str) -> Optional[ConceptNode]:
        ...

    @abstractmethod
    def get_node(self, node_id: str) -> Optional[ConceptNode]:
        ...

    @abstractmethod
    def list_nodes(self) -> List[ConceptNode]:
        ...

    @abstractmethod
    def create_node(self, type: str, title: str, description: Optional[str] = None, content: Optional[str] = None) -> ConceptNode:
        """Raises DuplicateNode when the case-insensitive title is taken."""

    @abstractmethod
    def update_node(self, node_id: str, description: Optional[str] = None, content: Optional[str] = None) -> ConceptNode:
        """Change only the fields passed; raises ConceptNotFound for an unknown id."""

    @abstractmethod
    def create_edge(self, source_id: str, target_id: str, type: str, strength: float, metadata: Optional[Dict[str, Any]] = None) -> ConceptEdge:
        """Raises DuplicateEdge when the undirected pair is already linked."""

    @abstractmethod
    def find_edge_between(self, a: str, b: str) -> Optional[ConceptEdge]:
        ...

    @abstractmethod
    def edges_touching(self, node_id: str) -> List[ConceptEdge]:
        """Edges in either direction, strongest first."""

    @abstractmethod
    def outgoing_edges(self, node_id: str, min_strength: float = 0.0) -> List[ConceptEdge]:
        ...

    @abstractmethod
    def edges_by_type(self, type: str, min_strength: float, max_strength: float) -> List[ConceptEdge]:
        ...

    @abstractmethod
    def reinforce(self, edge_id: str, delta: float) -> ConceptEdge:
        """Atomically raise strength by delta, capped at 1.0."""

    def health_check(self) -> bool:
        return True

    def close(self):
        pass


class StudyRecords(ABC):
    """Read side of the flashcard/review collaborator."""

    @abstractmethod
    def get_flashcard(self, flashcard_id: str) -> Optional[FlashcardRecord]:
        ...

    @abstractmethod
    def flashcards_for_user(self, user_id: str) -> List[FlashcardRecord]:
        ...

    @abstractmethod
    def search_flashcards(self, words: List[str], text: str, limit: int = 10) -> List[FlashcardRecord]:
        """Cards whose word is in ``words``, or whose definition or tags contain ``text``."""

    @abstractmethod
    def flashcards_with_definition_containing(self, word: str, exclude_id: Optional[str] = None, limit: int = 3) -> List[FlashcardRecord]:
        ...

    @abstractmethod
    def reviews_for_flashcard(self, flashcard_id: str, limit: Optional[int] = None) -> List[ReviewEvent]:
        """Newest first."""

    @abstractmethod
    def reviews_for_user(self, user_id: str, since: Optional[datetime] = None, exclude_flashcard_id: Optional[str] = None, limit: Optional[int] = None) -> List[ReviewEvent]:
        """Newest first."""

    @abstractmethod
    def recent_reviews(self, since: datetime, limit: Optional[int] = None) -> List[ReviewEvent]:
        """System-wide, newest first."""


class ConceptStore(GraphStore, StudyRecords, ABC):
    """A single handle serving both the graph and the study records."""
