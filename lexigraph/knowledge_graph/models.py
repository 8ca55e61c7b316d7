from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from lexigraph.flashcards.models import FlashcardRecord


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def pair_key(a: str, b: str) -> str:
    """Order-independent key for the undirected pair (a, b)."""
    lo, hi = (a, b) if a <= b else (b, a)
    return f"{lo}|{hi}"


class ConceptNode(BaseModel):
    id: str
    type: str = 'vocabulary'
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


class ConceptEdge(BaseModel):
    id: str
    source_id: str
    target_id: str
    type: str
    strength: float = Field(..., ge=0.0, le=1.0)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def pair_key(self) -> str:
        return pair_key(self.source_id, self.target_id)

    @property
    def endpoints(self) -> Tuple[str, str]:
        return self.source_id, self.target_id

    def other_end(self, node_id: str) -> str:
        return self.target_id if self.source_id == node_id else self.source_id

    def direction_from(self, node_id: str) -> str:
        return 'outgoing' if self.source_id == node_id else 'incoming'


class RelatedConcept(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    relationship_type: str
    strength: float
    direction: str
    depth: int


class RelatedConceptsResult(BaseModel):
    concepts: List[RelatedConcept] = Field(default_factory=list)
    flashcards: List[FlashcardRecord] = Field(default_factory=list)
    total_found: int = 0


class PathStep(BaseModel):
    id: str
    concept: str
    description: Optional[str] = None
    relationship_type: str
    strength: float


class LearningPath(BaseModel):
    path: List[PathStep]
    length: int
    total_strength: float
    avg_strength: float
    difficulty: Optional[str] = None

    @property
    def score(self) -> float:
        return self.avg_strength / self.length


class ConceptContext(BaseModel):
    concept: str
    relationship: str
    strength: float


class SimilarConcept(BaseModel):
    id: str
    concept: str
    description: Optional[str] = None
    shared_relationship_type: str
    similarity_score: float
    strength: float
    context: Optional[List[ConceptContext]] = None


class ClusterMember(BaseModel):
    id: str
    title: str
    description: Optional[str] = None


class ConceptCluster(BaseModel):
    cluster_id: int
    concepts: List[ClusterMember]
    size: int
    center_concept: str


class EnhancedContext(BaseModel):
    query: str
    related_concepts: List[RelatedConcept] = Field(default_factory=list)
    related_flashcards: List[FlashcardRecord] = Field(default_factory=list)
    learning_paths: List[LearningPath] = Field(default_factory=list)
    similar_concepts: List[SimilarConcept] = Field(default_factory=list)
    context_text: str = ''
