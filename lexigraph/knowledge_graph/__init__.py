"""
Concept graph over vocabulary flashcards.
Store adapters (in-memory, SQLite, PostgreSQL), read-side engines for related
concepts, learning paths, similar concepts and clusters, and the auto-builder
that grows the graph from study activity.
"""

from .models import (
	ConceptNode,
	ConceptEdge,
	RelatedConcept,
	RelatedConceptsResult,
	PathStep,
	LearningPath,
	SimilarConcept,
	ConceptContext,
	ConceptCluster,
	EnhancedContext,
)
from .store import ConceptStore, GraphStore, StudyRecords, GraphStoreError, StoreUnavailable, DuplicateEdge, DuplicateNode, ConceptNotFound
from .validation import InvalidParameter
from .memory_store import InMemoryGraphStore
from .sql_store import SQLiteGraphStore, PostgresGraphStore, create_store
from .traversal import find_related_concepts, find_concept_clusters
from .paths import find_learning_paths
from .similarity import find_similar_concepts
from .relation_types import classify_relationship
from .graph_builder import GraphBuilder, GraphBuildError
from .events import GraphEventHooks
from .graph_queries import GraphQueries
from .seed import seed_basic_concepts, seed_sample_flashcards

__all__ = [
	'ConceptNode',
	'ConceptEdge',
	'RelatedConcept',
	'RelatedConceptsResult',
	'PathStep',
	'LearningPath',
	'SimilarConcept',
	'ConceptContext',
	'ConceptCluster',
	'EnhancedContext',
	'ConceptStore',
	'GraphStore',
	'StudyRecords',
	'GraphStoreError',
	'StoreUnavailable',
	'DuplicateEdge',
	'DuplicateNode',
	'ConceptNotFound',
	'InvalidParameter',
	'InMemoryGraphStore',
	'SQLiteGraphStore',
	'PostgresGraphStore',
	'create_store',
	'find_related_concepts',
	'find_concept_clusters',
	'find_learning_paths',
	'find_similar_concepts',
	'classify_relationship',
	'GraphBuilder',
	'GraphBuildError',
	'GraphEventHooks',
	'GraphQueries',
	'seed_basic_concepts',
	'seed_sample_flashcards',
]
