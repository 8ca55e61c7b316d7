import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from lexigraph.config import Settings, get_settings
from lexigraph.flashcards.models import FlashcardRecord, as_utc
from lexigraph.utils import get_logger, log_graph_build
from .models import ConceptEdge, ConceptNode
from .relation_types import RelationClassifier, classify_relationship, first_meaningful_word
from .store import ConceptStore, DuplicateEdge, DuplicateNode, GraphStoreError, title_key

LOG = get_logger()


class GraphBuildError(Exception):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GraphBuilder:
    """Grows the concept graph from study activity.

    One builder call is one unit of work: counters are reset at the start of
    every ``build_from_*`` call, so share a builder only between sequential
    callers.
    """

    VOCABULARY = 'vocabulary'

    CO_STUDY = 'co_study'
    DEFINITION_SIMILARITY = 'definition_similarity'

    def __init__(
        self,
        store: ConceptStore,
        settings: Optional[Settings] = None,
        classifier: RelationClassifier = classify_relationship,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.classifier = classifier
        self.now_fn = now_fn or _utcnow
        self._reset_counters()

    def _reset_counters(self):
        self.nodes_created = 0
        self.nodes_updated = 0
        self.edges_created = 0
        self.edges_reinforced = 0

    def counters(self) -> Dict[str, int]:
        return {
            'nodes_created': self.nodes_created,
            'nodes_updated': self.nodes_updated,
            'edges_created': self.edges_created,
            'edges_reinforced': self.edges_reinforced,
        }

    def build_from_study_session(self, user_id: str, flashcard_id: str) -> Dict[str, int]:
        """Link ``flashcard_id`` to the cards the user reviewed just before it.

        The closer in time the two reviews, the stronger the new edge. Pairs
        that are already linked get reinforced instead.
        """
        self._reset_counters()
        started = time.perf_counter()
        try:
            card = self.store.get_flashcard(flashcard_id)
            if card is None:
                LOG.info('flashcard_not_found', extra={'flashcard_id': flashcard_id})
                return self.counters()

            now = as_utc(self.now_fn())
            window = timedelta(minutes=self.settings.COSTUDY_WINDOW_MINUTES)
            recent = self.store.reviews_for_user(
                user_id,
                since=now - window,
                exclude_flashcard_id=flashcard_id,
                limit=self.settings.COSTUDY_LOOKBACK,
            )
            if recent:
                node = self.ensure_node_for_flashcard(card)
                seen = set()
                for review in recent:
                    # newest review per card wins
                    if review.flashcard_id in seen:
                        continue
                    seen.add(review.flashcard_id)
                    other = self.store.get_flashcard(review.flashcard_id)
                    if other is None:
                        continue
                    other_node = self.ensure_node_for_flashcard(other)
                    if other_node.id == node.id:
                        continue
                    elapsed = max(0.0, (now - review.reviewed_at).total_seconds())
                    strength = max(self.settings.COSTUDY_MIN_STRENGTH, 1.0 - elapsed / window.total_seconds())
                    metadata = {'source': self.CO_STUDY, 'user_id': user_id, 'elapsed_seconds': round(elapsed, 3)}
                    self._link(card, other, node, other_node, min(1.0, strength), metadata, reinforce_existing=True)
        except GraphStoreError as e:
            LOG.exception('graph_build_store_error', exc_info=True, extra={'flashcard_id': flashcard_id, 'user_id': user_id})
            raise GraphBuildError(str(e)) from e
        except Exception as e:
            LOG.exception('graph_build_error', exc_info=True, extra={'flashcard_id': flashcard_id, 'user_id': user_id})
            raise GraphBuildError(str(e)) from e

        log_graph_build(self.CO_STUDY, self.counters(), (time.perf_counter() - started) * 1000, user_id=user_id, flashcard_id=flashcard_id)
        return self.counters()

    def build_from_definition(self, flashcard_id: str) -> Dict[str, int]:
        """Link a card to other cards whose definitions mention its key word."""
        self._reset_counters()
        started = time.perf_counter()
        try:
            card = self.store.get_flashcard(flashcard_id)
            if card is None:
                LOG.info('flashcard_not_found', extra={'flashcard_id': flashcard_id})
                return self.counters()

            key_word = first_meaningful_word(card.definition)
            if key_word:
                candidates = self.store.flashcards_with_definition_containing(
                    key_word,
                    exclude_id=card.id,
                    limit=self.settings.DEFINITION_LINK_CANDIDATES,
                )
                if candidates:
                    node = self.ensure_node_for_flashcard(card)
                    for other in candidates:
                        other_node = self.ensure_node_for_flashcard(other)
                        if other_node.id == node.id:
                            continue
                        metadata = {'source': self.DEFINITION_SIMILARITY, 'key_word': key_word}
                        self._link(card, other, node, other_node, self.settings.DEFINITION_LINK_STRENGTH, metadata, reinforce_existing=False)
        except GraphStoreError as e:
            LOG.exception('graph_build_store_error', exc_info=True, extra={'flashcard_id': flashcard_id})
            raise GraphBuildError(str(e)) from e
        except Exception as e:
            LOG.exception('graph_build_error', exc_info=True, extra={'flashcard_id': flashcard_id})
            raise GraphBuildError(str(e)) from e

        log_graph_build(self.DEFINITION_SIMILARITY, self.counters(), (time.perf_counter() - started) * 1000, flashcard_id=flashcard_id)
        return self.counters()

    def ensure_node_for_flashcard(self, flashcard: FlashcardRecord) -> ConceptNode:
        """Node titled after the card's word, created on first sight.

        An existing node takes the card's definition only when it is longer
        than the description it already has.
        """
        title = title_key(flashcard.word)
        node = self.store.find_node_by_title(title)
        if node is None:
            try:
                node = self.store.create_node(self.VOCABULARY, title, flashcard.definition or None, flashcard.example or flashcard.definition or None)
                self.nodes_created += 1
                return node
            except DuplicateNode as e:
                node = e.existing or self.store.find_node_by_title(title)
                if node is None:
                    raise

        definition = flashcard.definition or ''
        if len(definition) > len(node.description or ''):
            node = self.store.update_node(node.id, description=definition, content=flashcard.example or definition)
            self.nodes_updated += 1
        return node

    def _link(
        self,
        card: FlashcardRecord,
        other: FlashcardRecord,
        node: ConceptNode,
        other_node: ConceptNode,
        strength: float,
        metadata: Dict[str, Any],
        reinforce_existing: bool,
    ) -> Optional[ConceptEdge]:
        existing = self.store.find_edge_between(node.id, other_node.id)
        if existing is None:
            try:
                edge = self.store.create_edge(node.id, other_node.id, self.classifier(card, other), strength, metadata)
                self.edges_created += 1
                return edge
            except DuplicateEdge as e:
                # another writer linked the pair first
                existing = e.existing or self.store.find_edge_between(node.id, other_node.id)
                if existing is None:
                    raise
        if not reinforce_existing:
            return existing
        return self._reinforce(existing)

    def _reinforce(self, edge: ConceptEdge) -> ConceptEdge:
        updated = self.store.reinforce(edge.id, self.settings.REINFORCE_DELTA)
        self.edges_reinforced += 1
        LOG.debug('edge_reinforced', extra={'edge_id': edge.id, 'old_strength': edge.strength, 'new_strength': updated.strength})
        return updated
