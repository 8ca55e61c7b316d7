import asyncio
from datetime import timedelta

import pytest

from lexigraph.knowledge_graph import (
	GraphBuilder,
	GraphEventHooks,
	GraphQueries,
	SQLiteGraphStore,
	seed_basic_concepts,
	seed_sample_flashcards,
)
from lexigraph.recommendations import Priority, RecommendationEngine, RecommendationType
from tests.fixtures.sample_data import add_reviews, flashcard, review

pytestmark = pytest.mark.integration


def test_study_activity_grows_the_graph_and_drives_recommendations(tmp_path, settings, clock, now):
    db_path = str(tmp_path / 'graph.db')
    store = SQLiteGraphStore(db_path, settings=settings)
    try:
        assert seed_basic_concepts(store) == {'nodes_created': 4, 'edges_created': 5}
        cards = {c.word: c for c in seed_sample_flashcards(store, 'demo')}
        store.add_flashcard(flashcard('vendor-1', 'vendor', 'A company or person that sells goods', user_id='demo'))

        add_reviews(store, cards['invoice'].id, now, [False, False, False], user_id='demo')
        store.add_review(review(cards['procurement'].id, now - timedelta(minutes=10), user_id='demo'))
        store.add_review(review(cards['supplier'].id, now, user_id='demo'))

        hooks = GraphEventHooks(store, settings, builder_factory=lambda: GraphBuilder(store, settings, now_fn=clock))

        async def study():
            # both builds touch the supplier node, so run them one after the other
            reviewed = hooks.schedule_flashcard_reviewed('demo', cards['supplier'].id)
            await hooks.drain()
            saved = hooks.schedule_flashcard_created_or_updated('vendor-1')
            await hooks.drain()
            return reviewed.result(), saved.result()

        session, definition = asyncio.run(study())

        # the seeded supplier link is reinforced and the seeded description replaced by the longer one
        assert session == {'nodes_created': 0, 'nodes_updated': 1, 'edges_created': 0, 'edges_reinforced': 1}
        assert definition['edges_created'] == 1

        proc = store.find_node_by_title('procurement')
        supp = store.find_node_by_title('supplier')
        assert store.find_edge_between(proc.id, supp.id).strength == pytest.approx(1.0)
        assert supp.description == cards['supplier'].definition

        queries = GraphQueries(store, settings)
        related = queries.related_concepts('supplier')
        assert 'vendor' in [c.title for c in related.concepts]
        assert queries.learning_paths('procurement', 'contract', max_length=3)

        result = RecommendationEngine(store, queries=queries, settings=settings, now_fn=clock).recommendations('demo', limit=6)
        first = result.recommendations[0]
        assert first.flashcard.word == 'invoice'
        assert first.type == RecommendationType.WEAK_AREA
        assert first.priority == Priority.HIGH
        assert any(r.type == RecommendationType.KNOWLEDGE_GRAPH for r in result.recommendations)
        ids = [r.flashcard.id for r in result.recommendations]
        assert len(ids) == len(set(ids)) <= 6
        assert result.user_stats.total_flashcards == 8
    finally:
        store.close()

    reopened = SQLiteGraphStore(db_path, settings=settings)
    try:
        vendor = reopened.find_node_by_title('vendor')
        assert vendor is not None
        assert reopened.edges_touching(vendor.id)[0].metadata['source'] == 'definition_similarity'
    finally:
        reopened.close()
