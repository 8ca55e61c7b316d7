import pytest

from lexigraph.knowledge_graph import GraphQueries, InvalidParameter, seed_basic_concepts, seed_sample_flashcards
from lexigraph.knowledge_graph.graph_queries import build_context_text
from tests.fixtures.sample_data import business_deck, flashcard


@pytest.fixture
def queries(procurement_store, settings):
    for card in business_deck():
        procurement_store.add_flashcard(card)
    return GraphQueries(procurement_store, settings)


def test_enhanced_context_bundles_every_engine(queries):
    context = queries.enhanced_context('  procurement ')

    assert context.query == 'procurement'
    assert [c.title for c in context.related_concepts] == ['supplier', 'negotiate', 'contract']
    assert {card.word for card in context.related_flashcards} == {'procurement', 'supplier', 'negotiate', 'contract'}
    assert context.learning_paths
    assert all(p.length <= 3 for p in context.learning_paths)

    text = context.context_text
    assert text.startswith('\n\nEnhanced Knowledge Graph Context:\nRelated Concepts:\n')
    assert '1. supplier: A company that provides goods or services (involves, strength: 0.9)' in text
    assert '\nRelated Flashcards:\n' in text


def test_enhanced_context_for_unknown_word_is_empty(queries):
    context = queries.enhanced_context('logistics')
    assert context.related_concepts == []
    assert context.learning_paths == []
    assert context.similar_concepts == []
    assert context.context_text == '\n\nEnhanced Knowledge Graph Context:\n'


def test_enhanced_context_rejects_blank_query(queries):
    with pytest.raises(InvalidParameter):
        queries.enhanced_context('   ')


def test_context_text_includes_examples():
    card = flashcard('c1', 'invoice', 'A bill', example='Send the invoice.')
    text = build_context_text([], [card])
    assert text.endswith('Related Flashcards:\n1. invoice: A bill\n   Example: Send the invoice.\n')


def test_operations_are_logged(queries, caplog):
    queries.related_concepts('procurement')
    record = next(r for r in caplog.records if r.getMessage() == 'graph_operation')
    assert record.operation == 'related_concepts'
    assert record.node_count == 3
    assert record.query == 'procurement'


def test_concept_clusters_use_configured_strength(queries):
    clusters = queries.concept_clusters()
    assert len(clusters) == 1
    assert clusters[0].size == 4


def test_seeding_is_idempotent(memory_store):
    assert seed_basic_concepts(memory_store) == {'nodes_created': 4, 'edges_created': 5}
    assert seed_basic_concepts(memory_store) == {'nodes_created': 0, 'edges_created': 0}
    assert len(memory_store.list_nodes()) == 4


def test_sample_flashcards_belong_to_user(memory_store):
    cards = seed_sample_flashcards(memory_store, 'demo')
    assert len(cards) == 7
    assert {c.user_id for c in memory_store.flashcards_for_user('demo')} == {'demo'}
    assert memory_store.flashcards_for_user('someone-else') == []
