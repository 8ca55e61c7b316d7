from datetime import timedelta

import pytest

from lexigraph.knowledge_graph import GraphBuilder, GraphBuildError, StoreUnavailable
from tests.fixtures.sample_data import business_deck, flashcard, review


@pytest.fixture
def deck_store(memory_store):
    for card in business_deck():
        memory_store.add_flashcard(card)
    return memory_store


def _edge(store, word_a, word_b):
    a = store.find_node_by_title(word_a)
    b = store.find_node_by_title(word_b)
    return store.find_edge_between(a.id, b.id)


def test_co_study_links_recent_cards_by_time_proximity(deck_store, settings, clock, now):
    deck_store.add_review(review('fc-supp', now - timedelta(minutes=10)))
    deck_store.add_review(review('fc-nego', now - timedelta(minutes=20)))
    deck_store.add_review(review('fc-cont', now - timedelta(minutes=45)))

    counters = GraphBuilder(deck_store, settings, now_fn=clock).build_from_study_session('u1', 'fc-proc')

    assert counters == {'nodes_created': 3, 'nodes_updated': 0, 'edges_created': 2, 'edges_reinforced': 0}
    supp = _edge(deck_store, 'procurement', 'supplier')
    nego = _edge(deck_store, 'procurement', 'negotiate')
    assert supp.strength == pytest.approx(1 - 600 / 1800)
    assert nego.strength == pytest.approx(1 - 1200 / 1800)
    assert supp.type == 'synonym'
    assert nego.type == 'co_studied'
    assert supp.metadata['source'] == 'co_study'
    assert deck_store.find_node_by_title('contract') is None


def test_co_study_strength_has_a_floor(deck_store, settings, clock, now):
    deck_store.add_review(review('fc-supp', now - timedelta(minutes=29)))
    GraphBuilder(deck_store, settings, now_fn=clock).build_from_study_session('u1', 'fc-proc')
    assert _edge(deck_store, 'procurement', 'supplier').strength == pytest.approx(0.3)


def test_repeat_session_reinforces_instead_of_duplicating(deck_store, settings, clock, now):
    deck_store.add_review(review('fc-supp', now - timedelta(minutes=10)))
    builder = GraphBuilder(deck_store, settings, now_fn=clock)
    builder.build_from_study_session('u1', 'fc-proc')
    first = _edge(deck_store, 'procurement', 'supplier').strength

    counters = builder.build_from_study_session('u1', 'fc-proc')

    assert counters['edges_created'] == 0
    assert counters['edges_reinforced'] == 1
    assert _edge(deck_store, 'procurement', 'supplier').strength == pytest.approx(first + 0.1)
    node = deck_store.find_node_by_title('procurement')
    assert len(deck_store.edges_touching(node.id)) == 1


def test_lost_creation_race_turns_into_reinforcement(deck_store, settings, clock, now, monkeypatch):
    deck_store.add_review(review('fc-supp', now - timedelta(minutes=10)))
    proc = deck_store.create_node('vocabulary', 'procurement', 'The process of obtaining goods or services')
    supp = deck_store.create_node('vocabulary', 'supplier', 'A company that provides goods or services')
    deck_store.create_edge(proc.id, supp.id, 'co_studied', 0.5)
    # another writer created the edge between our check and our insert
    monkeypatch.setattr(deck_store, 'find_edge_between', lambda a, b: None)

    counters = GraphBuilder(deck_store, settings, now_fn=clock).build_from_study_session('u1', 'fc-proc')

    assert counters['edges_created'] == 0
    assert counters['edges_reinforced'] == 1
    assert deck_store.edges_touching(proc.id)[0].strength == pytest.approx(0.6)


def test_existing_node_takes_longer_definition_only(memory_store, settings):
    memory_store.create_node('vocabulary', 'invoice', 'A bill')
    builder = GraphBuilder(memory_store, settings)

    builder.ensure_node_for_flashcard(flashcard('c1', 'Invoice', 'Short'))
    assert memory_store.find_node_by_title('invoice').description == 'A bill'
    assert builder.nodes_updated == 0

    builder.ensure_node_for_flashcard(flashcard('c1', 'Invoice', 'A document listing goods and prices', example='Send the invoice.'))
    node = memory_store.find_node_by_title('invoice')
    assert node.description == 'A document listing goods and prices'
    assert node.content == 'Send the invoice.'
    assert builder.nodes_updated == 1


def test_node_content_falls_back_to_definition(memory_store, settings):
    builder = GraphBuilder(memory_store, settings)
    node = builder.ensure_node_for_flashcard(flashcard('c1', 'memo', 'A short note'))
    assert node.content == 'A short note'

    updated = builder.ensure_node_for_flashcard(flashcard('c2', 'memo', 'A short written note sent inside a company'))
    assert updated.content == 'A short written note sent inside a company'


def test_definition_similarity_links_up_to_three_cards(memory_store, settings):
    memory_store.add_flashcard(flashcard('inv', 'invoice', 'A document listing goods or services provided and their prices'))
    for i, word in enumerate(['receipt', 'contract', 'memo', 'report']):
        memory_store.add_flashcard(flashcard(f'd{i}', word, f'A document used for {word} purposes'))
    memory_store.add_flashcard(flashcard('other', 'deadline', 'A date by which something must be completed'))

    builder = GraphBuilder(memory_store, settings)
    counters = builder.build_from_definition('inv')

    assert counters['edges_created'] == 3
    inv = memory_store.find_node_by_title('invoice')
    edges = memory_store.edges_touching(inv.id)
    assert len(edges) == 3
    assert all(e.strength == pytest.approx(0.5) for e in edges)
    assert all(e.metadata['source'] == 'definition_similarity' for e in edges)
    assert memory_store.find_node_by_title('deadline') is None

    again = builder.build_from_definition('inv')
    assert again['edges_created'] == 0 and again['edges_reinforced'] == 0


def test_definition_without_meaningful_word_does_nothing(memory_store, settings):
    memory_store.add_flashcard(flashcard('x', 'tiny', 'a to be'))
    assert GraphBuilder(memory_store, settings).build_from_definition('x')['edges_created'] == 0


def test_classifier_is_pluggable(deck_store, settings, clock, now):
    deck_store.add_review(review('fc-nego', now - timedelta(minutes=5)))
    builder = GraphBuilder(deck_store, settings, classifier=lambda a, b: 'custom', now_fn=clock)
    builder.build_from_study_session('u1', 'fc-proc')
    assert _edge(deck_store, 'procurement', 'negotiate').type == 'custom'


def test_unknown_flashcard_returns_zero_counters(memory_store, settings):
    counters = GraphBuilder(memory_store, settings).build_from_study_session('u1', 'missing')
    assert counters == {'nodes_created': 0, 'nodes_updated': 0, 'edges_created': 0, 'edges_reinforced': 0}


def test_store_failures_become_graph_build_errors(memory_store, settings, monkeypatch):
    def boom(*a, **k):
        raise StoreUnavailable('db down')

    monkeypatch.setattr(memory_store, 'get_flashcard', boom)
    with pytest.raises(GraphBuildError):
        GraphBuilder(memory_store, settings).build_from_study_session('u1', 'fc-proc')
    with pytest.raises(GraphBuildError):
        GraphBuilder(memory_store, settings).build_from_definition('fc-proc')
