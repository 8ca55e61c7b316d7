import asyncio
import threading
from datetime import timedelta

from lexigraph.config import Settings
from lexigraph.knowledge_graph import GraphBuilder, GraphBuildError, GraphEventHooks
from tests.fixtures.sample_data import business_deck, review


def _deck_store(memory_store, now):
    for card in business_deck():
        memory_store.add_flashcard(card)
    memory_store.add_review(review('fc-supp', now - timedelta(minutes=5)))
    return memory_store


def test_review_hook_builds_graph(memory_store, settings, clock, now):
    store = _deck_store(memory_store, now)
    hooks = GraphEventHooks(store, settings, builder_factory=lambda: GraphBuilder(store, settings, now_fn=clock))

    counters = asyncio.run(hooks.on_flashcard_reviewed('u1', 'fc-proc'))

    assert counters['edges_created'] == 1
    assert store.find_node_by_title('supplier') is not None


def test_save_hook_runs_definition_builder(memory_store, settings, now):
    store = _deck_store(memory_store, now)
    hooks = GraphEventHooks(store, settings)
    counters = asyncio.run(hooks.on_flashcard_created_or_updated('fc-proc'))
    # "process" appears in no other definition
    assert counters['edges_created'] == 0


def test_hook_failures_are_swallowed(memory_store, settings, caplog):
    class Failing(GraphBuilder):
        def build_from_study_session(self, user_id, flashcard_id):
            raise GraphBuildError('store down')

    hooks = GraphEventHooks(memory_store, settings, builder_factory=lambda: Failing(memory_store, settings))
    assert asyncio.run(hooks.on_flashcard_reviewed('u1', 'fc-proc')) is None
    assert any(r.getMessage() == 'graph_hook_failed' for r in caplog.records)


def test_hook_timeout_returns_none(memory_store):
    release = threading.Event()

    class Slow(GraphBuilder):
        def build_from_definition(self, flashcard_id):
            release.wait(0.5)
            return self.counters()

    settings = Settings(_env_file=None, HOOK_TIMEOUT_SECONDS=0.05)
    hooks = GraphEventHooks(memory_store, settings, builder_factory=lambda: Slow(memory_store, settings))
    try:
        assert asyncio.run(hooks.on_flashcard_created_or_updated('fc-proc')) is None
    finally:
        release.set()


def test_scheduled_hooks_are_tracked_until_done(memory_store, settings, clock, now):
    store = _deck_store(memory_store, now)
    hooks = GraphEventHooks(store, settings, builder_factory=lambda: GraphBuilder(store, settings, now_fn=clock))

    async def scenario():
        task = hooks.schedule_flashcard_reviewed('u1', 'fc-proc')
        hooks.schedule_flashcard_created_or_updated('fc-proc')
        assert hooks.pending == 2
        await hooks.drain()
        return task.result()

    counters = asyncio.run(scenario())
    assert counters['edges_created'] == 1
    assert hooks.pending == 0
