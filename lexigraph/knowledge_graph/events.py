"""Async hooks that grow the graph after flashcard activity.

Graph updates are a side effect of studying: a failed or slow build is logged
and dropped, it never reaches the caller.
"""
import asyncio
from typing import Callable, Dict, Optional, Set

from lexigraph.config import Settings, get_settings
from lexigraph.utils import get_logger
from .graph_builder import GraphBuildError, GraphBuilder
from .store import ConceptStore

LOG = get_logger()


class GraphEventHooks:

    def __init__(self, store: ConceptStore, settings: Optional[Settings] = None, builder_factory: Optional[Callable[[], GraphBuilder]] = None):
        self.settings = settings or get_settings()
        self._builder_factory = builder_factory or (lambda: GraphBuilder(store, self.settings))
        self._tasks: Set[asyncio.Task] = set()

    async def _run(self, event: str, build: Callable[[GraphBuilder], Dict[str, int]], **context) -> Optional[Dict[str, int]]:
        builder = self._builder_factory()
        try:
            return await asyncio.wait_for(asyncio.to_thread(build, builder), timeout=self.settings.HOOK_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            LOG.warning('graph_hook_timeout', extra={'event': event, 'timeout': self.settings.HOOK_TIMEOUT_SECONDS, **context})
        except GraphBuildError:
            LOG.exception('graph_hook_failed', exc_info=True, extra={'event': event, **context})
        except Exception:
            LOG.exception('graph_hook_unexpected_error', exc_info=True, extra={'event': event, **context})
        return None

    async def on_flashcard_reviewed(self, user_id: str, flashcard_id: str) -> Optional[Dict[str, int]]:
        return await self._run(
            'flashcard_reviewed',
            lambda b: b.build_from_study_session(user_id, flashcard_id),
            user_id=user_id,
            flashcard_id=flashcard_id,
        )

    async def on_flashcard_created_or_updated(self, flashcard_id: str) -> Optional[Dict[str, int]]:
        return await self._run(
            'flashcard_saved',
            lambda b: b.build_from_definition(flashcard_id),
            flashcard_id=flashcard_id,
        )

    def _schedule(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def schedule_flashcard_reviewed(self, user_id: str, flashcard_id: str) -> asyncio.Task:
        return self._schedule(self.on_flashcard_reviewed(user_id, flashcard_id))

    def schedule_flashcard_created_or_updated(self, flashcard_id: str) -> asyncio.Task:
        return self._schedule(self.on_flashcard_created_or_updated(flashcard_id))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self):
        """Wait for every scheduled hook to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
