import os
from datetime import datetime, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

# load test env first
env_path = Path(__file__).resolve().parents[1] / '.env.test'
if env_path.exists():
    load_dotenv(env_path)

os.environ.setdefault('TESTING', '1')
os.environ.setdefault('LOG_TO_FILE', 'false')

from lexigraph.config import Settings  # noqa: E402
from lexigraph.knowledge_graph import InMemoryGraphStore, SQLiteGraphStore, seed_basic_concepts  # noqa: E402

FIXED_NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    return Settings(_env_file=None, STORE_RETRY_MULTIPLIER=0, STORE_RETRY_MAX_WAIT=0)


@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def memory_store():
    return InMemoryGraphStore()


@pytest.fixture
def procurement_store(memory_store):
    seed_basic_concepts(memory_store)
    return memory_store


@pytest.fixture
def sqlite_store(tmp_path, settings):
    store = SQLiteGraphStore(str(tmp_path / 'graph.db'), settings=settings)
    yield store
    store.close()
