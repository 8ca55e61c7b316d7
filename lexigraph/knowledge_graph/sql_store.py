import json
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from lexigraph.config import Settings, get_settings
from lexigraph.flashcards.models import FlashcardRecord, ReviewEvent, as_utc
from lexigraph.utils import get_logger
from .models import ConceptEdge, ConceptNode, pair_key
from .store import ConceptNotFound, ConceptStore, DuplicateEdge, DuplicateNode, GraphStoreError, StoreUnavailable, title_key
from .validation import InvalidParameter, require_strength

LOG = get_logger()


def _like(value: str) -> str:
    escaped = value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f'%{escaped}%'


class SQLGraphStore(ConceptStore):
    """Shared SQL for the relational adapters.

    Statements are written with ``?`` placeholders; dialects rewrite them.
    Every call goes through ``_run`` which retries StoreUnavailable with
    exponential backoff.
    """

    PLACEHOLDER = '?'
    LEAST = 'MIN'
    GREATEST = 'MAX'
    SCHEMA: List[str] = []

    _transient_errors: tuple = ()
    _integrity_errors: tuple = ()

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._retry_kwargs = dict(
            stop=stop_after_attempt(max(1, self.settings.STORE_RETRY_ATTEMPTS)),
            wait=wait_exponential(multiplier=self.settings.STORE_RETRY_MULTIPLIER, max=self.settings.STORE_RETRY_MAX_WAIT),
        )

    # plumbing

    @contextmanager
    def _connection(self):
        raise NotImplementedError

    def _sql(self, statement: str) -> str:
        if self.PLACEHOLDER == '?':
            return statement
        return statement.replace('?', self.PLACEHOLDER)

    def _dt_param(self, value: datetime):
        return as_utc(value)

    def _dt_value(self, value) -> Optional[datetime]:
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return as_utc(value)

    def _run(self, op: Callable[[Any], Any]):
        retryer = Retrying(retry=retry_if_exception_type(StoreUnavailable), reraise=True, **self._retry_kwargs)
        for attempt in retryer:
            with attempt:
                try:
                    with self._connection() as conn:
                        cur = conn.cursor()
                        try:
                            return op(cur)
                        finally:
                            cur.close()
                except self._transient_errors as e:
                    LOG.warning('store_transient_error', extra={'error': str(e), 'attempt': attempt.retry_state.attempt_number})
                    raise StoreUnavailable(str(e)) from e

    def _rows(self, cur) -> List[Dict[str, Any]]:
        cols = [d[0] for d in (cur.description or [])]
        return [dict(zip(cols, row)) for row in cur.fetchall()]

    def _query(self, statement: str, params: tuple = ()) -> List[Dict[str, Any]]:
        def op(cur):
            cur.execute(self._sql(statement), params)
            return self._rows(cur)
        return self._run(op)

    def ensure_schema(self):
        def op(cur):
            for stmt in self.SCHEMA:
                cur.execute(stmt)
        self._run(op)

    # row mapping

    def _node(self, row: Dict[str, Any]) -> ConceptNode:
        return ConceptNode(
            id=row['id'],
            type=row['type'],
            title=row['title'],
            description=row.get('description'),
            content=row.get('content'),
            created_at=self._dt_value(row.get('created_at')) or datetime.now(timezone.utc),
        )

    def _edge(self, row: Dict[str, Any]) -> ConceptEdge:
        meta = row.get('metadata')
        if isinstance(meta, str):
            try:
                meta = json.loads(meta)
            except ValueError:
                meta = {'raw': meta}
        return ConceptEdge(
            id=row['id'],
            source_id=row['source_id'],
            target_id=row['target_id'],
            type=row['type'],
            strength=float(row['strength']),
            metadata=meta or {},
        )

    def _flashcard(self, row: Dict[str, Any]) -> FlashcardRecord:
        return FlashcardRecord(
            id=row['id'],
            user_id=row['user_id'],
            word=row['word'],
            definition=row.get('definition') or '',
            example=row.get('example'),
            part_of_speech=row.get('part_of_speech'),
            difficulty=row.get('difficulty'),
            tags=row.get('tags'),
        )

    def _review(self, row: Dict[str, Any]) -> ReviewEvent:
        return ReviewEvent(
            id=row['id'],
            flashcard_id=row['flashcard_id'],
            user_id=row['user_id'],
            is_correct=bool(row['is_correct']),
            reviewed_at=self._dt_value(row['reviewed_at']),
        )

    # graph side

    def find_node_by_text(self, query: str) -> Optional[ConceptNode]:
        q = title_key(query)
        if not q:
            return None
        pattern = _like(q)
        rows = self._query(
            "SELECT * FROM concept_nodes "
            "WHERE title_key = ? OR title_key LIKE ? ESCAPE '\\' OR LOWER(COALESCE(description, '')) LIKE ? ESCAPE '\\' "
            "ORDER BY CASE WHEN title_key = ? THEN 0 WHEN title_key LIKE ? ESCAPE '\\' THEN 1 ELSE 2 END, created_at, id "
            "LIMIT 1",
            (q, pattern, pattern, q, pattern),
        )
        return self._node(rows[0]) if rows else None

    def find_node_by_title(self, title: str) -> Optional[ConceptNode]:
        rows = self._query("SELECT * FROM concept_nodes WHERE title_key = ?", (title_key(title),))
        return self._node(rows[0]) if rows else None

    def get_node(self, node_id: str) -> Optional[ConceptNode]:
        rows = self._query("SELECT * FROM concept_nodes WHERE id = ?", (node_id,))
        return self._node(rows[0]) if rows else None

    def list_nodes(self) -> List[ConceptNode]:
        return [self._node(r) for r in self._query("SELECT * FROM concept_nodes ORDER BY created_at, id")]

    def create_node(self, type: str, title: str, description: Optional[str] = None, content: Optional[str] = None) -> ConceptNode:
        key = title_key(title)
        if not key:
            raise InvalidParameter('title must not be empty')
        node = ConceptNode(id=uuid.uuid4().hex, type=type, title=key, description=description, content=content)

        def op(cur):
            cur.execute(
                self._sql(
                    "INSERT INTO concept_nodes (id, type, title, title_key, description, content, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?) ON CONFLICT (title_key) DO NOTHING"
                ),
                (node.id, node.type, node.title, key, description, content, self._dt_param(node.created_at)),
            )
            return cur.rowcount

        if self._run(op) == 0:
            raise DuplicateNode(key, self.find_node_by_title(key))
        LOG.debug('node_created', extra={'node_id': node.id, 'title': key, 'node_type': type})
        return node

    def update_node(self, node_id: str, description: Optional[str] = None, content: Optional[str] = None) -> ConceptNode:
        changes = [(col, v) for col, v in (('description', description), ('content', content)) if v is not None]
        if changes:
            assignments = ', '.join(f'{col} = ?' for col, _ in changes)
            params = tuple(v for _, v in changes) + (node_id,)

            def op(cur):
                cur.execute(self._sql(f"UPDATE concept_nodes SET {assignments} WHERE id = ?"), params)
                return cur.rowcount

            if self._run(op) == 0:
                raise ConceptNotFound(f'unknown node {node_id}')
        node = self.get_node(node_id)
        if node is None:
            raise ConceptNotFound(f'unknown node {node_id}')
        return node

    def create_edge(self, source_id: str, target_id: str, type: str, strength: float, metadata: Optional[Dict[str, Any]] = None) -> ConceptEdge:
        if source_id == target_id:
            raise InvalidParameter('an edge needs two distinct nodes')
        strength = require_strength(strength)
        edge = ConceptEdge(id=uuid.uuid4().hex, source_id=source_id, target_id=target_id, type=type, strength=strength, metadata=dict(metadata or {}))

        def op(cur):
            try:
                cur.execute(
                    self._sql(
                        "INSERT INTO concept_edges (id, source_id, target_id, pair_key, type, strength, metadata, created_at) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?) ON CONFLICT (pair_key) DO NOTHING"
                    ),
                    (edge.id, source_id, target_id, pair_key(source_id, target_id), type, strength, json.dumps(edge.metadata, default=str), self._dt_param(datetime.now(timezone.utc))),
                )
            except self._integrity_errors as e:
                raise InvalidParameter(f'cannot link {source_id} and {target_id}: {e}') from e
            return cur.rowcount

        if self._run(op) == 0:
            raise DuplicateEdge(source_id, target_id, self.find_edge_between(source_id, target_id))
        LOG.debug('edge_created', extra={'edge_id': edge.id, 'source': source_id, 'target': target_id, 'edge_type': type})
        return edge

    def find_edge_between(self, a: str, b: str) -> Optional[ConceptEdge]:
        rows = self._query("SELECT * FROM concept_edges WHERE pair_key = ?", (pair_key(a, b),))
        return self._edge(rows[0]) if rows else None

    def edges_touching(self, node_id: str) -> List[ConceptEdge]:
        rows = self._query(
            "SELECT * FROM concept_edges WHERE source_id = ? OR target_id = ? ORDER BY strength DESC, created_at, id",
            (node_id, node_id),
        )
        return [self._edge(r) for r in rows]

    def outgoing_edges(self, node_id: str, min_strength: float = 0.0) -> List[ConceptEdge]:
        rows = self._query(
            "SELECT * FROM concept_edges WHERE source_id = ? AND strength >= ? ORDER BY strength DESC, created_at, id",
            (node_id, min_strength),
        )
        return [self._edge(r) for r in rows]

    def edges_by_type(self, type: str, min_strength: float, max_strength: float) -> List[ConceptEdge]:
        rows = self._query(
            "SELECT * FROM concept_edges WHERE type = ? AND strength >= ? AND strength <= ? ORDER BY created_at, id",
            (type, min_strength, max_strength),
        )
        return [self._edge(r) for r in rows]

    def reinforce(self, edge_id: str, delta: float) -> ConceptEdge:
        def op(cur):
            cur.execute(
                self._sql(f"UPDATE concept_edges SET strength = {self.LEAST}(1.0, {self.GREATEST}(0.0, strength + ?)) WHERE id = ?"),
                (delta, edge_id),
            )
            if cur.rowcount == 0:
                raise GraphStoreError(f'unknown edge {edge_id}')
            cur.execute(self._sql("SELECT * FROM concept_edges WHERE id = ?"), (edge_id,))
            return self._rows(cur)[0]

        return self._edge(self._run(op))

    def health_check(self) -> bool:
        try:
            self._query("SELECT 1 AS ok")
            return True
        except GraphStoreError:
            LOG.exception('store_health_failed', exc_info=True)
            return False

    # loaders used by seeding scripts and tests

    def add_flashcard(self, flashcard: FlashcardRecord) -> FlashcardRecord:
        def op(cur):
            cur.execute(
                self._sql(
                    "INSERT INTO flashcards (id, user_id, word, definition, example, part_of_speech, difficulty, tags) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
                ),
                (flashcard.id, flashcard.user_id, flashcard.word, flashcard.definition, flashcard.example, flashcard.part_of_speech, flashcard.difficulty, ','.join(flashcard.tags)),
            )
        self._run(op)
        return flashcard

    def add_review(self, review: ReviewEvent) -> ReviewEvent:
        if review.id is None:
            review = review.model_copy(update={'id': uuid.uuid4().hex})

        def op(cur):
            cur.execute(
                self._sql("INSERT INTO flashcard_reviews (id, flashcard_id, user_id, is_correct, reviewed_at) VALUES (?, ?, ?, ?, ?)"),
                (review.id, review.flashcard_id, review.user_id, review.is_correct, self._dt_param(review.reviewed_at)),
            )
        self._run(op)
        return review

    # study records side

    def get_flashcard(self, flashcard_id: str) -> Optional[FlashcardRecord]:
        rows = self._query("SELECT * FROM flashcards WHERE id = ?", (flashcard_id,))
        return self._flashcard(rows[0]) if rows else None

    def flashcards_for_user(self, user_id: str) -> List[FlashcardRecord]:
        return [self._flashcard(r) for r in self._query("SELECT * FROM flashcards WHERE user_id = ?", (user_id,))]

    def search_flashcards(self, words: List[str], text: str, limit: int = 10) -> List[FlashcardRecord]:
        clauses = []
        params: List[Any] = []
        keys = [title_key(w) for w in words if w]
        if keys:
            clauses.append('LOWER(word) IN (' + ', '.join('?' for _ in keys) + ')')
            params.extend(keys)
        needle = title_key(text)
        if needle:
            clauses.append("LOWER(definition) LIKE ? ESCAPE '\\'")
            clauses.append("LOWER(COALESCE(tags, '')) LIKE ? ESCAPE '\\'")
            params.extend([_like(needle), _like(needle)])
        if not clauses:
            return []
        rows = self._query("SELECT * FROM flashcards WHERE " + ' OR '.join(clauses) + " LIMIT ?", tuple(params) + (limit,))
        return [self._flashcard(r) for r in rows]

    def flashcards_with_definition_containing(self, word: str, exclude_id: Optional[str] = None, limit: int = 3) -> List[FlashcardRecord]:
        rows = self._query(
            "SELECT * FROM flashcards WHERE LOWER(definition) LIKE ? ESCAPE '\\' AND id <> ? LIMIT ?",
            (_like(title_key(word)), exclude_id or '', limit),
        )
        return [self._flashcard(r) for r in rows]

    def reviews_for_flashcard(self, flashcard_id: str, limit: Optional[int] = None) -> List[ReviewEvent]:
        statement = "SELECT * FROM flashcard_reviews WHERE flashcard_id = ? ORDER BY reviewed_at DESC"
        params: tuple = (flashcard_id,)
        if limit is not None:
            statement += " LIMIT ?"
            params += (limit,)
        return [self._review(r) for r in self._query(statement, params)]

    def reviews_for_user(self, user_id: str, since: Optional[datetime] = None, exclude_flashcard_id: Optional[str] = None, limit: Optional[int] = None) -> List[ReviewEvent]:
        statement = "SELECT * FROM flashcard_reviews WHERE user_id = ?"
        params: tuple = (user_id,)
        if since is not None:
            statement += " AND reviewed_at >= ?"
            params += (self._dt_param(since),)
        if exclude_flashcard_id is not None:
            statement += " AND flashcard_id <> ?"
            params += (exclude_flashcard_id,)
        statement += " ORDER BY reviewed_at DESC"
        if limit is not None:
            statement += " LIMIT ?"
            params += (limit,)
        return [self._review(r) for r in self._query(statement, params)]

    def recent_reviews(self, since: datetime, limit: Optional[int] = None) -> List[ReviewEvent]:
        statement = "SELECT * FROM flashcard_reviews WHERE reviewed_at >= ? ORDER BY reviewed_at DESC"
        params: tuple = (self._dt_param(since),)
        if limit is not None:
            statement += " LIMIT ?"
            params += (limit,)
        return [self._review(r) for r in self._query(statement, params)]


SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS concept_nodes (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        title_key TEXT NOT NULL UNIQUE,
        description TEXT,
        content TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS concept_edges (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL REFERENCES concept_nodes(id),
        target_id TEXT NOT NULL REFERENCES concept_nodes(id),
        pair_key TEXT NOT NULL UNIQUE,
        type TEXT NOT NULL,
        strength REAL NOT NULL,
        metadata TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS flashcards (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        word TEXT NOT NULL,
        definition TEXT NOT NULL DEFAULT '',
        example TEXT,
        part_of_speech TEXT,
        difficulty TEXT,
        tags TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS flashcard_reviews (
        id TEXT PRIMARY KEY,
        flashcard_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        is_correct INTEGER NOT NULL,
        reviewed_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_edges_source ON concept_edges(source_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_target ON concept_edges(target_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_type ON concept_edges(type, strength)",
    "CREATE INDEX IF NOT EXISTS idx_flashcards_user ON flashcards(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_flashcard ON flashcard_reviews(flashcard_id, reviewed_at)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_user ON flashcard_reviews(user_id, reviewed_at)",
]


class SQLiteGraphStore(SQLGraphStore):
    SCHEMA = SQLITE_SCHEMA
    _transient_errors = (sqlite3.OperationalError,)
    _integrity_errors = (sqlite3.IntegrityError,)

    def __init__(self, db_path: Optional[str] = None, settings: Optional[Settings] = None):
        super().__init__(settings)
        self.db_path = db_path or self.settings.GRAPH_SQLITE_PATH
        # one shared connection; the lock serialises statements across threads
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.execute('PRAGMA foreign_keys = ON')
        self.ensure_schema()
        LOG.info('sqlite_store_opened', extra={'db_path': self.db_path})

    @contextmanager
    def _connection(self):
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _dt_param(self, value: datetime):
        # fixed-width ISO text keeps lexical order equal to time order
        return as_utc(value).isoformat(timespec='microseconds')

    def close(self):
        try:
            self._conn.close()
            LOG.info('sqlite_store_closed', extra={'db_path': self.db_path})
        except sqlite3.Error:
            LOG.exception('sqlite_close_failed', exc_info=True)


POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS concept_nodes (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        title_key TEXT NOT NULL UNIQUE,
        description TEXT,
        content TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS concept_edges (
        id TEXT PRIMARY KEY,
        source_id TEXT NOT NULL REFERENCES concept_nodes(id),
        target_id TEXT NOT NULL REFERENCES concept_nodes(id),
        pair_key TEXT NOT NULL UNIQUE,
        type TEXT NOT NULL,
        strength DOUBLE PRECISION NOT NULL CHECK (strength >= 0 AND strength <= 1),
        metadata TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS flashcards (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        word TEXT NOT NULL,
        definition TEXT NOT NULL DEFAULT '',
        example TEXT,
        part_of_speech TEXT,
        difficulty TEXT,
        tags TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS flashcard_reviews (
        id TEXT PRIMARY KEY,
        flashcard_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        is_correct BOOLEAN NOT NULL,
        reviewed_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_edges_source ON concept_edges(source_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_target ON concept_edges(target_id)",
    "CREATE INDEX IF NOT EXISTS idx_edges_type ON concept_edges(type, strength)",
    "CREATE INDEX IF NOT EXISTS idx_flashcards_user ON flashcards(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_flashcard ON flashcard_reviews(flashcard_id, reviewed_at)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_user ON flashcard_reviews(user_id, reviewed_at)",
]


class PostgresGraphStore(SQLGraphStore):
    PLACEHOLDER = '%s'
    LEAST = 'LEAST'
    GREATEST = 'GREATEST'
    SCHEMA = POSTGRES_SCHEMA

    def __init__(self, dsn: Optional[str] = None, pool=None, settings: Optional[Settings] = None, create_schema: bool = True):
        super().__init__(settings)
        import psycopg2
        from psycopg2 import pool as pg_pool

        self._transient_errors = (psycopg2.OperationalError, psycopg2.InterfaceError)
        self._integrity_errors = (psycopg2.IntegrityError,)
        if pool is None:
            try:
                pool = pg_pool.ThreadedConnectionPool(self.settings.DB_POOL_MIN, self.settings.DB_POOL_MAX, dsn or self.settings.postgres_dsn())
            except psycopg2.OperationalError as e:
                LOG.exception('postgres_pool_init_failed', exc_info=True)
                raise StoreUnavailable(str(e)) from e
            LOG.info('postgres_pool_initialized', extra={'host': self.settings.DB_HOST, 'db': self.settings.DB_NAME, 'pool_max': self.settings.DB_POOL_MAX})
        self._pool = pool
        if create_schema:
            self.ensure_schema()

    @contextmanager
    def _connection(self):
        conn = self._pool.getconn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def close(self):
        try:
            self._pool.closeall()
            LOG.info('postgres_pool_closed')
        except Exception:
            LOG.exception('postgres_pool_close_failed', exc_info=True)


def create_store(settings: Optional[Settings] = None) -> ConceptStore:
    settings = settings or get_settings()
    backend = settings.GRAPH_STORE_BACKEND.lower()
    if backend == 'sqlite':
        return SQLiteGraphStore(settings.GRAPH_SQLITE_PATH, settings=settings)
    if backend == 'postgres':
        return PostgresGraphStore(settings=settings)
    if backend == 'memory':
        from .memory_store import InMemoryGraphStore
        return InMemoryGraphStore()
    raise ValueError(f'unknown GRAPH_STORE_BACKEND {settings.GRAPH_STORE_BACKEND!r}')
