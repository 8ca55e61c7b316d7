from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    ENVIRONMENT: str = 'development'
    LOG_LEVEL: str = 'INFO'

    # store selection: memory | sqlite | postgres
    GRAPH_STORE_BACKEND: str = 'memory'
    GRAPH_SQLITE_PATH: str = 'lexigraph.db'

    DB_HOST: str = 'localhost'
    DB_PORT: int = 5432
    DB_NAME: str = 'lexigraph'
    DB_USER: str = 'postgres'
    DB_PASSWORD: str = ''
    DB_POOL_MIN: int = 1
    DB_POOL_MAX: int = 10

    STORE_RETRY_ATTEMPTS: int = 3
    STORE_RETRY_MULTIPLIER: float = 0.5
    STORE_RETRY_MAX_WAIT: float = 5.0

    # traversal / search bounds
    TRAVERSAL_MAX_NODES: int = 1000
    PATH_MAX_EXPANSIONS: int = 5000
    PATH_RESULT_LIMIT: int = 5
    RELATED_FLASHCARD_LIMIT: int = 10
    QUERY_MAX_LENGTH: int = 200

    SIMILARITY_STRENGTH_TOLERANCE: float = 0.2
    SIMILARITY_CONTEXT_SIZE: int = 3
    SIMILARITY_WORKERS: int = 1

    CLUSTER_MIN_STRENGTH: float = 0.7

    # auto-builder
    COSTUDY_WINDOW_MINUTES: int = 30
    COSTUDY_LOOKBACK: int = 5
    COSTUDY_MIN_STRENGTH: float = 0.3
    REINFORCE_DELTA: float = 0.1
    DEFINITION_LINK_STRENGTH: float = 0.5
    DEFINITION_LINK_CANDIDATES: int = 3
    HOOK_TIMEOUT_SECONDS: float = 30.0

    # recommendations
    WEAK_AREA_REVIEW_WINDOW: int = 5
    WEAK_AREA_ACCURACY_THRESHOLD: float = 0.6
    STALE_AFTER_DAYS: int = 3
    GRAPH_SIGNAL_LOOKBACK_DAYS: int = 7
    GRAPH_SIGNAL_SEED_LIMIT: int = 10
    STATS_WEAK_AREA_DAYS: int = 30
    STATS_WEAK_AREA_MIN_REVIEWS: int = 3
    STATS_STREAK_LOOKBACK_DAYS: int = 365

    def postgres_dsn(self, password: Optional[str] = None) -> str:
        pwd = self.DB_PASSWORD if password is None else password
        return f"host={self.DB_HOST} port={self.DB_PORT} dbname={self.DB_NAME} user={self.DB_USER} password={pwd}"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
