from lexigraph.config import Settings, get_settings


def test_defaults():
    s = Settings(_env_file=None)
    assert s.TRAVERSAL_MAX_NODES == 1000
    assert s.COSTUDY_WINDOW_MINUTES == 30
    assert s.REINFORCE_DELTA == 0.1
    assert s.STALE_AFTER_DAYS == 3


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv('GRAPH_STORE_BACKEND', 'sqlite')
    monkeypatch.setenv('PATH_MAX_EXPANSIONS', '42')
    s = Settings(_env_file=None)
    assert s.GRAPH_STORE_BACKEND == 'sqlite'
    assert s.PATH_MAX_EXPANSIONS == 42


def test_postgres_dsn():
    s = Settings(_env_file=None, DB_HOST='db', DB_PORT=6543, DB_NAME='graph', DB_USER='lex', DB_PASSWORD='pw')
    assert s.postgres_dsn() == 'host=db port=6543 dbname=graph user=lex password=pw'
    assert s.postgres_dsn(password='secret').endswith('password=secret')


def test_get_settings_is_cached():
    assert get_settings() is get_settings()
