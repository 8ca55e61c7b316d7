import json
import logging

import pytest

from lexigraph.utils import get_logger, log_graph_build, log_recommendations, set_request_context


@pytest.fixture(autouse=True)
def clear_context():
    yield
    set_request_context(None)


def test_json_logger_injects_request_context(monkeypatch, capsys):
    monkeypatch.setenv('LOG_FORMAT', 'json')
    monkeypatch.setenv('LOG_TO_FILE', 'false')
    logger = get_logger('lexigraph.test_json')
    logger.propagate = False
    try:
        set_request_context('req-1', 'u1')
        logger.info('hello')
        logger.info('override', extra={'request_id': 'req-2'})
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line.strip()]
    assert lines[0]['message'] == 'hello'
    assert lines[0]['request_id'] == 'req-1'
    assert lines[0]['user_id'] == 'u1'
    assert lines[1]['request_id'] == 'req-2'


def test_get_logger_does_not_stack_handlers():
    logger = get_logger('lexigraph.test_handlers')
    count = len(logger.handlers)
    assert get_logger('lexigraph.test_handlers') is logger
    assert len(logger.handlers) == count


def test_structured_helpers(caplog):
    caplog.set_level(logging.INFO)
    log_graph_build('review', {'edges_created': 2}, 12, user_id='u1', flashcard_id='c1')
    log_recommendations('u1', 3, {'weak_area': 3}, 5, failed_signals=['knowledge_graph'])

    build = next(r for r in caplog.records if r.getMessage() == 'graph_build')
    assert build.trigger == 'review'
    assert build.edges_created == 2
    assert build.flashcard_id == 'c1'

    recs = next(r for r in caplog.records if r.getMessage() == 'recommendations_generated')
    assert recs.total_found == 3
    assert recs.failed_signals == ['knowledge_graph']
