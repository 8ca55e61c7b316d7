import os
import sys
import logging
import pathlib
import contextvars
from logging.handlers import RotatingFileHandler
from pythonjsonlogger import jsonlogger

_context = contextvars.ContextVar('lexigraph_log_context', default={})

JSON_FIELDS = '%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(user_id)s'
TEXT_FIELDS = '%(asctime)s %(levelname)s %(name)s %(message)s'


def set_request_context(request_id: str, user_id: str = None):
    _context.set({'request_id': request_id, 'user_id': user_id})


def get_request_context():
    return _context.get()


class ContextFilter(logging.Filter):
    """Copies the ambient request context onto records that do not carry their own."""

    def filter(self, record):
        ctx = get_request_context()
        for key in ('request_id', 'user_id'):
            if getattr(record, key, None) is None:
                setattr(record, key, ctx.get(key))
        return True


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes')


def _formatter():
    if os.getenv('LOG_FORMAT', 'json').lower() == 'json':
        return jsonlogger.JsonFormatter(JSON_FIELDS)
    return logging.Formatter(TEXT_FIELDS)


def _file_handlers(fmt):
    directory = pathlib.Path(os.getenv('LOG_FILE_PATH', 'logs'))
    if not directory.is_absolute():
        directory = pathlib.Path.cwd() / directory
    directory.mkdir(parents=True, exist_ok=True)

    max_bytes = int(os.getenv('LOG_MAX_SIZE', str(10 * 1024 * 1024)))
    backups = int(os.getenv('LOG_MAX_FILES', '7'))
    handlers = []
    for filename, level in (('combined.log', logging.NOTSET), ('error.log', logging.ERROR)):
        handler = RotatingFileHandler(directory / filename, maxBytes=max_bytes, backupCount=backups)
        handler.setLevel(level)
        handler.setFormatter(fmt)
        handlers.append(handler)
    return handlers


def get_logger(name: str = 'lexigraph'):
    """Configured logger; handlers are attached once per name.

    Reads LOG_LEVEL, LOG_FORMAT (json|text), LOG_TO_FILE, LOG_FILE_PATH,
    LOG_MAX_SIZE and LOG_MAX_FILES from the environment.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())
    fmt = _formatter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(fmt)
    logger.addHandler(console)

    if _env_flag('LOG_TO_FILE', 'true'):
        for handler in _file_handlers(fmt):
            logger.addHandler(handler)

    logger.addFilter(ContextFilter())
    logging.captureWarnings(True)
    return logger


def log_graph_operation(operation: str, node_count: int, edge_count: int, duration_ms: float, request_id: str = None, **fields):
    get_logger().info('graph_operation', extra={
        'request_id': request_id or get_request_context().get('request_id'),
        'operation': operation,
        'node_count': node_count,
        'edge_count': edge_count,
        'duration_ms': duration_ms,
        **fields,
    })


def log_graph_build(trigger: str, counters: dict, duration_ms: float, user_id: str = None, flashcard_id: str = None):
    get_logger().info('graph_build', extra={
        'trigger': trigger,
        'flashcard_id': flashcard_id,
        'user_id': user_id,
        'duration_ms': duration_ms,
        **(counters or {}),
    })


def log_recommendations(user_id: str, total_found: int, signal_counts: dict, duration_ms: float, failed_signals: list = None):
    get_logger().info('recommendations_generated', extra={
        'user_id': user_id,
        'total_found': total_found,
        'signal_counts': signal_counts,
        'failed_signals': failed_signals or [],
        'duration_ms': duration_ms,
    })
