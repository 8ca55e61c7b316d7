from typing import Optional

from lexigraph.config import get_settings


class InvalidParameter(ValueError):
    pass


def require_query(value, name: str = 'word', max_length: Optional[int] = None) -> str:
    if not isinstance(value, str):
        raise InvalidParameter(f'{name} must be a string')
    cleaned = value.strip()
    if not cleaned:
        raise InvalidParameter(f'{name} must not be empty')
    max_length = max_length or get_settings().QUERY_MAX_LENGTH
    if len(cleaned) > max_length:
        raise InvalidParameter(f'{name} must be at most {max_length} characters')
    return cleaned


def require_non_negative(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(f'{name} must be an integer')
    if value < 0:
        raise InvalidParameter(f'{name} must be >= 0')
    return value


def require_strength(value, name: str = 'strength') -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f'{name} must be a number')
    if not (0.0 <= v <= 1.0):
        raise InvalidParameter(f'{name} must be within [0, 1]')
    return v


def require_non_negative_number(value, name: str) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise InvalidParameter(f'{name} must be a number')
    if v < 0:
        raise InvalidParameter(f'{name} must be >= 0')
    return v
