"""
Typed Path Accessor

Total lookups of dot-notated paths ("payload.merchant.name") into the
arbitrary nested JSON of an event document. Nothing here raises: a
missing key, a non-mapping intermediate or an empty path all resolve to
None, and every extraction site narrows the returned value explicitly.
"""

import json
import math
from typing import Any, Optional


def get_by_path(document: Any, path: str) -> Optional[Any]:
    """Resolve a dot-notated path, returning None when any segment is absent."""
    if not isinstance(document, dict) or not path:
        return None

    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def last_segment(path: str) -> str:
    """Field name at the end of a path."""
    return path.rsplit(".", 1)[-1] or path


def is_number(value: Any) -> bool:
    """True for int/float values that are not booleans and are finite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not (isinstance(value, float) and not math.isfinite(value))


def format_scalar(value: Any) -> str:
    """
    Render a scalar the way the event JSON spells it.

    Booleans become true/false and integral floats drop their trailing .0,
    so 42.0 and 42 render identically.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def extract_text_value(document: Any, path: str) -> str:
    """
    String rendering of the value at a path.

    Strings pass through, numbers and booleans are rendered as scalars,
    lists are joined by ", " keeping only string and number elements.
    Mappings and missing values give an empty string.
    """
    value = get_by_path(document, path)

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return format_scalar(value)
    if isinstance(value, list):
        items = [
            item if isinstance(item, str) else format_scalar(item)
            for item in value
            if isinstance(item, str) or is_number(item)
        ]
        return ", ".join(items)
    return ""


def _json_compatible(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, list):
        return [_json_compatible(item) for item in value]
    if isinstance(value, dict):
        return {key: _json_compatible(item) for key, item in value.items()}
    return value


def to_compact_json(value: Any) -> str:
    """Compact JSON rendering used by the structured text fallback."""
    return json.dumps(
        _json_compatible(value),
        separators=(",", ":"),
        ensure_ascii=False,
        default=str
    )
