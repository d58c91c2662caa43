"""CQL type catalog.

Every column type a table may declare is registered here together with the
Python check used by the built-in type validator. Collection types carry a
type definition (``<text>``, ``<text, int>``) that is part of the declared
column type but is not inspected by the value check.
"""

import datetime
import decimal
import ipaddress
import re
import uuid
from typing import Any, Callable, Dict, Optional, Tuple

INT8 = (-2 ** 7, 2 ** 7 - 1)
INT16 = (-2 ** 15, 2 ** 15 - 1)
INT32 = (-2 ** 31, 2 ** 31 - 1)
INT64 = (-2 ** 63, 2 ** 63 - 1)

_TYPE_STRING_RE = re.compile(r"^\s*([a-zA-Z_]+)\s*(<.*>)?\s*$", re.DOTALL)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _in_range(bounds: Tuple[int, int]) -> Callable[[Any], bool]:
    low, high = bounds

    def check(value: Any) -> bool:
        return _is_integer(value) and low <= value <= high
    return check


def _is_ascii(value: Any) -> bool:
    return isinstance(value, str) and value.isascii()


def _is_text(value: Any) -> bool:
    return isinstance(value, str)


def _is_blob(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def _is_boolean(value: Any) -> bool:
    return isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_decimal(value: Any) -> bool:
    return isinstance(value, decimal.Decimal) or _is_number(value)


def _is_date(value: Any) -> bool:
    if isinstance(value, datetime.datetime):
        return False
    if isinstance(value, datetime.date):
        return True
    if isinstance(value, str):
        try:
            datetime.date.fromisoformat(value)
        except ValueError:
            return False
        return True
    return False


def _is_time(value: Any) -> bool:
    # nanoseconds since midnight are accepted as well
    if isinstance(value, datetime.time):
        return True
    return _is_integer(value) and 0 <= value < 86400 * 10 ** 9


def _is_timestamp(value: Any) -> bool:
    return isinstance(value, (datetime.datetime, datetime.date)) or _is_integer(value)


def _is_duration(value: Any) -> bool:
    return isinstance(value, (datetime.timedelta, str))


def _is_inet(value: Any) -> bool:
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return True
    if isinstance(value, str):
        try:
            ipaddress.ip_address(value)
        except ValueError:
            return False
        return True
    return False


def _as_uuid(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, str):
        try:
            return uuid.UUID(value)
        except ValueError:
            return None
    return None


def _is_uuid(value: Any) -> bool:
    # strings are bound as-is and checked by the store
    return isinstance(value, (uuid.UUID, str))


def _is_timeuuid(value: Any) -> bool:
    parsed = _as_uuid(value)
    return parsed is not None and parsed.version == 1


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _is_set(value: Any) -> bool:
    return isinstance(value, (set, frozenset, list, tuple))


def _is_map(value: Any) -> bool:
    return isinstance(value, dict)


def _is_tuple(value: Any) -> bool:
    return isinstance(value, (tuple, list))


def _is_anything(value: Any) -> bool:
    return True


TYPE_VALIDATORS: Dict[str, Callable[[Any], bool]] = {
    "ascii": _is_ascii,
    "bigint": _in_range(INT64),
    "blob": _is_blob,
    "boolean": _is_boolean,
    "counter": _in_range(INT64),
    "date": _is_date,
    "decimal": _is_decimal,
    "double": _is_number,
    "duration": _is_duration,
    "float": _is_number,
    "inet": _is_inet,
    "int": _in_range(INT32),
    "list": _is_list,
    "map": _is_map,
    "set": _is_set,
    "smallint": _in_range(INT16),
    "text": _is_text,
    "time": _is_time,
    "timestamp": _is_timestamp,
    "timeuuid": _is_timeuuid,
    "tinyint": _in_range(INT8),
    "tuple": _is_tuple,
    "uuid": _is_uuid,
    "varchar": _is_text,
    "varint": _is_integer,
    "frozen": _is_anything,
}

COLLECTION_TYPES = frozenset({"list", "set", "map"})
PARAMETERIZED_TYPES = frozenset({"list", "set", "map", "tuple", "frozen"})

# Equivalent spellings collapsed before schemas are compared.
TYPE_ALIASES = {
    "varchar": "text",
}


def is_known_type(type_name: str) -> bool:
    return type_name in TYPE_VALIDATORS


def is_collection(type_name: str) -> bool:
    return type_name in COLLECTION_TYPES


def requires_type_def(type_name: str) -> bool:
    return type_name in PARAMETERIZED_TYPES


def canonical_type(type_name: str) -> str:
    type_name = type_name.strip().lower()
    return TYPE_ALIASES.get(type_name, type_name)


def canonical_type_def(type_def: Optional[str]) -> Optional[str]:
    """Strip whitespace and quotes and collapse aliases inside a type definition."""
    if not type_def:
        return None
    compact = re.sub(r"[\s\"]", "", type_def).lower()
    for alias, target in TYPE_ALIASES.items():
        compact = re.sub(rf"\b{alias}\b", target, compact)
    return compact


def split_type_string(type_string: str) -> Tuple[str, Optional[str]]:
    """Split ``map<text, int>`` into ``("map", "<text, int>")``.

    Raises:
        ValueError: If the string is not a well formed type
    """
    match = _TYPE_STRING_RE.match(type_string or "")
    if not match:
        raise ValueError(f"Malformed type: {type_string!r}")
    return match.group(1).lower(), match.group(2)


def collection_kind(type_name: str, type_def: Optional[str] = None) -> Optional[str]:
    """Return ``list``, ``set`` or ``map`` for a collection column, else None.

    ``frozen<...>`` is looked through, so ``frozen<set<text>>`` is a set.
    """
    if type_name in COLLECTION_TYPES:
        return type_name
    if type_name != "frozen" or not type_def:
        return None
    try:
        inner, _ = split_type_string(type_def.strip()[1:-1])
    except ValueError:
        return None
    return inner if inner in COLLECTION_TYPES else None


def format_type(type_name: str, type_def: Optional[str] = None) -> str:
    """Render a column type for DDL (``map<text, int>``)."""
    return f"{type_name}{type_def or ''}"


def check_value(type_name: str, value: Any) -> bool:
    """Return True when ``value`` is acceptable for ``type_name``."""
    validator = TYPE_VALIDATORS.get(type_name)
    if validator is None:
        raise KeyError(type_name)
    return validator(value)
