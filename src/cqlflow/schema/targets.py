"""Index target parsing shared by declared and introspected schemas.

Secondary indexes are declared as a column name optionally wrapped in an
index function: ``name``, ``keys(tags)``, ``entries(attrs)``,
``full(frozen_col)`` or ``values(items)``. The store reports the same
target in its own spelling (quoted, ``values(...)`` for collections), so
both sides are reduced to one canonical form before they are compared.
"""

import hashlib
import json
import re
from typing import Any, Dict, Optional, Tuple

INDEX_FUNCTIONS = frozenset({"keys", "values", "entries", "full"})

_TARGET_RE = re.compile(r"^\s*(?:([a-zA-Z_]+)\s*\(\s*(.+?)\s*\)|(.+?))\s*$")


def parse_index_target(expression: str) -> Tuple[Optional[str], str]:
    """Split an index expression into ``(function, column)``.

    ``values`` is the implicit function for collection indexes and is
    returned as None so that ``values(x)`` and ``x`` compare equal.

    Raises:
        ValueError: If the expression is empty or uses an unknown function
    """
    match = _TARGET_RE.match(expression or "")
    if not match:
        raise ValueError(f"Malformed index expression: {expression!r}")

    function, wrapped, bare = match.groups()
    column = (wrapped if function else bare).replace('"', "").strip()
    if not column:
        raise ValueError(f"Malformed index expression: {expression!r}")

    if function is None:
        return None, column

    function = function.lower()
    if function not in INDEX_FUNCTIONS:
        raise ValueError(f"Unknown index function '{function}' in {expression!r}")
    if function == "values":
        return None, column
    return function, column


def normalize_index_target(expression: str) -> str:
    """Canonical form of an index expression: ``name`` or ``keys(tags)``."""
    function, column = parse_index_target(expression)
    if function is None:
        return column
    return f"{function}({column})"


def index_target_column(expression: str) -> str:
    return parse_index_target(expression)[1]


def format_index_target(expression: str) -> str:
    """Render an index target for CREATE INDEX: ``"name"`` or ``keys("tags")``."""
    function, column = parse_index_target(expression)
    if function is None:
        return f'"{column}"'
    return f'{function}("{column}")'


def custom_index_hash(custom_index: Dict[str, Any]) -> str:
    """Content hash identifying a custom index independent of key order."""
    payload = json.dumps(
        {
            "on": str(custom_index.get("on", "")).replace('"', ""),
            "using": custom_index.get("using"),
            "options": custom_index.get("options") or {},
        },
        sort_keys=True,
        default=str,
    )
    return hashlib.sha1(payload.encode("utf-8")).hexdigest()
