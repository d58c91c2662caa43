"""Sentinel values with special meaning to the value compiler."""

from typing import Any

from cqlflow.constants.cql import DB_FUNCTION_KEY


class _Unset:
    """Bound in place of a value to leave the column untouched on write."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


class _Missing:
    """Marks a field that was not supplied at all (as opposed to None)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()
MISSING = _Missing()


def db_function(expression: str) -> dict:
    """Build a database-function marker, e.g. ``db_function("now()")``."""
    return {DB_FUNCTION_KEY: expression}


def is_db_function(value: Any) -> bool:
    return isinstance(value, dict) and DB_FUNCTION_KEY in value


def is_unset(value: Any) -> bool:
    return value is UNSET


def is_null_like(value: Any) -> bool:
    """None, UNSET and MISSING all mean 'no concrete value'."""
    return value is None or value is UNSET or value is MISSING
