"""Constants module for cqlflow.

This module contains all constant values and enumerations used throughout
cqlflow. As Layer 0 in the architecture, this module has no dependencies
on other cqlflow modules.

Organization:
    - cql: Statement types and operator vocabularies
    - migration: Migration policy and planner states
"""

from cqlflow.constants.cql import (
    QueryType,
    AlterAction,
    QUERY_OPERATORS,
    QUERY_META_KEYS,
    ORDER_DIRECTIONS,
    UPDATE_DIRECTIVES,
    DB_FUNCTION_KEY,
    SCHEMA_MISMATCH_ERROR_CODE,
)
from cqlflow.constants.migration import (
    MigrationPolicy,
    MigrationState,
    DiffKind,
    StepStatus,
)

__all__ = [
    # CQL
    "QueryType",
    "AlterAction",
    "QUERY_OPERATORS",
    "QUERY_META_KEYS",
    "ORDER_DIRECTIONS",
    "UPDATE_DIRECTIVES",
    "DB_FUNCTION_KEY",
    "SCHEMA_MISMATCH_ERROR_CODE",
    # Migration
    "MigrationPolicy",
    "MigrationState",
    "DiffKind",
    "StepStatus",
]
