"""Protocol definitions for cqlflow collaborators."""

from cqlflow.protocols.providers import (
    ExecutionOptions,
    DEFINITION_QUERY_OPTIONS,
    StatementExecutor,
    SchemaOracle,
    ConfirmationOracle,
    RecordFactory,
    RowSet,
)

__all__ = [
    "ExecutionOptions",
    "DEFINITION_QUERY_OPTIONS",
    "StatementExecutor",
    "SchemaOracle",
    "ConfirmationOracle",
    "RecordFactory",
    "RowSet",
]
