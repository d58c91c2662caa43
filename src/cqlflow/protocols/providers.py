"""Collaborator protocol definitions.

This module defines the protocols for the collaborators cqlflow consumes
but does not implement itself: statement execution, live schema
introspection, interactive confirmation and record construction. The
wire protocol, connection pooling and value encoding all live behind
``StatementExecutor``.
"""

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Protocol, Sequence, runtime_checkable

from pydantic import Field

from cqlflow.types.base import FrozenModel

if TYPE_CHECKING:
    from cqlflow.schema.live import LiveSchema


class ExecutionOptions(FrozenModel):
    """Per-statement execution options handed to the executor.

    Attributes:
        prepare: Execute as a prepared statement
        fetch_size: Page size; None disables paging
        consistency: Optional consistency level name understood by the executor
    """
    prepare: bool = Field(default=True)
    fetch_size: Optional[int] = Field(default=None, ge=1)
    consistency: Optional[str] = Field(default=None)


# DDL and other definition queries run unprepared and without paging.
DEFINITION_QUERY_OPTIONS = ExecutionOptions(prepare=False, fetch_size=None)


@runtime_checkable
class StatementExecutor(Protocol):
    """Executes CQL text with bound parameters.

    Implementations raise on failure. An exception carrying a ``code``
    attribute equal to ``SCHEMA_MISMATCH_ERROR_CODE`` signals that the
    statement should be re-run as a definition query.
    """

    def run(
        self,
        statement: str,
        params: Sequence[Any],
        options: ExecutionOptions,
    ) -> Iterable[Dict[str, Any]]:
        """Execute a statement and return its rows as mappings."""
        ...


@runtime_checkable
class SchemaOracle(Protocol):
    """Introspects the table definition present in the store."""

    def fetch_live_schema(self, table_name: str) -> Optional["LiveSchema"]:
        """Return the live schema, or None when the table does not exist."""
        ...


@runtime_checkable
class ConfirmationOracle(Protocol):
    """Asks an operator to approve a destructive migration step."""

    def ask(self, prompt: str) -> str:
        """Return the raw answer; only ``y`` (case-insensitive) approves."""
        ...


@runtime_checkable
class RecordFactory(Protocol):
    """Turns a raw result row into a typed record."""

    def __call__(self, row: Dict[str, Any]) -> Any:
        ...


RowSet = List[Dict[str, Any]]
