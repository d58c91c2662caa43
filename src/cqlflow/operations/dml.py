"""Data Manipulation Language (DML) operations.

This module contains operation classes for SELECT, INSERT, UPDATE,
DELETE and TRUNCATE. Query and value mappings are kept exactly as the
caller supplied them; the query builder interprets their operators.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from cqlflow.constants.cql import QueryType
from cqlflow.operations.base import BaseOperation


class Select(BaseOperation):
    """Select data operation.

    Supports:
    - Operator-based filtering, including ``$solr_query`` and ``$expr``
    - ``$orderby``, ``$groupby``, ``$per_partition_limit`` and ``$limit``
    - Projections, DISTINCT and ALLOW FILTERING
    - Reading from a declared materialized view
    """
    operation_type: Literal[QueryType.SELECT] = Field(
        default=QueryType.SELECT,
        frozen=True
    )

    query: Dict[str, Any] = Field(default_factory=dict)
    select: Optional[List[str]] = Field(default=None)  # None = SELECT *
    distinct: bool = Field(default=False)
    allow_filtering: bool = Field(default=False)
    materialized_view: Optional[str] = Field(default=None)


class Insert(BaseOperation):
    """Insert one row.

    Declared fields missing from ``values`` fall back to their default
    provider; ``ttl`` falls back to the table default when None.
    """
    operation_type: Literal[QueryType.INSERT] = Field(
        default=QueryType.INSERT,
        frozen=True
    )
    values: Dict[str, Any] = Field(default_factory=dict)
    if_not_exists: bool = Field(default=False)
    ttl: Optional[int] = Field(default=None, ge=0)


class Update(BaseOperation):
    """Update rows matched by ``query``."""
    operation_type: Literal[QueryType.UPDATE] = Field(
        default=QueryType.UPDATE,
        frozen=True
    )
    query: Dict[str, Any] = Field(...)
    values: Dict[str, Any] = Field(...)  # Column -> value or collection directive
    ttl: Optional[int] = Field(default=None, ge=0)
    if_exists: bool = Field(default=False)
    conditions: Optional[Dict[str, Any]] = Field(default=None)

    @field_validator('values')
    @classmethod
    def validate_values(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        """Ensure values is not empty."""
        if not v:
            raise ValueError("values cannot be empty")
        return v

    @model_validator(mode='after')
    def validate_lwt(self):
        """IF EXISTS and IF conditions are mutually exclusive."""
        if self.if_exists and self.conditions:
            raise ValueError("Update accepts either if_exists or conditions, not both")
        return self


class Delete(BaseOperation):
    """Delete rows matched by ``query``."""
    operation_type: Literal[QueryType.DELETE] = Field(
        default=QueryType.DELETE,
        frozen=True
    )
    query: Dict[str, Any] = Field(...)


class Truncate(BaseOperation):
    """Remove every row of the table."""
    operation_type: Literal[QueryType.TRUNCATE] = Field(
        default=QueryType.TRUNCATE,
        frozen=True
    )
