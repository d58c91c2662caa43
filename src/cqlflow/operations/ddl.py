"""Data Definition Language (DDL) operations.

This module contains operation classes for schema statements: tables,
secondary and custom indexes and materialized views.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from cqlflow.constants.cql import AlterAction, QueryType
from cqlflow.operations.base import IDENTIFIER_PATTERN, BaseOperation
from cqlflow.types.base import FrozenModel


class ColumnDefinition(FrozenModel):
    """A column of a CREATE TABLE statement."""
    name: str = Field(..., min_length=1)
    cql_type: str = Field(..., min_length=1)
    static: bool = False


class CreateTable(BaseOperation):
    """Create table operation.

    Columns are emitted in the given order followed by the primary key.
    Clustering order is only emitted when at least one direction is given.
    """
    operation_type: Literal[QueryType.CREATE_TABLE] = Field(
        default=QueryType.CREATE_TABLE,
        frozen=True
    )
    columns: List[ColumnDefinition] = Field(..., min_length=1)
    partition_key: List[str] = Field(..., min_length=1)
    clustering_key: List[str] = Field(default_factory=list)
    clustering_order: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_key_columns(self):
        """Ensure every key column is one of the declared columns."""
        names = {column.name for column in self.columns}
        missing = [col for col in self.partition_key + self.clustering_key if col not in names]
        if missing:
            raise ValueError(f"Key columns {missing} are not defined in table '{self.table_name}'")
        return self


class DropTable(BaseOperation):
    """Drop table operation."""
    operation_type: Literal[QueryType.DROP_TABLE] = Field(
        default=QueryType.DROP_TABLE,
        frozen=True
    )
    if_exists: bool = Field(default=True)


class AlterTable(BaseOperation):
    """ALTER TABLE ADD, DROP or ALTER ... TYPE on one column."""
    operation_type: Literal[QueryType.ALTER_TABLE] = Field(
        default=QueryType.ALTER_TABLE,
        frozen=True
    )
    action: AlterAction
    column: str = Field(..., min_length=1)
    cql_type: Optional[str] = Field(default=None)
    static: bool = Field(default=False)

    @model_validator(mode='after')
    def validate_type(self):
        """ADD and ALTER need a type, DROP must not carry one."""
        action = AlterAction(self.action)
        if action != AlterAction.DROP and not self.cql_type:
            raise ValueError(f"ALTER TABLE {action.value} requires a column type")
        if action == AlterAction.DROP and self.cql_type:
            raise ValueError("ALTER TABLE DROP does not take a column type")
        return self


class CreateIndex(BaseOperation):
    """Secondary index on a column or a collection part (``keys(tags)``)."""
    operation_type: Literal[QueryType.CREATE_INDEX] = Field(
        default=QueryType.CREATE_INDEX,
        frozen=True
    )
    target: str = Field(..., min_length=1)


class CreateCustomIndex(BaseOperation):
    """Index backed by a pluggable implementation class."""
    operation_type: Literal[QueryType.CREATE_CUSTOM_INDEX] = Field(
        default=QueryType.CREATE_CUSTOM_INDEX,
        frozen=True
    )
    on: str = Field(..., min_length=1)
    using: str = Field(..., min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


class DropIndex(BaseOperation):
    """Drop index operation; indexes are dropped by name."""
    operation_type: Literal[QueryType.DROP_INDEX] = Field(
        default=QueryType.DROP_INDEX,
        frozen=True
    )
    index_name: str = Field(..., min_length=1)
    if_exists: bool = Field(default=True)


class _ViewOperation(BaseOperation):
    view_name: str = Field(..., min_length=1, max_length=48)

    @field_validator("view_name")
    @classmethod
    def validate_view_name(cls, v: str) -> str:
        if not IDENTIFIER_PATTERN.match(v):
            raise ValueError(f"Invalid view_name: '{v}'")
        return v


class CreateMaterializedView(_ViewOperation):
    """Create materialized view operation.

    Every key column is filtered with IS NOT NULL, as the store requires.
    """
    operation_type: Literal[QueryType.CREATE_MATERIALIZED_VIEW] = Field(
        default=QueryType.CREATE_MATERIALIZED_VIEW,
        frozen=True
    )
    select: List[str] = Field(default_factory=lambda: ["*"])
    partition_key: List[str] = Field(..., min_length=1)
    clustering_key: List[str] = Field(default_factory=list)
    clustering_order: Dict[str, str] = Field(default_factory=dict)


class DropMaterializedView(_ViewOperation):
    """Drop materialized view operation."""
    operation_type: Literal[QueryType.DROP_MATERIALIZED_VIEW] = Field(
        default=QueryType.DROP_MATERIALIZED_VIEW,
        frozen=True
    )
    if_exists: bool = Field(default=True)
