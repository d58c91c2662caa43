"""Statement operations.

Operations describe a statement as plain data; ``cqlflow.query_builder``
turns them into CQL text and bound parameters.
"""

from cqlflow.operations.base import BaseOperation
from cqlflow.operations.ddl import (
    AlterTable,
    ColumnDefinition,
    CreateCustomIndex,
    CreateIndex,
    CreateMaterializedView,
    CreateTable,
    DropIndex,
    DropMaterializedView,
    DropTable,
)
from cqlflow.operations.dml import Delete, Insert, Select, Truncate, Update

__all__ = [
    "AlterTable",
    "BaseOperation",
    "ColumnDefinition",
    "CreateCustomIndex",
    "CreateIndex",
    "CreateMaterializedView",
    "CreateTable",
    "Delete",
    "DropIndex",
    "DropMaterializedView",
    "DropTable",
    "Insert",
    "Select",
    "Truncate",
    "Update",
]
