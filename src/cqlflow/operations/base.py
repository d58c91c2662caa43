"""Base operation definitions.

This module defines the base operation class that all statement
operations inherit from. Operations are data structures that describe
what statement should be produced, independent of how it is compiled
or executed.
"""

import re

from pydantic import Field, field_validator

from cqlflow.constants.cql import QueryType
from cqlflow.types.base import CQLFlowBaseModel

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")


class BaseOperation(CQLFlowBaseModel):
    """Base class for all statement operations.

    Operations are pure data structures that describe WHAT to do,
    not HOW to do it. They are transformed into CQL by the query builder
    and executed by the model through the statement executor.

    Attributes:
        operation_type: The type of statement to build
        table_name: Name of the base table
    """
    operation_type: QueryType
    table_name: str = Field(..., min_length=1, max_length=48)

    @field_validator("table_name")
    @classmethod
    def validate_identifier(cls, v: str, info) -> str:
        """Validate CQL identifiers to prevent injection."""
        if not IDENTIFIER_PATTERN.match(v):
            raise ValueError(
                f"Invalid {info.field_name}: '{v}'. "
                f"Must start with a letter and contain only alphanumeric or underscore characters."
            )
        return v
