"""Base model class for all cqlflow models with serialization support."""

from typing import Any, Dict
from pydantic import BaseModel, ConfigDict


class CQLFlowBaseModel(BaseModel):
    """Base model for cqlflow data structures.

    Provides consistent configuration and ``to_dict()`` serialization
    that recursively flattens nested models and enums.
    """
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        use_enum_values=True,
        validate_assignment=True
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary for serialization.

        Returns:
            Dictionary representation suitable for JSON serialization
        """
        data = self.model_dump(by_alias=False, exclude_none=True)

        def convert_nested(obj):
            if isinstance(obj, CQLFlowBaseModel):
                return obj.to_dict()
            elif isinstance(obj, dict):
                return {k: convert_nested(v) for k, v in obj.items()}
            elif isinstance(obj, (list, tuple)):
                return [convert_nested(item) for item in obj]
            elif hasattr(obj, 'value'):  # Handle enums
                return obj.value
            return obj

        return convert_nested(data)


class FrozenModel(CQLFlowBaseModel):
    """Immutable variant used for registered schemas and compiled output."""
    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        use_enum_values=True,
        frozen=True,
    )
