from cqlflow.types.base import CQLFlowBaseModel, FrozenModel
from cqlflow.types.markers import (
    UNSET,
    MISSING,
    db_function,
    is_db_function,
    is_unset,
    is_null_like,
)

__all__ = [
    "CQLFlowBaseModel",
    "FrozenModel",
    "UNSET",
    "MISSING",
    "db_function",
    "is_db_function",
    "is_unset",
    "is_null_like",
]
