"""Model facade and records."""

from cqlflow.model.model import Model
from cqlflow.model.record import Record

__all__ = [
    "Model",
    "Record",
]
