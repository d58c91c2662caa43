"""Utility helpers shared across cqlflow layers."""

from cqlflow.utils.decorators import traced

__all__ = [
    "traced",
]
