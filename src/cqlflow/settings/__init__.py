"""Settings module providing configuration management for cqlflow.

Built on Pydantic Settings. Configuration sources (precedence order):
    1. Explicit constructor arguments
    2. Environment Variables (``CQLFLOW_`` prefix)
    3. ``.env`` file
    4. Default Values in code

Quick Start:
    >>> from cqlflow.settings import get_settings
    >>> settings = get_settings()
    >>> settings.effective_migration_policy
    <MigrationPolicy.SAFE: 'safe'>
"""

from .main import _Settings, get_settings, _reload_settings
from .base import CQLFlowBaseSettings
from .migration import MigrationSettings

__all__ = [
    "get_settings",
    "CQLFlowBaseSettings",
    "MigrationSettings",
]
