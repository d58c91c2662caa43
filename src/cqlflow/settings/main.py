import logging
from typing import Optional

from pydantic import Field, field_validator

from cqlflow.constants.migration import MigrationPolicy
from .base import CQLFlowBaseSettings
from .migration import MigrationSettings

PRODUCTION_ENVIRONMENTS = frozenset({"prod", "production"})


class _Settings(CQLFlowBaseSettings):

    app_env: str = Field(
        default="dev",
        description="Deployment environment (dev, qa, prod, ...). 'prod' and "
                    "'production' force the 'safe' migration policy."
    )
    keyspace: Optional[str] = Field(
        default=None,
        description="Keyspace queried by the system schema oracle"
    )
    log_level: str = Field(
        default="INFO",
        description="Base log level applied by configure_logging()"
    )
    migration: MigrationSettings = Field(
        default_factory=MigrationSettings,
        description="Schema migration configuration"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.app_env.strip().lower() in PRODUCTION_ENVIRONMENTS

    @property
    def effective_migration_policy(self) -> MigrationPolicy:
        """Migration policy after applying the production override.

        Returns:
            MigrationPolicy.SAFE in production, the configured policy otherwise
        """
        policy = MigrationPolicy(self.migration.policy)
        if self.is_production and policy != MigrationPolicy.SAFE:
            logging.getLogger(__name__).warning(
                "settings.migration.forced_safe",
                extra={"configured_policy": policy.value, "app_env": self.app_env},
            )
            return MigrationPolicy.SAFE
        return policy


# Singleton instance
_settings: Optional[_Settings] = None


def get_settings(force_reload: bool = False) -> _Settings:
    """Get the singleton settings instance for the application.

    Args:
        force_reload: If True, creates a new Settings instance even if
                     one already exists. Useful for testing or when
                     environment variables have changed.

    Returns:
        Settings: The singleton Settings instance
    """
    global _settings

    if _settings is None or force_reload:
        _settings = _Settings()

    return _settings


def _reload_settings() -> _Settings:
    """Force reload of settings.

    This is primarily for testing purposes where you need to reset
    the singleton instance.
    """
    global _settings
    _settings = None
    return get_settings(force_reload=True)
