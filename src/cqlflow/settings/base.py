from pydantic_settings import BaseSettings, SettingsConfigDict


class CQLFlowBaseSettings(BaseSettings):
    """Base class for all cqlflow settings.

    Values are read from ``CQLFLOW_``-prefixed environment variables and an
    optional ``.env`` file. Nested settings use a double underscore, e.g.
    ``CQLFLOW_MIGRATION__POLICY=alter``.
    """
    model_config = SettingsConfigDict(
        env_prefix="CQLFLOW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__"
    )
