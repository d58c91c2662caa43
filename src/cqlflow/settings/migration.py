from pydantic import Field
from pydantic_settings import SettingsConfigDict

from cqlflow.constants.migration import MigrationPolicy
from .base import CQLFlowBaseSettings


class MigrationSettings(CQLFlowBaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CQLFLOW_MIGRATION_",
        case_sensitive=False,
        extra="ignore",
    )

    policy: MigrationPolicy = Field(
        default=MigrationPolicy.SAFE,
        description="How drift between the declared and live table is resolved: "
                    "'safe' raises, 'alter' applies ALTER TABLE where possible, "
                    "'drop' drops and recreates the table. Forced to 'safe' in production."
    )

    disable_interactive_confirmation: bool = Field(
        default=False,
        description="Approve destructive migration steps without prompting. "
                    "Required for unattended use with the 'alter' or 'drop' policy."
    )
