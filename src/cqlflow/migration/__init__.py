"""Schema reconciliation: planner, DDL pipeline and confirmation oracles."""

from cqlflow.migration.confirmation import AutoApproveConfirmation, ConsoleConfirmation, is_approved
from cqlflow.migration.pipeline import DDLPipeline, MigrationResult, StepResult
from cqlflow.migration.planner import SAFE_TYPE_WIDENINGS, MigrationPlanner, is_safe_widening

__all__ = [
    "AutoApproveConfirmation",
    "ConsoleConfirmation",
    "DDLPipeline",
    "MigrationPlanner",
    "MigrationResult",
    "SAFE_TYPE_WIDENINGS",
    "StepResult",
    "is_approved",
    "is_safe_widening",
]
