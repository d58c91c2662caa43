"""Schema migration constants."""

from enum import Enum


class MigrationPolicy(str, Enum):
    """How schema drift between the declared and live table is resolved.

    Values:
        SAFE: Never mutate the live table; mismatches are errors
        ALTER: Best-effort ALTER TABLE, falling back to DROP when keys change
        DROP: Drop and recreate the table (data loss)
    """

    SAFE = "safe"
    ALTER = "alter"
    DROP = "drop"


class MigrationState(str, Enum):
    """Terminal states reported by the migration planner."""

    CREATED = "created"
    NO_OP = "no_op"
    ALTERED = "altered"
    RECREATED = "recreated"
    FAILED = "failed"


class DiffKind(str, Enum):
    """Kind of a field-level schema difference."""

    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
