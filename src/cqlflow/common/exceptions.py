from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for cqlflow operations.

    This enum provides categorized error codes that can be used
    to identify error types without creating numerous exception classes.
    Each category has a specific prefix for easy identification.

    Attributes:
        SCHEMA_*: Table definition and registration errors
        VALIDATION_*: Field value validation errors
        QUERY_*: Query, update and projection compilation errors
        MIGRATION_*: Schema reconciliation errors
        DDL_*: Phase-tagged DDL execution errors
        DB_*: Ordinary statement execution errors
    """
    # Schema errors
    INVALID_TABLE_NAME = "SCHEMA_001"
    INVALID_SCHEMA = "SCHEMA_002"
    INVALID_VALIDATOR_RULE = "SCHEMA_003"

    # Validation errors
    INVALID_VALUE = "VALIDATION_001"
    UNSET_KEY = "VALIDATION_002"
    UNSET_REQUIRED = "VALIDATION_003"

    # Query compilation errors
    INVALID_QUERY = "QUERY_001"
    INVALID_OPERATOR = "QUERY_002"
    INVALID_ORDER_BY = "QUERY_003"
    INVALID_LIMIT = "QUERY_004"
    INVALID_PROJECTION = "QUERY_005"
    INVALID_UPDATE_OPERATION = "QUERY_006"
    HOOK_REJECTED = "QUERY_007"

    # Migration errors
    SCHEMA_MISMATCH = "MIGRATION_001"

    # DDL phase errors
    SCHEMA_QUERY_ERROR = "DDL_001"
    TABLE_CREATE_ERROR = "DDL_002"
    TABLE_ALTER_ERROR = "DDL_003"
    TABLE_DROP_ERROR = "DDL_004"
    INDEX_CREATE_ERROR = "DDL_005"
    INDEX_DROP_ERROR = "DDL_006"
    MATVIEW_CREATE_ERROR = "DDL_007"
    MATVIEW_DROP_ERROR = "DDL_008"

    # Statement execution errors
    DB_ERROR = "DB_001"


QUERY_ERROR_CODES = frozenset({
    ErrorCode.INVALID_QUERY,
    ErrorCode.INVALID_OPERATOR,
    ErrorCode.INVALID_ORDER_BY,
    ErrorCode.INVALID_LIMIT,
    ErrorCode.INVALID_PROJECTION,
    ErrorCode.INVALID_UPDATE_OPERATION,
})

DDL_PHASES = {
    "schema_query": ErrorCode.SCHEMA_QUERY_ERROR,
    "create": ErrorCode.TABLE_CREATE_ERROR,
    "alter": ErrorCode.TABLE_ALTER_ERROR,
    "drop": ErrorCode.TABLE_DROP_ERROR,
    "index_create": ErrorCode.INDEX_CREATE_ERROR,
    "index_drop": ErrorCode.INDEX_DROP_ERROR,
    "matview_create": ErrorCode.MATVIEW_CREATE_ERROR,
    "matview_drop": ErrorCode.MATVIEW_DROP_ERROR,
}


class CQLFlowError(Exception):
    """Base exception for all cqlflow-related errors.

    This exception class uses error codes for categorization
    instead of creating numerous specific exception classes.

    Attributes:
        message: Error message
        error_code: Error code from ErrorCode enum
        details: Additional error details
        cause: Optional underlying exception
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DB_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """Initialize cqlflow error.

        Args:
            message: Error message
            error_code: Error code from ErrorCode enum
            details: Additional error details
            cause: Optional underlying exception
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

        # Lazy import to avoid circular dependency
        from cqlflow.logging import get_logger
        logger = get_logger(__name__)
        logger.error(
            message,
            extra={
                "error_code": error_code.value,
                "details": self.details,
            },
            exc_info=cause is not None,
        )

    def __str__(self) -> str:
        """String representation of the error."""
        msg = f"[{self.error_code.value}] {self.message}"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {str(self.cause)})"
        return msg

    @property
    def phase(self) -> Optional[str]:
        """DDL phase tag for phase errors, None otherwise."""
        for phase, code in DDL_PHASES.items():
            if code is self.error_code:
                return phase
        return None

    @property
    def is_query_error(self) -> bool:
        return self.error_code in QUERY_ERROR_CODES

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "phase": self.phase,
        }

    @classmethod
    def from_error_code(
        cls,
        error_code: ErrorCode,
        message: str,
        **kwargs
    ) -> "CQLFlowError":
        """Create exception from error code.

        Args:
            error_code: Error code
            message: Error message
            **kwargs: Additional arguments for CQLFlowError

        Returns:
            CQLFlowError instance
        """
        return cls(message=message, error_code=error_code, **kwargs)


# Helper functions for common error scenarios
def invalid_table_name_error(table_name: Any, **kwargs) -> CQLFlowError:
    """Create an invalid table name error."""
    details = kwargs.get('details', {})
    details["table"] = str(table_name)

    return CQLFlowError(
        message=f"Invalid table name: '{table_name}'. Table names must be alphanumeric "
                f"with underscores and start with a letter",
        error_code=ErrorCode.INVALID_TABLE_NAME,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def invalid_schema_error(
    message: str,
    table: Optional[str] = None,
    field: Optional[str] = None,
    **kwargs
) -> CQLFlowError:
    """Create an invalid schema error.

    Args:
        message: Error message
        table: Table whose definition is invalid
        field: Field that caused the error
        **kwargs: Additional error details

    Returns:
        CQLFlowError with INVALID_SCHEMA code
    """
    details = kwargs.get('details', {})
    if table:
        details["table"] = table
    if field:
        details["field"] = field

    return CQLFlowError(
        message=message,
        error_code=ErrorCode.INVALID_SCHEMA,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def invalid_validator_rule_error(message: str, field: Optional[str] = None, **kwargs) -> CQLFlowError:
    """Create an invalid validator rule error."""
    details = kwargs.get('details', {})
    if field:
        details["field"] = field

    return CQLFlowError(
        message=message,
        error_code=ErrorCode.INVALID_VALIDATOR_RULE,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def invalid_value_error(
    message: str,
    field: Optional[str] = None,
    value: Any = None,
    **kwargs
) -> CQLFlowError:
    """Create an invalid value error.

    Args:
        message: Error message produced by the failing validator
        field: Field that failed validation
        value: Invalid value
        **kwargs: Additional error details

    Returns:
        CQLFlowError with INVALID_VALUE code
    """
    details = kwargs.get('details', {})
    if field:
        details["field"] = field
    if value is not None:
        details["value"] = str(value)

    return CQLFlowError(
        message=message,
        error_code=ErrorCode.INVALID_VALUE,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def invalid_query_error(
    message: str,
    field: Optional[str] = None,
    error_code: ErrorCode = ErrorCode.INVALID_QUERY,
    **kwargs
) -> CQLFlowError:
    """Create a query compilation error.

    Args:
        message: Error message
        field: Field whose relation could not be compiled
        error_code: Specific member of the INVALID_QUERY family
        **kwargs: Additional error details

    Returns:
        CQLFlowError with a query error code
    """
    details = kwargs.get('details', {})
    if field:
        details["field"] = field

    return CQLFlowError(
        message=message,
        error_code=error_code,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def unset_key_error(field: str, **kwargs) -> CQLFlowError:
    """Create an error for a primary key field without a value."""
    details = kwargs.get('details', {})
    details["field"] = field

    return CQLFlowError(
        message=f"Primary key field '{field}' must be set and cannot be null",
        error_code=ErrorCode.UNSET_KEY,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def unset_required_error(field: str, **kwargs) -> CQLFlowError:
    """Create an error for a required field without a value."""
    details = kwargs.get('details', {})
    details["field"] = field

    return CQLFlowError(
        message=f"Required field '{field}' must be set and cannot be null",
        error_code=ErrorCode.UNSET_REQUIRED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def schema_mismatch_error(
    table: str,
    message: Optional[str] = None,
    **kwargs
) -> CQLFlowError:
    """Create a schema mismatch error.

    Raised when the migration policy forbids reconciling the declared and
    live table definitions, or when a destructive change was not confirmed.
    """
    details = kwargs.get('details', {})
    details["table"] = table

    return CQLFlowError(
        message=message or (
            f"Declared schema for table '{table}' does not match the live table. "
            f"Set the migration policy to 'alter' or 'drop' to reconcile it"
        ),
        error_code=ErrorCode.SCHEMA_MISMATCH,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def hook_rejected_error(hook: str, table: str, **kwargs) -> CQLFlowError:
    """Create an error for a before-hook that vetoed a statement."""
    details = kwargs.get('details', {})
    details["hook"] = hook
    details["table"] = table

    return CQLFlowError(
        message=f"Lifecycle hook '{hook}' rejected the statement on table '{table}'",
        error_code=ErrorCode.HOOK_REJECTED,
        details=details,
        **{k: v for k, v in kwargs.items() if k != 'details'}
    )


def ddl_error(
    phase: str,
    original_error: Exception,
    statement: Optional[str] = None,
    **kwargs
) -> CQLFlowError:
    """Create a phase-tagged DDL error.

    Args:
        phase: One of the DDL_PHASES keys (create, alter, drop, ...)
        original_error: The underlying exception
        statement: DDL statement that failed (if applicable)
        **kwargs: Additional error details

    Returns:
        CQLFlowError carrying the phase error code
    """
    if phase not in DDL_PHASES:
        raise ValueError(f"Unknown DDL phase: {phase}")

    details = kwargs.get('details', {})
    details["phase"] = phase
    if statement:
        details["statement"] = statement[:500] + "..." if len(statement) > 500 else statement

    return CQLFlowError(
        message=f"Schema {phase.replace('_', ' ')} failed: {str(original_error)}",
        error_code=DDL_PHASES[phase],
        details=details,
        cause=original_error,
        **{k: v for k, v in kwargs.items() if k not in ['details', 'cause']}
    )


def db_error(
    statement: str,
    original_error: Exception,
    **kwargs
) -> CQLFlowError:
    """Create a statement execution error.

    Args:
        statement: CQL statement that failed
        original_error: The underlying exception
        **kwargs: Additional error details

    Returns:
        CQLFlowError with DB_ERROR code
    """
    details = kwargs.get('details', {})
    details["statement"] = statement[:500] + "..." if len(statement) > 500 else statement

    return CQLFlowError(
        message=f"Statement execution failed: {str(original_error)}",
        error_code=ErrorCode.DB_ERROR,
        details=details,
        cause=original_error,
        **{k: v for k, v in kwargs.items() if k not in ['details', 'cause']}
    )
