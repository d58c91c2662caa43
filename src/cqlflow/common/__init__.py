"""Common utilities and exceptions for cqlflow.

Exception Design:
    The exception system uses error codes for categorization rather than
    numerous specific exception classes. All exceptions are CQLFlowError
    instances and include structured error information.
"""

from cqlflow.common.exceptions import (
    CQLFlowError,
    ErrorCode,
    DDL_PHASES,
    # Helper functions
    invalid_table_name_error,
    invalid_schema_error,
    invalid_validator_rule_error,
    invalid_value_error,
    invalid_query_error,
    unset_key_error,
    unset_required_error,
    schema_mismatch_error,
    hook_rejected_error,
    ddl_error,
    db_error,
)

__all__ = [
    # Base Exception and Error Codes
    "CQLFlowError",
    "ErrorCode",
    "DDL_PHASES",
    # Helper functions
    "invalid_table_name_error",
    "invalid_schema_error",
    "invalid_validator_rule_error",
    "invalid_value_error",
    "invalid_query_error",
    "unset_key_error",
    "unset_required_error",
    "schema_mismatch_error",
    "hook_rejected_error",
    "ddl_error",
    "db_error",
]
