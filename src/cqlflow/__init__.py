
from cqlflow.__version__ import __version__
from cqlflow.model import Model, Record
from cqlflow.schema import TableSchema, SystemSchemaOracle, LiveSchema
from cqlflow.query_builder import CQLQueryBuilder, CompiledStatement
from cqlflow.migration import (
    MigrationPlanner,
    MigrationResult,
    ConsoleConfirmation,
    AutoApproveConfirmation,
)
from cqlflow.protocols.providers import (
    ExecutionOptions,
    StatementExecutor,
    SchemaOracle,
    ConfirmationOracle,
    RecordFactory,
)
from cqlflow.constants import MigrationPolicy, MigrationState, QueryType
from cqlflow.types.markers import UNSET, db_function

from cqlflow.common.exceptions import CQLFlowError, ErrorCode

from cqlflow.settings import get_settings
from cqlflow.logging import configure_logging, get_logger, setup_logging


__all__ = [
    "__version__",

    "Model",
    "Record",
    "TableSchema",
    "LiveSchema",
    "SystemSchemaOracle",
    "CQLQueryBuilder",
    "CompiledStatement",

    "MigrationPlanner",
    "MigrationResult",
    "ConsoleConfirmation",
    "AutoApproveConfirmation",

    # Collaborator protocols
    "ExecutionOptions",
    "StatementExecutor",
    "SchemaOracle",
    "ConfirmationOracle",
    "RecordFactory",

    "MigrationPolicy",
    "MigrationState",
    "QueryType",
    "UNSET",
    "db_function",

    # Exceptions (public API)
    "CQLFlowError",
    "ErrorCode",

    "get_settings",
    "get_logger",
    "setup_logging",
    "configure_logging",
]
