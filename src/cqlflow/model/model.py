"""Model facade binding one table schema to an executor.

A ``Model`` compiles statements with ``CQLQueryBuilder`` and executes them
through the injected ``StatementExecutor``. The first executed statement
triggers schema reconciliation; ``return_query=True`` compiles without
touching the store.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional, Type, Union

from pydantic import ValidationError

from cqlflow.common.exceptions import (
    CQLFlowError,
    db_error,
    ddl_error,
    hook_rejected_error,
    invalid_query_error,
)
from cqlflow.constants.cql import LIMIT_KEY, SCHEMA_MISMATCH_ERROR_CODE, QueryType
from cqlflow.logging import get_logger
from cqlflow.migration.pipeline import MigrationResult
from cqlflow.migration.planner import MigrationPlanner
from cqlflow.model.record import Record
from cqlflow.operations import (
    Delete,
    DropMaterializedView,
    DropTable,
    Insert,
    Select,
    Truncate,
    Update,
)
from cqlflow.operations.base import BaseOperation
from cqlflow.protocols.providers import (
    DEFINITION_QUERY_OPTIONS,
    ConfirmationOracle,
    ExecutionOptions,
    RecordFactory,
    RowSet,
    SchemaOracle,
    StatementExecutor,
)
from cqlflow.query_builder import CompiledStatement, CQLQueryBuilder
from cqlflow.schema import SchemaValidators, SystemSchemaOracle, TableSchema
from cqlflow.settings import _Settings, get_settings
from cqlflow.utils.decorators import traced

logger = get_logger(__name__)

BEFORE_HOOK_NAMES = {
    QueryType.UPDATE: "before_update",
    QueryType.INSERT: "before_save",
    QueryType.DELETE: "before_delete",
}


def _span_attributes(self: "Model", *args: Any, **kwargs: Any) -> Dict[str, Any]:
    return {"cqlflow.table": self.table_name}


class Model:
    """Query surface for a single table.

    Args:
        schema: Declared table schema
        executor: Runs compiled statements
        schema_oracle: Supplies the live schema; a ``SystemSchemaOracle`` on
            the configured keyspace by default
        confirmation: Approves destructive migration steps
        record_factory: Turns result rows into records; ``Record`` by default
        settings: Settings instance; ``get_settings()`` by default
    """

    def __init__(
        self,
        schema: TableSchema,
        executor: StatementExecutor,
        schema_oracle: Optional[SchemaOracle] = None,
        confirmation: Optional[ConfirmationOracle] = None,
        record_factory: Optional[RecordFactory] = None,
        settings: Optional[_Settings] = None,
    ):
        self.schema = schema
        self.executor = executor
        self.settings = settings or get_settings()
        self.confirmation = confirmation
        self.validators = SchemaValidators(schema)
        self.builder = CQLQueryBuilder(schema, self.validators)
        self.record_factory: Callable[[Dict[str, Any]], Any] = record_factory or self._default_record
        self._schema_oracle = schema_oracle
        self._ready = False
        self.last_migration: Optional[MigrationResult] = None

    @classmethod
    def from_dict(
        cls,
        table_name: str,
        definition: Mapping[str, Any],
        executor: StatementExecutor,
        **kwargs: Any,
    ) -> "Model":
        """Build a model from the declarative mapping form of a table."""
        return cls(TableSchema.from_dict(table_name, definition), executor, **kwargs)

    def __repr__(self) -> str:
        return f"Model({self.table_name!r})"

    @property
    def table_name(self) -> str:
        return self.schema.table_name

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def schema_oracle(self) -> SchemaOracle:
        if self._schema_oracle is None:
            keyspace = self.settings.keyspace
            if not keyspace:
                raise ddl_error(
                    "schema_query",
                    ValueError("No keyspace configured; set CQLFLOW_KEYSPACE or pass a schema_oracle"),
                    details={"table": self.table_name},
                )
            self._schema_oracle = SystemSchemaOracle(self.executor, keyspace)
        return self._schema_oracle

    def _default_record(self, row: Dict[str, Any]) -> Record:
        return Record(self, row, persisted=True)

    def new(self, values: Optional[Mapping[str, Any]] = None) -> Record:
        """Create an unsaved record."""
        return Record(self, values)

    # ------------------------------------------------------------------
    # Schema lifecycle
    # ------------------------------------------------------------------

    def sync_schema(self) -> MigrationResult:
        """Reconcile the live table with the declared schema.

        Raises:
            CQLFlowError: propagated from the migration planner; the model
                stays not ready
        """
        self._ready = False
        planner = MigrationPlanner(
            self.schema,
            self.executor,
            self.schema_oracle,
            confirmation=self.confirmation,
            settings=self.settings,
            builder=self.builder,
        )
        try:
            result = planner.sync()
        finally:
            self.last_migration = planner.last_result
        self._ready = True
        return result

    def _ensure_ready(self) -> None:
        if not self._ready:
            self.sync_schema()

    # ------------------------------------------------------------------
    # Compilation and execution
    # ------------------------------------------------------------------

    def _operation(self, operation_class: Type[BaseOperation], **kwargs: Any) -> BaseOperation:
        try:
            return operation_class(table_name=self.table_name, **kwargs)
        except ValidationError as e:
            raise invalid_query_error(
                f"Invalid {operation_class.__name__.lower()} on table '{self.table_name}': "
                f"{e.errors()[0]['msg']}",
                cause=e,
                details={"table": self.table_name},
            )

    def compile(self, operation: BaseOperation) -> CompiledStatement:
        return self.builder.build_query(operation)

    def _run(self, compiled: CompiledStatement, options: ExecutionOptions) -> RowSet:
        try:
            return list(self.executor.run(compiled.statement, compiled.params, options))
        except CQLFlowError:
            raise
        except Exception as e:
            if getattr(e, "code", None) != SCHEMA_MISMATCH_ERROR_CODE:
                raise db_error(compiled.statement, e, details={"table": self.table_name})
            logger.warning(
                "model.query.fallback",
                extra={"table": self.table_name, "statement": compiled.statement, "error": str(e)},
            )
        try:
            return list(self.executor.run(compiled.statement, compiled.params, DEFINITION_QUERY_OPTIONS))
        except CQLFlowError:
            raise
        except Exception as e:
            raise db_error(compiled.statement, e, details={"table": self.table_name, "fallback": True})

    @traced("cqlflow.model.execute", attribute_getter=_span_attributes)
    def execute(self, compiled: CompiledStatement, options: Optional[ExecutionOptions] = None) -> RowSet:
        """Execute a compiled statement, running its lifecycle hooks.

        The table is reconciled first if it has not been yet. A statement
        rejected with the schema-mismatch code is retried once as a
        definition query.

        Raises:
            CQLFlowError: HOOK_REJECTED when the before hook returns False,
                DB_ERROR when execution fails
        """
        self._ensure_ready()
        query_type = QueryType(compiled.operation_type)
        if compiled.before_hook is not None and compiled.before_hook() is False:
            raise hook_rejected_error(
                BEFORE_HOOK_NAMES.get(query_type, f"before_{query_type.value}"), self.table_name
            )

        logger.debug(
            "model.query.execute",
            extra={"table": self.table_name, "query_type": query_type.value, "statement": compiled.statement},
        )
        rows = self._run(compiled, options or ExecutionOptions())

        if compiled.after_hook is not None:
            compiled.after_hook()
        return rows

    def _dispatch(
        self,
        operation: BaseOperation,
        return_query: bool,
        options: Optional[ExecutionOptions] = None,
    ) -> Union[CompiledStatement, RowSet]:
        compiled = self.compile(operation)
        if return_query:
            return compiled
        return self.execute(compiled, options)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def find(
        self,
        query: Optional[Mapping[str, Any]] = None,
        *,
        select: Optional[List[str]] = None,
        distinct: bool = False,
        allow_filtering: bool = False,
        materialized_view: Optional[str] = None,
        raw: bool = False,
        return_query: bool = False,
        fetch_size: Optional[int] = None,
        consistency: Optional[str] = None,
    ) -> Any:
        """Select rows matching ``query``.

        Returns:
            CompiledStatement with ``return_query=True``, raw row mappings
            with ``raw=True``, records otherwise
        """
        operation = self._operation(
            Select,
            query=dict(query or {}),
            select=select,
            distinct=distinct,
            allow_filtering=allow_filtering,
            materialized_view=materialized_view,
        )
        outcome = self._dispatch(
            operation,
            return_query,
            ExecutionOptions(fetch_size=fetch_size, consistency=consistency),
        )
        if return_query or raw:
            return outcome
        return [self.record_factory(row) for row in outcome]

    def find_one(self, query: Optional[Mapping[str, Any]] = None, **options: Any) -> Any:
        """Select the first row matching ``query``; None when nothing matches."""
        outcome = self.find({**(query or {}), LIMIT_KEY: 1}, **options)
        if options.get("return_query"):
            return outcome
        return outcome[0] if outcome else None

    def insert(
        self,
        values: Mapping[str, Any],
        *,
        if_not_exists: bool = False,
        ttl: Optional[int] = None,
        return_query: bool = False,
    ) -> Union[CompiledStatement, RowSet]:
        operation = self._operation(Insert, values=dict(values), if_not_exists=if_not_exists, ttl=ttl)
        return self._dispatch(operation, return_query)

    def update(
        self,
        query: Mapping[str, Any],
        values: Mapping[str, Any],
        *,
        ttl: Optional[int] = None,
        if_exists: bool = False,
        conditions: Optional[Mapping[str, Any]] = None,
        return_query: bool = False,
    ) -> Union[CompiledStatement, RowSet]:
        operation = self._operation(
            Update,
            query=dict(query),
            values=dict(values),
            ttl=ttl,
            if_exists=if_exists,
            conditions=dict(conditions) if conditions else None,
        )
        return self._dispatch(operation, return_query)

    def delete(self, query: Mapping[str, Any], *, return_query: bool = False) -> Union[CompiledStatement, RowSet]:
        operation = self._operation(Delete, query=dict(query))
        return self._dispatch(operation, return_query)

    def truncate(self, *, return_query: bool = False) -> Union[CompiledStatement, RowSet]:
        return self._dispatch(self._operation(Truncate), return_query)

    def drop_table(self) -> List[str]:
        """Drop the declared materialized views, then the table.

        The model is no longer ready afterwards; the next statement
        recreates the table.

        Returns:
            Executed DDL statements in order
        """
        statements = [
            self.compile(self._operation(DropMaterializedView, view_name=view_name))
            for view_name in self.schema.materialized_views
        ]
        statements.append(self.compile(self._operation(DropTable)))

        executed: List[str] = []
        for compiled in statements:
            phase = "matview_drop" if compiled.query_type == QueryType.DROP_MATERIALIZED_VIEW else "drop"
            logger.info("model.ddl.execute", extra={"table": self.table_name, "statement": compiled.statement})
            try:
                self.executor.run(compiled.statement, compiled.params, DEFINITION_QUERY_OPTIONS)
            except CQLFlowError:
                raise
            except Exception as e:
                raise ddl_error(phase, e, statement=compiled.statement, details={"table": self.table_name})
            executed.append(compiled.statement)

        self._ready = False
        return executed
