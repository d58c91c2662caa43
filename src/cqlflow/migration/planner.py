"""Schema reconciliation.

``MigrationPlanner.sync`` brings the live table in line with the declared
schema:

- no live table: CREATE TABLE, then indexes, custom indexes and views
- normalized schemas equal: nothing to do
- otherwise the migration policy decides: ``safe`` fails with
  SCHEMA_MISMATCH, ``drop`` drops and recreates everything, ``alter``
  applies per-field ALTER TABLE statements while the key structure is
  unchanged and falls back to the drop path when it is not

Every destructive step is confirmed first; a declined confirmation fails
with SCHEMA_MISMATCH. DDL runs strictly in order and is never rolled back.
"""

from typing import Optional

from cqlflow.common.exceptions import CQLFlowError, ddl_error, schema_mismatch_error
from cqlflow.constants.cql import AlterAction
from cqlflow.constants.migration import DiffKind, MigrationPolicy, MigrationState
from cqlflow.logging import get_logger, table_context
from cqlflow.migration.confirmation import AutoApproveConfirmation, ConsoleConfirmation, is_approved
from cqlflow.migration.pipeline import DDLPipeline, MigrationResult
from cqlflow.operations import (
    AlterTable,
    ColumnDefinition,
    CreateCustomIndex,
    CreateIndex,
    CreateMaterializedView,
    CreateTable,
    DropIndex,
    DropMaterializedView,
    DropTable,
)
from cqlflow.protocols.providers import ConfirmationOracle, SchemaOracle, StatementExecutor
from cqlflow.query_builder.cql_builder import CQLQueryBuilder
from cqlflow.schema import datatypes
from cqlflow.schema.differ import FieldDiff, SchemaDiff, diff
from cqlflow.schema.fields import TableSchema
from cqlflow.schema.live import LiveSchema
from cqlflow.schema.normalizer import NormalizedCustomIndex, NormalizedField, normalize
from cqlflow.settings import get_settings
from cqlflow.settings.main import _Settings
from cqlflow.utils.decorators import traced

logger = get_logger(__name__)

# (live type, declared type) pairs the store converts in place.
SAFE_TYPE_WIDENINGS = frozenset({
    ("ascii", "text"),
    ("bigint", "varint"),
    ("int", "varint"),
    ("smallint", "varint"),
    ("tinyint", "varint"),
    ("timeuuid", "uuid"),
})


def is_safe_widening(old: NormalizedField, new: NormalizedField) -> bool:
    """True when ``old`` can be altered in place to ``new``.

    Any scalar converts to blob; collections and counters never widen.
    """
    if old.type_def or new.type_def:
        return False
    if (old.type, new.type) in SAFE_TYPE_WIDENINGS:
        return True
    return new.type == "blob" and not datatypes.requires_type_def(old.type) and old.type != "counter"


class _Recreated(Exception):
    """Internal signal: the alter path switched to drop-and-recreate."""


class MigrationPlanner:
    """Decides and sequences the DDL reconciling one table.

    Args:
        schema: Declared table schema
        executor: Runs the DDL statements
        schema_oracle: Supplies the live schema
        confirmation: Approves destructive steps; console prompts by default
        settings: Settings providing the migration policy; ``get_settings()`` by default
        builder: Query builder for ``schema``
    """

    def __init__(
        self,
        schema: TableSchema,
        executor: StatementExecutor,
        schema_oracle: SchemaOracle,
        confirmation: Optional[ConfirmationOracle] = None,
        settings: Optional[_Settings] = None,
        builder: Optional[CQLQueryBuilder] = None,
    ):
        self.schema = schema
        self.executor = executor
        self.schema_oracle = schema_oracle
        self.settings = settings or get_settings()
        self.builder = builder or CQLQueryBuilder(schema)
        if self.settings.migration.disable_interactive_confirmation:
            self.confirmation: ConfirmationOracle = AutoApproveConfirmation()
        else:
            self.confirmation = confirmation or ConsoleConfirmation()
        self.last_result: Optional[MigrationResult] = None

    @property
    def table(self) -> str:
        return self.schema.table_name

    @traced(
        "cqlflow.migration.sync",
        attribute_getter=lambda self: {"cqlflow.table": self.schema.table_name},
    )
    def sync(self) -> MigrationResult:
        """Reconcile the live table with the declared schema.

        Returns:
            MigrationResult in state CREATED, NO_OP, ALTERED or RECREATED

        Raises:
            CQLFlowError: SCHEMA_MISMATCH when the policy forbids the change or
                a confirmation is declined; a phase-tagged DDL error when a
                statement fails
        """
        with table_context(self.table):
            return self._sync()

    def _sync(self) -> MigrationResult:
        policy = self.settings.effective_migration_policy
        result = MigrationResult(table=self.table, policy=policy)
        self.last_result = result
        pipeline = DDLPipeline(self.executor, result)
        logger.info("migration.plan.start", extra={"table": self.table, "policy": policy.value})

        try:
            live = self._fetch_live_schema()
            if live is None:
                self._create_all(pipeline)
                result.state = MigrationState.CREATED
            else:
                schema_diff = diff(live, self.schema)
                if schema_diff.is_empty:
                    result.state = MigrationState.NO_OP
                elif policy == MigrationPolicy.SAFE:
                    raise schema_mismatch_error(self.table, details={"changes": self._describe(schema_diff)})
                elif policy == MigrationPolicy.DROP or schema_diff.key_changed:
                    self._drop_and_recreate(pipeline, live)
                    result.state = MigrationState.RECREATED
                else:
                    try:
                        self._alter(pipeline, live, schema_diff)
                        result.state = MigrationState.ALTERED
                    except _Recreated:
                        result.state = MigrationState.RECREATED
        except CQLFlowError as e:
            result.state = MigrationState.FAILED
            result.error = e.to_dict()
            logger.error(
                "migration.plan.failed",
                extra={"table": self.table, "error_code": e.error_code.value, "steps": len(result.steps)},
            )
            raise

        logger.info(
            "migration.plan.complete",
            extra={"table": self.table, "state": result.state, **result.summary()},
        )
        return result

    def _fetch_live_schema(self) -> Optional[LiveSchema]:
        try:
            return self.schema_oracle.fetch_live_schema(self.table)
        except CQLFlowError:
            raise
        except Exception as e:
            raise ddl_error("schema_query", e, details={"table": self.table})

    @staticmethod
    def _describe(schema_diff: SchemaDiff) -> dict:
        return {
            "fields": [f"{d.kind}:{'.'.join(d.path[1:])}" for d in schema_diff.fields],
            "key_changed": schema_diff.key_changed,
            "indexes": {"added": list(schema_diff.added_indexes), "removed": list(schema_diff.removed_indexes)},
            "custom_indexes": {
                "added": list(schema_diff.added_custom_indexes),
                "removed": list(schema_diff.removed_custom_indexes),
            },
            "views": {"added": list(schema_diff.added_views), "removed": list(schema_diff.removed_views)},
        }

    def _confirm(self, prompt: str) -> None:
        logger.info("migration.confirmation.requested", extra={"table": self.table, "prompt": prompt})
        if not is_approved(self.confirmation.ask(prompt)):
            logger.warning("migration.confirmation.declined", extra={"table": self.table, "prompt": prompt})
            raise schema_mismatch_error(self.table, message=f"Migration declined for table '{self.table}': {prompt}")

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def _create_all(self, pipeline: DDLPipeline) -> None:
        schema = self.schema
        create = CreateTable(
            table_name=self.table,
            columns=[
                ColumnDefinition(name=name, cql_type=field.cql_type, static=field.static)
                for name, field in schema.stored_fields.items()
            ],
            partition_key=list(schema.partition_key),
            clustering_key=list(schema.clustering_key),
            clustering_order=dict(schema.clustering_order),
        )
        pipeline.run("create_table", "create", self.builder.build_query(create))
        for target in schema.indexes:
            self._create_index(pipeline, target)
        for custom in normalize(schema).custom_indexes.values():
            self._create_custom_index(pipeline, custom)
        for view_name in schema.materialized_views:
            self._create_view(pipeline, view_name)

    def _create_index(self, pipeline: DDLPipeline, target: str) -> None:
        pipeline.run(
            f"create_index:{target}",
            "index_create",
            self.builder.build_query(CreateIndex(table_name=self.table, target=target)),
        )

    def _create_custom_index(self, pipeline: DDLPipeline, custom: NormalizedCustomIndex) -> None:
        pipeline.run(
            f"create_custom_index:{custom.on}",
            "index_create",
            self.builder.build_query(
                CreateCustomIndex(table_name=self.table, on=custom.on, using=custom.using, options=custom.options)
            ),
        )

    def _create_view(self, pipeline: DDLPipeline, view_name: str) -> None:
        view = self.schema.materialized_views[view_name]
        pipeline.run(
            f"create_materialized_view:{view_name}",
            "matview_create",
            self.builder.build_query(
                CreateMaterializedView(
                    table_name=self.table,
                    view_name=view_name,
                    select=list(view.select),
                    partition_key=list(view.partition_key),
                    clustering_key=list(view.clustering_key),
                    clustering_order=dict(view.clustering_order),
                )
            ),
        )

    # ------------------------------------------------------------------
    # Drop
    # ------------------------------------------------------------------

    def _drop_view(self, pipeline: DDLPipeline, working: LiveSchema, view_name: str) -> LiveSchema:
        pipeline.run(
            f"drop_materialized_view:{view_name}",
            "matview_drop",
            self.builder.build_query(DropMaterializedView(table_name=self.table, view_name=view_name)),
        )
        return working.without_view(view_name)

    def _drop_index(self, pipeline: DDLPipeline, working: LiveSchema, target: str) -> LiveSchema:
        index_name = working.index_names.get(target)
        if index_name is None:
            raise ddl_error(
                "index_drop",
                LookupError(f"No live index name found for target '{target}'"),
                details={"table": self.table, "target": target},
            )
        pipeline.run(
            f"drop_index:{index_name}",
            "index_drop",
            self.builder.build_query(DropIndex(table_name=self.table, index_name=index_name)),
        )
        return working.without_index(target)

    def _drop_custom_index(self, pipeline: DDLPipeline, working: LiveSchema, index_hash: str) -> LiveSchema:
        index_name = working.custom_index_names.get(index_hash)
        if index_name is None:
            raise ddl_error(
                "index_drop",
                LookupError(f"No live index name found for custom index '{index_hash}'"),
                details={"table": self.table, "custom_index": index_hash},
            )
        pipeline.run(
            f"drop_custom_index:{index_name}",
            "index_drop",
            self.builder.build_query(DropIndex(table_name=self.table, index_name=index_name)),
        )
        return working.without_custom_index(index_hash)

    def _drop_dependents(self, pipeline: DDLPipeline, working: LiveSchema, column: str) -> LiveSchema:
        """Drop every view, index and custom index that references ``column``."""
        indexes, custom_indexes, views = working.dependents_of(column)
        for view_name in views:
            working = self._drop_view(pipeline, working, view_name)
        for target in indexes:
            working = self._drop_index(pipeline, working, target)
        for index_hash in custom_indexes:
            working = self._drop_custom_index(pipeline, working, index_hash)
        return working

    def _drop_and_recreate(self, pipeline: DDLPipeline, live: LiveSchema, confirmed: bool = False) -> None:
        if not confirmed:
            self._confirm(
                f"Migration: model schema for table '{self.table}' has changed. "
                f"Drop the table and recreate it? All data in the table will be lost"
            )
        for view_name in live.materialized_views:
            live = self._drop_view(pipeline, live, view_name)
        pipeline.run(
            "drop_table",
            "drop",
            self.builder.build_query(DropTable(table_name=self.table)),
        )
        self._create_all(pipeline)

    # ------------------------------------------------------------------
    # Alter
    # ------------------------------------------------------------------

    def _alter_statement(self, action: AlterAction, column: str, field: Optional[NormalizedField] = None):
        return self.builder.build_query(
            AlterTable(
                table_name=self.table,
                action=action,
                column=column,
                cql_type=field.cql_type if field is not None else None,
                static=field.static if field is not None else False,
            )
        )

    def _add_field(self, pipeline: DDLPipeline, working: LiveSchema, column: str, field: NormalizedField) -> LiveSchema:
        pipeline.run(f"alter_add:{column}", "alter", self._alter_statement(AlterAction.ADD, column, field))
        return working.with_field(column, field)

    def _remove_field(self, pipeline: DDLPipeline, working: LiveSchema, column: str) -> LiveSchema:
        working = self._drop_dependents(pipeline, working, column)
        pipeline.run(f"alter_drop:{column}", "alter", self._alter_statement(AlterAction.DROP, column))
        return working.without_field(column)

    def _alter(self, pipeline: DDLPipeline, live: LiveSchema, schema_diff: SchemaDiff) -> None:
        working = live
        for change in schema_diff.fields:
            working = self._apply_field_change(pipeline, working, change)
        self._reconcile_dependents(pipeline, working)

    def _apply_field_change(self, pipeline: DDLPipeline, working: LiveSchema, change: FieldDiff) -> LiveSchema:
        column = change.field
        kind = DiffKind(change.kind)

        if kind == DiffKind.ADDED:
            self._confirm(f"Migration: add field '{column}' ({change.new.cql_type}) to table '{self.table}'?")
            return self._add_field(pipeline, working, column, change.new)

        if kind == DiffKind.REMOVED:
            self._confirm(
                f"Migration: remove field '{column}' from table '{self.table}'? "
                f"Its data and any dependent indexes or materialized views will be dropped"
            )
            return self._remove_field(pipeline, working, column)

        if change.attribute == "type" and is_safe_widening(change.old, change.new):
            self._confirm(
                f"Migration: change type of field '{column}' in table '{self.table}' "
                f"from {change.old.cql_type} to {change.new.cql_type}?"
            )
            pipeline.run(
                f"alter_type:{column}", "alter", self._alter_statement(AlterAction.ALTER, column, change.new)
            )
            return working.with_field(column, change.new)

        if self.schema.is_key_field(column):
            self._confirm(
                f"Migration: key field '{column}' of table '{self.table}' changed from "
                f"{change.old.cql_type} to {change.new.cql_type}, which requires dropping and "
                f"recreating the table. All data in the table will be lost. Continue?"
            )
            self._drop_and_recreate(pipeline, working, confirmed=True)
            raise _Recreated()

        self._confirm(
            f"Migration: field '{column}' of table '{self.table}' changed from "
            f"{self._field_label(change.old)} to {self._field_label(change.new)}. "
            f"Remove and re-add it? Its data will be lost"
        )
        working = self._remove_field(pipeline, working, column)
        return self._add_field(pipeline, working, column, change.new)

    @staticmethod
    def _field_label(field: NormalizedField) -> str:
        return f"{field.cql_type}{' static' if field.static else ''}"

    def _reconcile_dependents(self, pipeline: DDLPipeline, working: LiveSchema) -> None:
        """Drop and create whatever indexes and views still differ."""
        residual = diff(working, self.schema)

        removals = (
            [("materialized view", name) for name in residual.removed_views]
            + [("index", target) for target in residual.removed_indexes]
            + [("custom index", h) for h in residual.removed_custom_indexes]
        )
        for kind, key in removals:
            label = working.custom_indexes[key].on if kind == "custom index" else key
            self._confirm(f"Migration: drop {kind} '{label}' of table '{self.table}'?")
            if kind == "materialized view":
                working = self._drop_view(pipeline, working, key)
            elif kind == "index":
                working = self._drop_index(pipeline, working, key)
            else:
                working = self._drop_custom_index(pipeline, working, key)

        declared = normalize(self.schema)
        for target in residual.added_indexes:
            self._create_index(pipeline, target)
        for index_hash in residual.added_custom_indexes:
            self._create_custom_index(pipeline, declared.custom_indexes[index_hash])
        for view_name in residual.added_views:
            self._create_view(pipeline, view_name)

