"""Unit tests for the migration planner."""

from unittest.mock import Mock

import pytest

from cqlflow.common.exceptions import CQLFlowError, ErrorCode
from cqlflow.constants.migration import MigrationPolicy, MigrationState, StepStatus
from cqlflow.migration import AutoApproveConfirmation, MigrationPlanner, is_approved, is_safe_widening
from cqlflow.schema import NormalizedField, NormalizedView, TableSchema

from conftest import (
    RecordingExecutor,
    ScriptedConfirmation,
    StaticSchemaOracle,
    live_from,
    make_settings,
)


def _planner(schema, live, executor, policy=MigrationPolicy.ALTER, confirmation=None, **settings):
    return MigrationPlanner(
        schema,
        executor,
        StaticSchemaOracle(live),
        confirmation=confirmation or ScriptedConfirmation(),
        settings=make_settings(policy, **settings),
    )


@pytest.fixture
def keyed_schema():
    return TableSchema.from_dict("t", {"fields": {"id": "uuid", "c": "int", "n": "varint"}, "key": ["id", "c"]})


class TestCreateAndNoOp:
    """Test the paths that never touch existing data."""

    def test_missing_table_creates_everything(self, indexed_schema, executor):
        """Table first, then indexes in declared order, then views."""
        planner = _planner(indexed_schema, None, executor, policy=MigrationPolicy.SAFE)
        result = planner.sync()

        assert result.state == MigrationState.CREATED
        assert executor.statements[:3] == [
            'CREATE TABLE IF NOT EXISTS "events" ("id" uuid, "ts" timestamp, "kind" text, "payload" text, '
            '"tags" set<text>, PRIMARY KEY(("id"),"ts")) WITH CLUSTERING ORDER BY ("ts" DESC);',
            'CREATE INDEX IF NOT EXISTS ON "events" ("kind");',
            'CREATE INDEX IF NOT EXISTS ON "events" (keys("tags"));',
        ]
        assert executor.statements[3].startswith('CREATE MATERIALIZED VIEW IF NOT EXISTS "events_by_kind"')
        assert len(executor.statements) == 4
        assert result.summary() == {"total_steps": 4, "successful": 4, "failed": 0}

    def test_create_needs_no_confirmation(self, indexed_schema, executor):
        """Creating a table asks nothing."""
        confirmation = ScriptedConfirmation("n")
        _planner(indexed_schema, None, executor, confirmation=confirmation).sync()
        assert confirmation.prompts == []

    def test_matching_schema_is_no_op(self, indexed_schema, executor):
        """An identical live table produces no DDL."""
        result = _planner(indexed_schema, live_from(indexed_schema), executor).sync()
        assert result.state == MigrationState.NO_OP
        assert executor.calls == []

    def test_ddl_runs_with_definition_options(self, indexed_schema, executor):
        """DDL is sent with the definition execution options."""
        _planner(indexed_schema, None, executor).sync()
        options = executor.calls[0][2]
        assert options.prepare is False
        assert options.fetch_size is None


class TestPolicies:
    """Test how the policy picks a path."""

    def test_safe_policy_raises_mismatch(self, indexed_schema, executor):
        """safe never issues DDL for a drifted table."""
        live = live_from(indexed_schema).without_field("payload")
        planner = _planner(indexed_schema, live, executor, policy=MigrationPolicy.SAFE)
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.SCHEMA_MISMATCH
        assert exc_info.value.details["changes"]["fields"] == ["added:payload"]
        assert executor.calls == []
        assert planner.last_result.state == MigrationState.FAILED
        assert planner.last_result.error["error_code"] == "MIGRATION_001"

    def test_production_forces_safe(self, indexed_schema, executor):
        """Production environments ignore a destructive policy."""
        live = live_from(indexed_schema).without_field("payload")
        planner = _planner(indexed_schema, live, executor, policy=MigrationPolicy.DROP, app_env="prod")
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.SCHEMA_MISMATCH
        assert executor.calls == []

    def test_drop_policy_recreates(self, indexed_schema, executor):
        """drop removes views, drops the table and recreates everything."""
        live = live_from(indexed_schema, indexes=("kind",))
        confirmation = ScriptedConfirmation("y")
        result = _planner(indexed_schema, live, executor, policy=MigrationPolicy.DROP,
                          confirmation=confirmation).sync()

        assert result.state == MigrationState.RECREATED
        assert executor.statements[:2] == [
            'DROP MATERIALIZED VIEW IF EXISTS "events_by_kind";',
            'DROP TABLE IF EXISTS "events";',
        ]
        assert executor.statements[2].startswith('CREATE TABLE IF NOT EXISTS "events"')
        assert len(executor.statements) == 6
        assert len(confirmation.prompts) == 1
        assert "All data in the table will be lost" in confirmation.prompts[0]

    def test_declined_drop(self, indexed_schema, executor):
        """A declined confirmation fails before any DDL."""
        live = live_from(indexed_schema, indexes=("kind",))
        planner = _planner(indexed_schema, live, executor, policy=MigrationPolicy.DROP,
                           confirmation=ScriptedConfirmation("n"))
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.SCHEMA_MISMATCH
        assert executor.calls == []
        assert planner.last_result.state == MigrationState.FAILED

    def test_auto_approve_ignores_injected_confirmation(self, indexed_schema, executor):
        """Disabling interactive confirmation approves every step."""
        live = live_from(indexed_schema).without_field("payload")
        planner = _planner(indexed_schema, live, executor, confirmation=ScriptedConfirmation("n"),
                           disable_interactive_confirmation=True)
        assert isinstance(planner.confirmation, AutoApproveConfirmation)
        assert planner.sync().state == MigrationState.ALTERED


class TestAlterPath:
    """Test per-field reconciliation."""

    def test_lone_added_field(self, indexed_schema, executor):
        """One new field yields exactly one ALTER ADD."""
        live = live_from(indexed_schema).without_field("payload")
        confirmation = ScriptedConfirmation()
        result = _planner(indexed_schema, live, executor, confirmation=confirmation).sync()

        assert result.state == MigrationState.ALTERED
        assert executor.statements == ['ALTER TABLE "events" ADD "payload" text;']
        assert confirmation.prompts == ["Migration: add field 'payload' (text) to table 'events'?"]
        assert result.steps[0].name == "alter_add:payload"
        assert result.steps[0].status == StepStatus.SUCCESS

    def test_declined_add(self, indexed_schema, executor):
        """Declining the add leaves the table untouched."""
        live = live_from(indexed_schema).without_field("payload")
        planner = _planner(indexed_schema, live, executor, confirmation=ScriptedConfirmation("no"))
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.SCHEMA_MISMATCH
        assert executor.calls == []

    def test_safe_widening(self, keyed_schema, executor):
        """int to varint is altered in place."""
        live = live_from(keyed_schema).with_field("n", NormalizedField(type="int"))
        result = _planner(keyed_schema, live, executor).sync()
        assert result.state == MigrationState.ALTERED
        assert executor.statements == ['ALTER TABLE "t" ALTER "n" TYPE varint;']

    def test_incompatible_change_drops_and_adds(self, keyed_schema, executor):
        """A non-widening change on a regular column re-creates the column."""
        live = live_from(keyed_schema).with_field("n", NormalizedField(type="text"))
        result = _planner(keyed_schema, live, executor).sync()
        assert result.state == MigrationState.ALTERED
        assert executor.statements == [
            'ALTER TABLE "t" DROP "n";',
            'ALTER TABLE "t" ADD "n" varint;',
        ]

    def test_key_field_type_change_recreates(self, keyed_schema, executor):
        """Changing the type of a key column requires a new table."""
        live = live_from(keyed_schema).with_field("id", NormalizedField(type="text"))
        confirmation = ScriptedConfirmation()
        result = _planner(keyed_schema, live, executor, confirmation=confirmation).sync()

        assert result.state == MigrationState.RECREATED
        assert executor.statements[0] == 'DROP TABLE IF EXISTS "t";'
        assert executor.statements[1].startswith('CREATE TABLE IF NOT EXISTS "t"')
        assert len(confirmation.prompts) == 1
        assert "key field 'id'" in confirmation.prompts[0]

    def test_key_structure_change_recreates(self, keyed_schema, executor):
        """A different primary key takes the drop path under alter."""
        live = live_from(keyed_schema, partition_key=("id", "c"), clustering_key=(), clustering_order={})
        result = _planner(keyed_schema, live, executor).sync()
        assert result.state == MigrationState.RECREATED
        assert executor.statements == [
            'DROP TABLE IF EXISTS "t";',
            'CREATE TABLE IF NOT EXISTS "t" ("id" uuid, "c" int, "n" varint, PRIMARY KEY(("id"),"c"));',
        ]

    def test_removed_field_drops_dependents_first(self, indexed_schema, executor):
        """Views, then indexes, then the column itself."""
        base = live_from(indexed_schema)
        live = base.with_field("extra", NormalizedField(type="text")).model_copy(update={
            "indexes": ("extra",) + base.indexes,
            "index_names": {**base.index_names, "extra": "events_extra_idx"},
            "materialized_views": {
                **base.materialized_views,
                "by_extra": NormalizedView(
                    select=("extra", "id", "ts"),
                    partition_key=("extra",),
                    clustering_key=("id", "ts"),
                    clustering_order={"id": "ASC", "ts": "ASC"},
                ),
            },
        })
        confirmation = ScriptedConfirmation()
        result = _planner(indexed_schema, live, executor, confirmation=confirmation).sync()

        assert result.state == MigrationState.ALTERED
        assert executor.statements == [
            'DROP MATERIALIZED VIEW IF EXISTS "by_extra";',
            'DROP INDEX IF EXISTS "events_extra_idx";',
            'ALTER TABLE "events" DROP "extra";',
        ]
        assert len(confirmation.prompts) == 1

    def test_missing_index_created(self, indexed_schema, executor):
        """Indexes missing from the live table are created without prompting."""
        live = live_from(indexed_schema, indexes=("kind",))
        confirmation = ScriptedConfirmation()
        result = _planner(indexed_schema, live, executor, confirmation=confirmation).sync()
        assert result.state == MigrationState.ALTERED
        assert executor.statements == ['CREATE INDEX IF NOT EXISTS ON "events" (keys("tags"));']
        assert confirmation.prompts == []

    def test_stale_index_without_name(self, indexed_schema, executor):
        """An index the store reports without a name cannot be dropped."""
        live = live_from(indexed_schema).model_copy(update={"indexes": ("keys(tags)", "kind", "payload")})
        planner = _planner(indexed_schema, live, executor)
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.INDEX_DROP_ERROR
        assert exc_info.value.phase == "index_drop"
        assert executor.calls == []


class TestFailures:
    """Test DDL and introspection failures."""

    def test_ddl_failure_is_phase_tagged(self, indexed_schema):
        """A failing CREATE TABLE stops the run with TABLE_CREATE_ERROR."""
        executor = RecordingExecutor(errors=[RuntimeError("boom")])
        planner = _planner(indexed_schema, None, executor)
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.TABLE_CREATE_ERROR
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert len(executor.calls) == 1
        assert planner.last_result.steps[0].status == StepStatus.FAILED
        assert planner.last_result.state == MigrationState.FAILED

    def test_failed_index_keeps_table(self, indexed_schema):
        """Applied steps stay recorded when a later one fails."""
        executor = RecordingExecutor(errors=[None, RuntimeError("index")])
        planner = _planner(indexed_schema, None, executor)
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.INDEX_CREATE_ERROR
        assert planner.last_result.summary() == {"total_steps": 2, "successful": 1, "failed": 1}

    def test_oracle_failure(self, indexed_schema, executor):
        """Introspection errors are SCHEMA_QUERY_ERROR."""
        oracle = Mock()
        oracle.fetch_live_schema.side_effect = ConnectionError("down")
        planner = MigrationPlanner(indexed_schema, executor, oracle, settings=make_settings())
        with pytest.raises(CQLFlowError) as exc_info:
            planner.sync()
        assert exc_info.value.error_code == ErrorCode.SCHEMA_QUERY_ERROR
        oracle.fetch_live_schema.assert_called_once_with("events")


class TestHelpers:
    """Test confirmation parsing and widening rules."""

    @pytest.mark.parametrize("answer,approved", [
        ("y", True), ("Y", True), (" y\n", True), ("yes", False), ("n", False), ("", False), (None, False),
    ])
    def test_is_approved(self, answer, approved):
        assert is_approved(answer) is approved

    @pytest.mark.parametrize("old,new,safe", [
        ("int", "varint", True),
        ("ascii", "text", True),
        ("bigint", "varint", True),
        ("smallint", "varint", True),
        ("tinyint", "varint", True),
        ("timeuuid", "uuid", True),
        ("int", "blob", True),
        ("counter", "blob", False),
        ("varint", "int", False),
        ("text", "int", False),
    ])
    def test_is_safe_widening(self, old, new, safe):
        assert is_safe_widening(NormalizedField(type=old), NormalizedField(type=new)) is safe

    def test_collections_never_widen(self):
        old = NormalizedField(type="set", type_def="<int>")
        new = NormalizedField(type="set", type_def="<varint>")
        assert not is_safe_widening(old, new)
