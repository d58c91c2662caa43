"""Unit tests for DDL statement compilation."""

from unittest.mock import Mock

import pytest
from pydantic import ValidationError

from cqlflow.common.exceptions import CQLFlowError, ErrorCode
from cqlflow.constants.cql import AlterAction, QueryType
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
from cqlflow.query_builder import BaseQueryBuilder, CQLQueryBuilder, quote_identifier, quote_string


@pytest.fixture
def builder(indexed_schema):
    return CQLQueryBuilder(indexed_schema)


class TestTableStatements:
    """Test CREATE, ALTER and DROP TABLE."""

    def test_create_table_with_clustering_order(self, builder):
        """Columns, primary key and clustering order render in order."""
        compiled = builder.build_query(CreateTable(
            table_name="events",
            columns=[
                ColumnDefinition(name="id", cql_type="uuid"),
                ColumnDefinition(name="ts", cql_type="timestamp"),
                ColumnDefinition(name="tags", cql_type="set<text>"),
            ],
            partition_key=["id"],
            clustering_key=["ts"],
            clustering_order={"ts": "DESC"},
        ))
        assert compiled.statement == (
            'CREATE TABLE IF NOT EXISTS "events" ("id" uuid, "ts" timestamp, "tags" set<text>, '
            'PRIMARY KEY(("id"),"ts")) WITH CLUSTERING ORDER BY ("ts" DESC);'
        )
        assert compiled.query_type == QueryType.CREATE_TABLE
        assert compiled.params == []

    def test_create_table_composite_partition_and_static(self, builder):
        """Composite partition keys share one parenthesis; static is a suffix."""
        compiled = builder.build_query(CreateTable(
            table_name="events",
            columns=[
                ColumnDefinition(name="a", cql_type="text"),
                ColumnDefinition(name="b", cql_type="text"),
                ColumnDefinition(name="c", cql_type="int"),
                ColumnDefinition(name="s", cql_type="text", static=True),
            ],
            partition_key=["a", "b"],
            clustering_key=["c"],
        ))
        assert compiled.statement == (
            'CREATE TABLE IF NOT EXISTS "events" ("a" text, "b" text, "c" int, "s" text STATIC, '
            'PRIMARY KEY(("a","b"),"c"));'
        )

    def test_create_table_key_must_be_column(self):
        """Key columns must be among the columns."""
        with pytest.raises(ValidationError):
            CreateTable(
                table_name="events",
                columns=[ColumnDefinition(name="id", cql_type="uuid")],
                partition_key=["missing"],
            )

    @pytest.mark.parametrize("action,cql_type,static,expected", [
        (AlterAction.ADD, "text", False, 'ALTER TABLE "events" ADD "c" text;'),
        (AlterAction.ADD, "text", True, 'ALTER TABLE "events" ADD "c" text STATIC;'),
        (AlterAction.DROP, None, False, 'ALTER TABLE "events" DROP "c";'),
        (AlterAction.ALTER, "varint", False, 'ALTER TABLE "events" ALTER "c" TYPE varint;'),
    ])
    def test_alter_table(self, builder, action, cql_type, static, expected):
        """Each ALTER action has its own shape."""
        compiled = builder.build_query(
            AlterTable(table_name="events", action=action, column="c", cql_type=cql_type, static=static)
        )
        assert compiled.statement == expected

    def test_alter_add_requires_type(self):
        """ADD without a type is invalid."""
        with pytest.raises(ValidationError):
            AlterTable(table_name="events", action=AlterAction.ADD, column="c")

    def test_drop_table(self, builder):
        """DROP TABLE uses IF EXISTS by default."""
        assert builder.build_query(DropTable(table_name="events")).statement == 'DROP TABLE IF EXISTS "events";'
        assert builder.build_query(
            DropTable(table_name="events", if_exists=False)
        ).statement == 'DROP TABLE "events";'


class TestIndexStatements:
    """Test secondary and custom index DDL."""

    @pytest.mark.parametrize("target,rendered", [
        ("kind", '"kind"'),
        ("keys(tags)", 'keys("tags")'),
        ("entries(attrs)", 'entries("attrs")'),
        ("full(frozen_col)", 'full("frozen_col")'),
        ("values(tags)", '"tags"'),
    ])
    def test_create_index(self, builder, target, rendered):
        """Index targets render quoted, keeping the index function."""
        compiled = builder.build_query(CreateIndex(table_name="events", target=target))
        assert compiled.statement == f'CREATE INDEX IF NOT EXISTS ON "events" ({rendered});'

    def test_create_index_unknown_function(self, builder):
        """Unknown index functions are schema errors."""
        with pytest.raises(CQLFlowError) as exc_info:
            builder.build_query(CreateIndex(table_name="events", target="upper(kind)"))
        assert exc_info.value.error_code == ErrorCode.INVALID_SCHEMA

    def test_create_custom_index(self, builder):
        """Custom indexes carry their class and options."""
        compiled = builder.build_query(CreateCustomIndex(
            table_name="events",
            on="payload",
            using="org.apache.cassandra.index.sasi.SASIIndex",
            options={"mode": "CONTAINS"},
        ))
        assert compiled.statement == (
            'CREATE CUSTOM INDEX IF NOT EXISTS ON "events" ("payload") '
            "USING 'org.apache.cassandra.index.sasi.SASIIndex' WITH OPTIONS = {'mode': 'CONTAINS'};"
        )

    def test_create_custom_index_without_options(self, builder):
        """The options clause is omitted when empty."""
        compiled = builder.build_query(CreateCustomIndex(table_name="events", on="payload", using="Cls"))
        assert compiled.statement == 'CREATE CUSTOM INDEX IF NOT EXISTS ON "events" ("payload") USING \'Cls\';'

    def test_drop_index(self, builder):
        """Indexes are dropped by name."""
        compiled = builder.build_query(DropIndex(table_name="events", index_name="events_kind_idx"))
        assert compiled.statement == 'DROP INDEX IF EXISTS "events_kind_idx";'


class TestMaterializedViewStatements:
    """Test materialized view DDL."""

    def test_create_view(self, builder):
        """Every key column is filtered with IS NOT NULL."""
        compiled = builder.build_query(CreateMaterializedView(
            table_name="events",
            view_name="events_by_kind",
            select=["kind", "id", "ts"],
            partition_key=["kind"],
            clustering_key=["id", "ts"],
            clustering_order={"ts": "DESC"},
        ))
        assert compiled.statement == (
            'CREATE MATERIALIZED VIEW IF NOT EXISTS "events_by_kind" AS SELECT "kind", "id", "ts" '
            'FROM "events" WHERE "kind" IS NOT NULL AND "id" IS NOT NULL AND "ts" IS NOT NULL '
            'PRIMARY KEY(("kind"),"id","ts") WITH CLUSTERING ORDER BY ("id" ASC, "ts" DESC);'
        )

    def test_create_view_select_all(self, builder):
        """A ``*`` selection selects every column."""
        compiled = builder.build_query(CreateMaterializedView(
            table_name="events", view_name="v", partition_key=["kind"], clustering_key=["id"],
        ))
        assert compiled.statement == (
            'CREATE MATERIALIZED VIEW IF NOT EXISTS "v" AS SELECT * FROM "events" '
            'WHERE "kind" IS NOT NULL AND "id" IS NOT NULL PRIMARY KEY(("kind"),"id");'
        )

    def test_drop_view(self, builder):
        """DROP MATERIALIZED VIEW uses IF EXISTS."""
        compiled = builder.build_query(DropMaterializedView(table_name="events", view_name="v"))
        assert compiled.statement == 'DROP MATERIALIZED VIEW IF EXISTS "v";'

    def test_invalid_view_name(self):
        """View names are validated like table names."""
        with pytest.raises(ValidationError):
            DropMaterializedView(table_name="events", view_name="bad-name")


class TestQuoting:
    """Test identifier and literal quoting."""

    def test_quote_identifier(self):
        """Identifiers are double quoted."""
        assert quote_identifier("name") == '"name"'
        assert quote_identifier("_private") == '"_private"'

    @pytest.mark.parametrize("identifier", ["a b", "a;b", "1abc", ""])
    def test_quote_identifier_rejects_unsafe(self, identifier):
        """Unsafe identifiers raise INVALID_QUERY."""
        with pytest.raises(CQLFlowError) as exc_info:
            quote_identifier(identifier)
        assert exc_info.value.error_code == ErrorCode.INVALID_QUERY

    def test_quote_string(self):
        """Single quotes are doubled."""
        assert quote_string("it's") == "'it''s'"

    def test_invalid_table_name_on_operation(self):
        """Operations validate their table name."""
        with pytest.raises(ValidationError):
            DropTable(table_name="users; DROP")

    def test_unsupported_operation(self, builder):
        """Unknown operation types are not dispatched."""
        operation = Mock()
        operation.operation_type = "MERGE"
        with pytest.raises(ValueError):
            builder.build_query(operation)

    def test_builder_is_abstract(self):
        """The base builder cannot be instantiated."""
        with pytest.raises(TypeError):
            BaseQueryBuilder()
