"""Unit tests for SELECT compilation."""

import pytest

from cqlflow.common.exceptions import CQLFlowError, ErrorCode
from cqlflow.constants.cql import QueryType
from cqlflow.operations import Select
from cqlflow.query_builder import CQLQueryBuilder


@pytest.fixture
def builder(users_schema):
    return CQLQueryBuilder(users_schema)


def _select(builder, query=None, **kwargs):
    return builder.build_query(Select(table_name=builder.schema.table_name, query=query or {}, **kwargs))


class TestSelect:
    """Test find query compilation."""

    def test_end_to_end_find(self, builder):
        """Relations, ordering and limit compile in clause order."""
        compiled = _select(builder, {
            "id": "x",
            "name": {"$ne": "y"},
            "$orderby": {"$asc": "name"},
            "$limit": 5,
        })
        assert compiled.statement == 'SELECT * FROM "t" WHERE "id" = ? AND "name" != ? ORDER BY "name" ASC LIMIT 5;'
        assert compiled.params == ["x", "y"]
        assert compiled.query_type == QueryType.SELECT

    def test_no_where_clause(self, builder):
        """An empty query selects everything."""
        compiled = _select(builder)
        assert compiled.statement == 'SELECT * FROM "t";'
        assert compiled.params == []

    def test_projection_and_distinct(self, builder):
        """Projections are quoted; DISTINCT precedes them."""
        compiled = _select(builder, {"id": "x"}, select=["id", "name as n"], distinct=True)
        assert compiled.statement == 'SELECT DISTINCT "id", "name" AS "n" FROM "t" WHERE "id" = ?;'

    @pytest.mark.parametrize("item,rendered", [
        ("count(*)", "count(*)"),
        ("count(*) as total", 'count(*) AS "total"'),
        ("writetime(name)", 'writetime("name")'),
        ("ttl(name) AS remaining", 'ttl("name") AS "remaining"'),
        ("now()", "now()"),
        ("blobAsText(0x00)", None),
        ("max(age, 5)", 'max("age",5)'),
    ])
    def test_function_projection(self, builder, item, rendered):
        """Function projections quote column arguments and keep literals."""
        if rendered is None:
            with pytest.raises(CQLFlowError) as exc_info:
                _select(builder, select=[item])
            assert exc_info.value.error_code == ErrorCode.INVALID_PROJECTION
        else:
            assert _select(builder, select=[item]).statement == f'SELECT {rendered} FROM "t";'

    @pytest.mark.parametrize("item", ["name; DROP TABLE t", "a b c", "\"x\" --"])
    def test_invalid_projection(self, builder, item):
        """Anything that is not a column, alias or function call is rejected."""
        with pytest.raises(CQLFlowError) as exc_info:
            _select(builder, select=[item])
        assert exc_info.value.error_code == ErrorCode.INVALID_PROJECTION

    def test_order_by_multiple_directions(self, builder):
        """Order entries follow the mapping order."""
        compiled = _select(builder, {"id": "x", "$orderby": {"$desc": ["name"], "$asc": "age"}})
        assert compiled.statement.endswith('ORDER BY "name" DESC, "age" ASC;')

    @pytest.mark.parametrize("order", ["name", {"$up": "name"}, {"$asc": 5}, {}])
    def test_invalid_order_by(self, builder, order):
        """Malformed $orderby raises INVALID_ORDER_BY."""
        with pytest.raises(CQLFlowError) as exc_info:
            _select(builder, {"$orderby": order})
        assert exc_info.value.error_code == ErrorCode.INVALID_ORDER_BY

    def test_group_by(self, builder):
        """$groupby follows WHERE."""
        compiled = _select(builder, {"id": "x", "$groupby": ["id"]})
        assert compiled.statement == 'SELECT * FROM "t" WHERE "id" = ? GROUP BY "id";'

    def test_per_partition_limit_before_limit(self, builder):
        """PER PARTITION LIMIT precedes LIMIT, ALLOW FILTERING comes last."""
        compiled = _select(builder, {"$per_partition_limit": 2, "$limit": 10}, allow_filtering=True)
        assert compiled.statement == 'SELECT * FROM "t" PER PARTITION LIMIT 2 LIMIT 10 ALLOW FILTERING;'

    @pytest.mark.parametrize("limit", [0, -1, "5", True, 2.5])
    def test_invalid_limit(self, builder, limit):
        """Limits must be positive integers."""
        with pytest.raises(CQLFlowError) as exc_info:
            _select(builder, {"$limit": limit})
        assert exc_info.value.error_code == ErrorCode.INVALID_LIMIT

    def test_materialized_view_source(self, indexed_schema):
        """Reading from a declared view selects from the view."""
        builder = CQLQueryBuilder(indexed_schema)
        compiled = _select(builder, {"kind": "click"}, materialized_view="events_by_kind")
        assert compiled.statement == 'SELECT * FROM "events_by_kind" WHERE "kind" = ?;'

    def test_undeclared_materialized_view(self, builder):
        """Unknown views are rejected."""
        with pytest.raises(CQLFlowError) as exc_info:
            _select(builder, materialized_view="nope")
        assert exc_info.value.error_code == ErrorCode.INVALID_QUERY

    def test_compilation_is_repeatable(self, builder):
        """Compiling the same operation twice yields identical output."""
        operation = Select(table_name="t", query={"age": {"$gte": 1, "$lte": 9}})
        first = builder.build_query(operation)
        second = builder.build_query(operation)
        assert first.statement == second.statement
        assert first.params == second.params
