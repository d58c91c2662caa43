"""Unit tests for UPDATE compilation."""

import pytest
from pydantic import ValidationError

from cqlflow.common.exceptions import CQLFlowError, ErrorCode
from cqlflow.operations import Update
from cqlflow.query_builder import CQLQueryBuilder
from cqlflow.schema import TableSchema
from cqlflow.types.markers import UNSET, db_function

KEY = {"id": "x", "name": "n"}


@pytest.fixture
def builder(users_schema):
    return CQLQueryBuilder(users_schema)


def _update(builder, values, query=None, **kwargs):
    return builder.build_query(
        Update(table_name=builder.schema.table_name, query=KEY if query is None else query, values=values, **kwargs)
    )


class TestUpdateAssignments:
    """Test SET clause compilation."""

    def test_plain_assignment(self, builder):
        """SET params precede WHERE params."""
        compiled = _update(builder, {"age": 5, "score": 1.5})
        assert compiled.statement == 'UPDATE "t" SET "age"=?, "score"=? WHERE "id" = ? AND "name" = ?;'
        assert compiled.params == [5, 1.5, "x", "n"]

    def test_ttl(self, builder):
        """TTL is emitted before SET."""
        compiled = _update(builder, {"age": 5}, ttl=60)
        assert compiled.statement.startswith('UPDATE "t" USING TTL 60 SET "age"=?')

    def test_unset_is_bound(self, builder):
        """UNSET leaves the column untouched but keeps its placeholder."""
        compiled = _update(builder, {"age": UNSET})
        assert compiled.params[0] is UNSET

    def test_counter_delta(self, builder):
        """Counter updates apply a signed delta."""
        assert _update(builder, {"visits": 2}).statement.startswith('UPDATE "t" SET "visits"="visits" + ?')
        compiled = _update(builder, {"visits": -4})
        assert compiled.statement.startswith('UPDATE "t" SET "visits"="visits" - ?')
        assert compiled.params[0] == 4

    def test_db_function_value(self, people_schema):
        """Database functions are inlined in assignments."""
        builder = CQLQueryBuilder(people_schema)
        compiled = builder.build_query(
            Update(table_name="people", query={"id": "x"}, values={"created": db_function("toTimestamp(now())")})
        )
        assert compiled.statement == 'UPDATE "people" SET "created"=toTimestamp(now()) WHERE "id" = ?;'
        assert compiled.params == ["x"]

    def test_key_field_rejected(self, builder):
        """Primary key fields cannot be assigned."""
        with pytest.raises(CQLFlowError) as exc_info:
            _update(builder, {"name": "other"})
        assert exc_info.value.error_code == ErrorCode.INVALID_UPDATE_OPERATION

    def test_null_key_field(self, builder):
        """A null key value raises UNSET_KEY."""
        with pytest.raises(CQLFlowError) as exc_info:
            _update(builder, {"id": None})
        assert exc_info.value.error_code == ErrorCode.UNSET_KEY

    def test_null_required_field(self, builder):
        """A null required value raises UNSET_REQUIRED."""
        with pytest.raises(CQLFlowError) as exc_info:
            _update(builder, {"email": None})
        assert exc_info.value.error_code == ErrorCode.UNSET_REQUIRED

    def test_invalid_value(self, builder):
        """Assigned values run through the validator chain."""
        with pytest.raises(CQLFlowError) as exc_info:
            _update(builder, {"age": "old"})
        assert exc_info.value.error_code == ErrorCode.INVALID_VALUE

    def test_virtual_only_update_is_rejected(self, people_schema):
        """Virtual fields are skipped, leaving nothing to set."""
        builder = CQLQueryBuilder(people_schema)
        with pytest.raises(CQLFlowError) as exc_info:
            builder.build_query(Update(table_name="people", query={"id": "x"}, values={"nickname": "bo"}))
        assert exc_info.value.error_code == ErrorCode.INVALID_UPDATE_OPERATION


class TestCollectionDirectives:
    """Test collection mutation directives."""

    @pytest.mark.parametrize("values,assignment,param", [
        ({"tags": {"$add": ["a"]}}, '"tags"="tags" + ?', ["a"]),
        ({"items": {"$append": [3]}}, '"items"="items" + ?', [3]),
        ({"items": {"$prepend": [0]}}, '"items"=? + "items"', [0]),
        ({"tags": {"$remove": ["a"]}}, '"tags"="tags" - ?', ["a"]),
        ({"items": {"$remove": [3]}}, '"items"="items" - ?', [3]),
        ({"attrs": {"$remove": ["k"]}}, '"attrs"="attrs" - ?', ["k"]),
        ({"attrs": {"$add": {"k": "v"}}}, '"attrs"="attrs" + ?', {"k": "v"}),
    ])
    def test_directive(self, builder, values, assignment, param):
        """Each directive compiles to its collection assignment."""
        compiled = _update(builder, values)
        assert compiled.statement == f'UPDATE "t" SET {assignment} WHERE "id" = ? AND "name" = ?;'
        assert compiled.params == [param, "x", "n"]

    def test_replace_map_entry(self, builder):
        """$replace on a map sets one entry."""
        compiled = _update(builder, {"attrs": {"$replace": {"k": "v"}}})
        assert compiled.statement.startswith('UPDATE "t" SET "attrs"[?]=? WHERE')
        assert compiled.params == ["k", "v", "x", "n"]

    def test_replace_list_index(self, builder):
        """$replace on a list sets one position."""
        compiled = _update(builder, {"items": {"$replace": [1, 42]}})
        assert compiled.statement.startswith('UPDATE "t" SET "items"[?]=? WHERE')
        assert compiled.params == [1, 42, "x", "n"]

    @pytest.mark.parametrize("values", [
        {"attrs": {"$replace": {"a": "1", "b": "2"}}},
        {"items": {"$replace": [1]}},
        {"tags": {"$replace": ["a", "b"]}},
        {"tags": {"$prepend": ["a"]}},
        {"age": {"$add": 1}},
    ])
    def test_invalid_directive(self, builder, values):
        """Directives only apply to compatible collection fields."""
        with pytest.raises(CQLFlowError) as exc_info:
            _update(builder, values)
        assert exc_info.value.error_code == ErrorCode.INVALID_UPDATE_OPERATION

    def test_directive_keys_case_insensitive(self, builder):
        """Directive names are matched case-insensitively."""
        compiled = _update(builder, {"tags": {"$ADD": ["a"]}})
        assert '"tags"="tags" + ?' in compiled.statement


class TestUpdateConditions:
    """Test WHERE and IF handling."""

    def test_if_exists(self, builder):
        """IF EXISTS closes the statement."""
        assert _update(builder, {"age": 1}, if_exists=True).statement.endswith(' IF EXISTS;')

    def test_conditions_params_last(self, builder):
        """IF params follow SET and WHERE params."""
        compiled = _update(builder, {"age": 1}, conditions={"score": {"$gt": 2.0}})
        assert compiled.statement == (
            'UPDATE "t" SET "age"=? WHERE "id" = ? AND "name" = ? IF "score" > ?;'
        )
        assert compiled.params == [1, "x", "n", 2.0]

    def test_if_exists_and_conditions_are_exclusive(self):
        """Both forms of lightweight transaction cannot be combined."""
        with pytest.raises(ValidationError):
            Update(table_name="t", query=KEY, values={"age": 1}, if_exists=True, conditions={"age": 2})

    def test_empty_values(self):
        """An update needs at least one value."""
        with pytest.raises(ValidationError):
            Update(table_name="t", query=KEY, values={})

    def test_empty_query(self, builder):
        """An update without relations is rejected."""
        with pytest.raises(CQLFlowError) as exc_info:
            _update(builder, {"age": 1}, query={})
        assert exc_info.value.error_code == ErrorCode.INVALID_QUERY

    def test_before_update_hook(self):
        """The before hook receives the query, values and options."""
        calls = []

        def before_update(query, values, options):
            calls.append((query, values, options))
            return True

        schema = TableSchema.from_dict("t", {
            "fields": {"id": "uuid", "n": "int"},
            "key": ["id"],
            "before_update": before_update,
        })
        compiled = CQLQueryBuilder(schema).build_query(
            Update(table_name="t", query={"id": "x"}, values={"n": 1}, ttl=10)
        )
        assert compiled.after_hook is None
        assert calls == []
        assert compiled.before_hook() is True
        assert calls == [({"id": "x"}, {"n": 1}, {"ttl": 10, "if_exists": False, "conditions": None})]
