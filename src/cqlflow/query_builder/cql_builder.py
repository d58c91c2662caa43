"""CQL statement builder for one registered table."""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from cqlflow.common.exceptions import (
    ErrorCode,
    invalid_query_error,
    invalid_schema_error,
    unset_key_error,
    unset_required_error,
)
from cqlflow.constants.cql import (
    GROUP_BY_KEY,
    LIMIT_KEY,
    ORDER_BY_KEY,
    ORDER_DIRECTIONS,
    PER_PARTITION_LIMIT_KEY,
    QueryType,
    UPDATE_DIRECTIVES,
    AlterAction,
)
from cqlflow.operations import (
    AlterTable,
    CreateCustomIndex,
    CreateIndex,
    CreateMaterializedView,
    CreateTable,
    Delete,
    DropIndex,
    DropMaterializedView,
    DropTable,
    Insert,
    Select,
    Truncate,
    Update,
)
from cqlflow.query_builder.base import BaseQueryBuilder, CompiledStatement
from cqlflow.query_builder.predicates import PredicateCompiler
from cqlflow.query_builder.values import CompiledValue, ValueExpression, ValueExpressionCompiler
from cqlflow.schema.fields import FieldSchema, TableSchema
from cqlflow.schema.targets import format_index_target
from cqlflow.schema.validator import SchemaValidators
from cqlflow.types.markers import MISSING, is_db_function, is_null_like

_FUNCTION_PROJECTION = re.compile(
    r"^([a-zA-Z_][a-zA-Z0-9_]*)\s*\(\s*(.*?)\s*\)(?:\s+as\s+([a-zA-Z_][a-zA-Z0-9_]*))?$", re.IGNORECASE
)
_ALIAS_PROJECTION = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)\s+as\s+([a-zA-Z_][a-zA-Z0-9_]*)$", re.IGNORECASE)
_COLUMN_PROJECTION = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_LITERAL_ARGUMENT = re.compile(r"^(-?\d+(\.\d+)?|'[^']*')$")


def _update_error(message: str, field: Optional[str] = None):
    return invalid_query_error(message, field=field, error_code=ErrorCode.INVALID_UPDATE_OPERATION)


class CQLQueryBuilder(BaseQueryBuilder):
    """Compiles operations on one table into CQL text and bound parameters.

    The builder is pure: it never executes anything and keeps no state
    between calls, so one instance may be shared by concurrent callers.

    Args:
        schema: Registered table schema
        validators: Validator chains built at registration; built here when omitted
    """

    def __init__(self, schema: TableSchema, validators: Optional[SchemaValidators] = None):
        self.schema = schema
        self.validators = validators if validators is not None else SchemaValidators(schema)
        self.values = ValueExpressionCompiler(schema, self.validators)
        self.predicates = PredicateCompiler(self.values)

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def _primary_key(self, partition_key: List[str], clustering_key: List[str]) -> str:
        parts = [f"({','.join(self.quote_identifier(col) for col in partition_key)})"]
        parts.extend(self.quote_identifier(col) for col in clustering_key)
        return f"PRIMARY KEY({','.join(parts)})"

    def _clustering_order(self, clustering_key: List[str], order: Mapping[str, str]) -> str:
        if not order:
            return ""
        entries = ", ".join(
            f"{self.quote_identifier(col)} {str(order.get(col, 'ASC')).upper()}" for col in clustering_key
        )
        return f" WITH CLUSTERING ORDER BY ({entries})"

    def _build_create_table(self, operation: CreateTable) -> CompiledStatement:
        columns = ", ".join(
            f"{self.quote_identifier(col.name)} {col.cql_type}{' STATIC' if col.static else ''}"
            for col in operation.columns
        )
        statement = (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(operation.table_name)} "
            f"({columns}, {self._primary_key(operation.partition_key, operation.clustering_key)})"
            f"{self._clustering_order(operation.clustering_key, operation.clustering_order)};"
        )
        return CompiledStatement(operation_type=QueryType.CREATE_TABLE, statement=statement)

    def _build_drop_table(self, operation: DropTable) -> CompiledStatement:
        if_exists = " IF EXISTS" if operation.if_exists else ""
        return CompiledStatement(
            operation_type=QueryType.DROP_TABLE,
            statement=f"DROP TABLE{if_exists} {self.quote_identifier(operation.table_name)};",
        )

    def _build_alter_table(self, operation: AlterTable) -> CompiledStatement:
        action = AlterAction(operation.action)
        table = self.quote_identifier(operation.table_name)
        column = self.quote_identifier(operation.column)
        if action == AlterAction.ADD:
            suffix = f" {operation.cql_type}{' STATIC' if operation.static else ''}"
        elif action == AlterAction.ALTER:
            suffix = f" TYPE {operation.cql_type}"
        else:
            suffix = ""
        return CompiledStatement(
            operation_type=QueryType.ALTER_TABLE,
            statement=f"ALTER TABLE {table} {action.value} {column}{suffix};",
        )

    def _build_create_index(self, operation: CreateIndex) -> CompiledStatement:
        try:
            target = format_index_target(operation.target)
        except ValueError as e:
            raise invalid_schema_error(str(e), table=operation.table_name)
        return CompiledStatement(
            operation_type=QueryType.CREATE_INDEX,
            statement=f"CREATE INDEX IF NOT EXISTS ON {self.quote_identifier(operation.table_name)} ({target});",
        )

    def _build_create_custom_index(self, operation: CreateCustomIndex) -> CompiledStatement:
        statement = (
            f"CREATE CUSTOM INDEX IF NOT EXISTS ON {self.quote_identifier(operation.table_name)} "
            f"({self.quote_identifier(operation.on)}) USING {self.quote_string(operation.using)}"
        )
        if operation.options:
            options = ", ".join(
                f"{self.quote_string(key)}: {self.quote_string(value)}" for key, value in operation.options.items()
            )
            statement += f" WITH OPTIONS = {{{options}}}"
        return CompiledStatement(operation_type=QueryType.CREATE_CUSTOM_INDEX, statement=f"{statement};")

    def _build_drop_index(self, operation: DropIndex) -> CompiledStatement:
        if_exists = " IF EXISTS" if operation.if_exists else ""
        return CompiledStatement(
            operation_type=QueryType.DROP_INDEX,
            statement=f"DROP INDEX{if_exists} {self.quote_identifier(operation.index_name)};",
        )

    def _build_create_materialized_view(self, operation: CreateMaterializedView) -> CompiledStatement:
        select = "*" if "*" in operation.select else self.format_column_list(operation.select)
        not_null = " AND ".join(
            f"{self.quote_identifier(col)} IS NOT NULL"
            for col in operation.partition_key + operation.clustering_key
        )
        statement = (
            f"CREATE MATERIALIZED VIEW IF NOT EXISTS {self.quote_identifier(operation.view_name)} AS "
            f"SELECT {select} FROM {self.quote_identifier(operation.table_name)} "
            f"WHERE {not_null} {self._primary_key(operation.partition_key, operation.clustering_key)}"
            f"{self._clustering_order(operation.clustering_key, operation.clustering_order)};"
        )
        return CompiledStatement(operation_type=QueryType.CREATE_MATERIALIZED_VIEW, statement=statement)

    def _build_drop_materialized_view(self, operation: DropMaterializedView) -> CompiledStatement:
        if_exists = " IF EXISTS" if operation.if_exists else ""
        return CompiledStatement(
            operation_type=QueryType.DROP_MATERIALIZED_VIEW,
            statement=f"DROP MATERIALIZED VIEW{if_exists} {self.quote_identifier(operation.view_name)};",
        )

    def _build_truncate(self, operation: Truncate) -> CompiledStatement:
        return CompiledStatement(
            operation_type=QueryType.TRUNCATE,
            statement=f"TRUNCATE TABLE {self.quote_identifier(operation.table_name)};",
        )

    # ------------------------------------------------------------------
    # SELECT
    # ------------------------------------------------------------------

    def _projection(self, selection: Optional[List[str]]) -> str:
        if not selection:
            return "*"
        return ", ".join(self._projection_item(item) for item in selection)

    def _projection_item(self, item: Any) -> str:
        if not isinstance(item, str):
            raise invalid_query_error(
                f"Invalid projection: {item!r}", error_code=ErrorCode.INVALID_PROJECTION
            )
        item = item.strip()
        if item == "*":
            return "*"
        if _COLUMN_PROJECTION.match(item):
            return self.quote_identifier(item)

        match = _ALIAS_PROJECTION.match(item)
        if match:
            column, alias = match.groups()
            return f"{self.quote_identifier(column)} AS {self.quote_identifier(alias)}"

        match = _FUNCTION_PROJECTION.match(item)
        if match:
            function, arguments, alias = match.groups()
            rendered = [self._projection_argument(arg.strip(), item) for arg in arguments.split(",")] if arguments else []
            projection = f"{function}({','.join(rendered)})"
            if alias:
                projection += f" AS {self.quote_identifier(alias)}"
            return projection

        raise invalid_query_error(f"Invalid projection: '{item}'", error_code=ErrorCode.INVALID_PROJECTION)

    def _projection_argument(self, argument: str, item: str) -> str:
        if argument == "*" or _LITERAL_ARGUMENT.match(argument):
            return argument
        if _COLUMN_PROJECTION.match(argument):
            return self.quote_identifier(argument)
        raise invalid_query_error(
            f"Invalid argument '{argument}' in projection '{item}'", error_code=ErrorCode.INVALID_PROJECTION
        )

    def _order_by(self, order: Any) -> str:
        if order is None:
            return ""
        if not isinstance(order, Mapping) or not order:
            raise invalid_query_error(
                f"{ORDER_BY_KEY} expects a mapping such as {{'$asc': 'name'}}", error_code=ErrorCode.INVALID_ORDER_BY
            )
        entries: List[str] = []
        for direction, columns in order.items():
            keyword = ORDER_DIRECTIONS.get(str(direction).lower())
            if keyword is None:
                raise invalid_query_error(
                    f"Invalid order direction '{direction}', expected one of {sorted(ORDER_DIRECTIONS)}",
                    error_code=ErrorCode.INVALID_ORDER_BY,
                )
            if isinstance(columns, str):
                columns = [columns]
            if not isinstance(columns, (list, tuple)) or not all(isinstance(col, str) for col in columns):
                raise invalid_query_error(
                    f"Order by {direction} expects a field name or a list of field names",
                    error_code=ErrorCode.INVALID_ORDER_BY,
                )
            entries.extend(f"{self.quote_identifier(col)} {keyword}" for col in columns)
        return f" ORDER BY {', '.join(entries)}"

    def _group_by(self, group: Any) -> str:
        if group is None:
            return ""
        if isinstance(group, str):
            group = [group]
        if not isinstance(group, (list, tuple)) or not group or not all(isinstance(col, str) for col in group):
            raise invalid_query_error(f"{GROUP_BY_KEY} expects a list of field names")
        return f" GROUP BY {self.format_column_list(list(group))}"

    @staticmethod
    def _limit(query: Mapping[str, Any], key: str) -> Optional[int]:
        if key not in query:
            return None
        limit = query[key]
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise invalid_query_error(
                f"{key} expects a positive integer, got {limit!r}", error_code=ErrorCode.INVALID_LIMIT
            )
        return limit

    def _build_select(self, operation: Select) -> CompiledStatement:
        query = operation.query
        source = operation.table_name
        if operation.materialized_view:
            if operation.materialized_view not in self.schema.materialized_views:
                raise invalid_query_error(
                    f"Materialized view '{operation.materialized_view}' is not declared "
                    f"on table '{self.schema.table_name}'"
                )
            source = operation.materialized_view

        predicate = self.predicates.compile(query)
        statement = "SELECT "
        if operation.distinct:
            statement += "DISTINCT "
        statement += f"{self._projection(operation.select)} FROM {self.quote_identifier(source)}"
        if predicate.relations:
            statement += f" WHERE {predicate.clause()}"
        statement += self._group_by(query.get(GROUP_BY_KEY))
        statement += self._order_by(query.get(ORDER_BY_KEY))

        per_partition_limit = self._limit(query, PER_PARTITION_LIMIT_KEY)
        if per_partition_limit is not None:
            statement += f" PER PARTITION LIMIT {per_partition_limit}"
        limit = self._limit(query, LIMIT_KEY)
        if limit is not None:
            statement += f" LIMIT {limit}"
        if operation.allow_filtering:
            statement += " ALLOW FILTERING"

        return CompiledStatement(
            operation_type=QueryType.SELECT, statement=f"{statement};", params=predicate.params
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _resolve(self, field: FieldSchema, supplied: Any) -> Tuple[Any, bool]:
        """Effective value of a field: supplied, else default, else MISSING.

        Returns:
            (value, produced_by_default)

        Raises:
            CQLFlowError: UNSET_KEY or UNSET_REQUIRED when the field has no value
        """
        from_default = False
        value = supplied
        if value is MISSING and field.has_default:
            value, from_default = field.resolve_default(), True

        if is_null_like(value):
            if self.schema.is_key_field(field.name):
                raise unset_key_error(field.name, details={"table": self.schema.table_name})
            if field.required:
                raise unset_required_error(field.name, details={"table": self.schema.table_name})
        return value, from_default

    def _compile_write_value(self, field: FieldSchema, value: Any, from_default: bool) -> CompiledValue:
        if from_default and field.ignore_default:
            if is_db_function(value):
                return self.values.compile(field.name, value)
            return ValueExpression("?", value)
        return self.values.compile(field.name, value)

    def _directive(self, field: FieldSchema, value: Any) -> Optional[Tuple[str, Any]]:
        if not isinstance(value, Mapping) or len(value) != 1:
            return None
        key, operand = next(iter(value.items()))
        if not isinstance(key, str) or key.lower() not in UPDATE_DIRECTIVES:
            return None
        if not field.is_collection:
            raise _update_error(f"{key} requires a collection field, '{field.name}' is {field.type}", field.name)
        return key.lower(), operand

    def _assignment(self, field: FieldSchema, value: Any, from_default: bool) -> Tuple[str, List[Any]]:
        column = self.quote_identifier(field.name)
        directive = self._directive(field, value)
        if directive is None:
            compiled = self._compile_write_value(field, value, from_default)
            if isinstance(compiled, ValueExpression):
                return f"{column}={compiled.fragment}", [compiled.parameter]
            return f"{column}={compiled}", []

        name, operand = directive
        if name == "$replace":
            return self._replace(field, column, operand)

        if name == "$remove" and field.type == "map":
            if isinstance(operand, Mapping):
                keys = list(operand.keys())
            elif isinstance(operand, (list, tuple, set)):
                keys = list(operand)
            else:
                raise _update_error(f"$remove on map '{field.name}' expects a mapping or a list of keys", field.name)
            return f"{column}={column} - ?", [keys]

        compiled = self.values.compile(field.name, operand)
        fragment, params = (
            (compiled.fragment, [compiled.parameter]) if isinstance(compiled, ValueExpression) else (compiled, [])
        )
        if name in ("$add", "$append"):
            return f"{column}={column} + {fragment}", params
        if name == "$prepend":
            if field.type != "list":
                raise _update_error(f"$prepend requires a list field, '{field.name}' is {field.type}", field.name)
            return f"{column}={fragment} + {column}", params
        return f"{column}={column} - {fragment}", params

    def _replace(self, field: FieldSchema, column: str, operand: Any) -> Tuple[str, List[Any]]:
        if field.type == "map":
            if not isinstance(operand, Mapping) or len(operand) != 1:
                raise _update_error(f"$replace on map '{field.name}' expects exactly one entry", field.name)
            key, value = next(iter(operand.items()))
            return f"{column}[?]=?", [key, value]
        if field.type == "list":
            if not isinstance(operand, (list, tuple)) or len(operand) != 2:
                raise _update_error(
                    f"$replace on list '{field.name}' expects [index, value]", field.name
                )
            return f"{column}[?]=?", [operand[0], operand[1]]
        raise _update_error(f"$replace requires a map or list field, '{field.name}' is {field.type}", field.name)

    def _where(self, query: Mapping[str, Any], statement_kind: str) -> Tuple[str, List[Any]]:
        predicate = self.predicates.compile(query)
        if not predicate.relations:
            raise invalid_query_error(f"{statement_kind} requires a non-empty query")
        return predicate.clause(), predicate.params

    @staticmethod
    def _ttl(ttl: Optional[int]) -> str:
        return f" USING TTL {int(ttl)}" if ttl is not None else ""

    def _hooks(self, before: str, after: str, *args: Any) -> Dict[str, Optional[Callable[[], Any]]]:
        def thunk(name: str) -> Optional[Callable[[], Any]]:
            hook = self.schema.hooks.get(name)
            if hook is None:
                return None
            return lambda: hook(*args)
        return {"before_hook": thunk(before), "after_hook": thunk(after)}

    def _build_update(self, operation: Update) -> CompiledStatement:
        assignments: List[str] = []
        params: List[Any] = []

        for name, supplied in operation.values.items():
            field = self.values.field(name)
            if field.virtual:
                continue
            value, from_default = self._resolve(field, supplied)
            if value is MISSING:
                continue
            if self.schema.is_key_field(name):
                raise _update_error(f"Primary key field '{name}' cannot be updated", name)
            text, assignment_params = self._assignment(field, value, from_default)
            assignments.append(text)
            params.extend(assignment_params)

        if not assignments:
            raise _update_error(f"Update on table '{self.schema.table_name}' has no fields to set")

        where, where_params = self._where(operation.query, "Update")
        params.extend(where_params)

        statement = (
            f"UPDATE {self.quote_identifier(operation.table_name)}{self._ttl(operation.ttl)} "
            f"SET {', '.join(assignments)} WHERE {where}"
        )
        if operation.if_exists:
            statement += " IF EXISTS"
        elif operation.conditions:
            conditions = self.predicates.compile(operation.conditions)
            statement += f" IF {conditions.clause()}"
            params.extend(conditions.params)

        options = {"ttl": operation.ttl, "if_exists": operation.if_exists, "conditions": operation.conditions}
        return CompiledStatement(
            operation_type=QueryType.UPDATE,
            statement=f"{statement};",
            params=params,
            **self._hooks("before_update", "after_update", operation.query, operation.values, options),
        )

    def _build_delete(self, operation: Delete) -> CompiledStatement:
        where, params = self._where(operation.query, "Delete")
        return CompiledStatement(
            operation_type=QueryType.DELETE,
            statement=f"DELETE FROM {self.quote_identifier(operation.table_name)} WHERE {where};",
            params=params,
            **self._hooks("before_delete", "after_delete", operation.query, {}),
        )

    def _build_insert(self, operation: Insert) -> CompiledStatement:
        unknown = [name for name in operation.values if name not in self.schema.fields]
        if unknown:
            raise invalid_schema_error(
                f"Fields {unknown} are not declared in table '{self.schema.table_name}'",
                table=self.schema.table_name,
            )

        columns: List[str] = []
        placeholders: List[str] = []
        params: List[Any] = []
        for name, field in self.schema.fields.items():
            if field.virtual:
                continue
            value, from_default = self._resolve(field, operation.values.get(name, MISSING))
            if value is MISSING:
                continue
            if field.is_counter:
                raise _update_error(f"Counter field '{name}' cannot be inserted, use update", name)
            compiled = self._compile_write_value(field, value, from_default)
            columns.append(self.quote_identifier(name))
            if isinstance(compiled, ValueExpression):
                placeholders.append(compiled.fragment)
                params.append(compiled.parameter)
            else:
                placeholders.append(compiled)

        statement = (
            f"INSERT INTO {self.quote_identifier(operation.table_name)} "
            f"({', '.join(columns)}) VALUES ({', '.join(placeholders)})"
        )
        if operation.if_not_exists:
            statement += " IF NOT EXISTS"
        ttl = operation.ttl if operation.ttl is not None else self.schema.default_ttl
        statement += self._ttl(ttl)

        options = {"ttl": ttl, "if_not_exists": operation.if_not_exists}
        return CompiledStatement(
            operation_type=QueryType.INSERT,
            statement=f"{statement};",
            params=params,
            **self._hooks("before_save", "after_save", operation.values, options),
        )
