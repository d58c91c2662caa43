"""Predicate compilation.

A query mapping assigns each field either a bare value (implicit
equality), an operator map such as ``{"$gte": 21}``, or a list of either,
each entry producing its own relation::

    >>> compiler.compile({"age": {"$gte": 21}, "name": "x"})
    Predicate(relations=['"age" >= ?', '"name" = ?'], params=[21, 'x'])

A mapping counts as an operator map only when every key is a recognized
operator (compared case-insensitively); any other mapping is the operand
of an implicit equality. ``$token`` accepts a comma-joined field list on
the left side: ``{"id,name": {"$token": {"$gt": ["a", "b"]}}}``.
"""

from typing import Any, Dict, List, Mapping, NamedTuple, Tuple

from cqlflow.common.exceptions import ErrorCode, invalid_query_error
from cqlflow.constants.cql import INDEX_EXPR_KEY, QUERY_META_KEYS, QUERY_OPERATORS, SOLR_QUERY_KEY
from cqlflow.query_builder.base import quote_identifier, quote_string
from cqlflow.query_builder.values import ValueExpression, ValueExpressionCompiler
from cqlflow.schema import datatypes


class Predicate(NamedTuple):
    relations: List[str]
    params: List[Any]

    def clause(self) -> str:
        return " AND ".join(self.relations)


TOKEN_OPERATORS = frozenset({"$eq", "$gt", "$lt", "$gte", "$lte"})


def _operator_error(message: str, field: str):
    return invalid_query_error(message, field=field, error_code=ErrorCode.INVALID_OPERATOR)


def _as_operator_map(relation: Any) -> Dict[str, Any]:
    if isinstance(relation, Mapping) and relation and all(
        isinstance(key, str) and key.lower() in QUERY_OPERATORS for key in relation
    ):
        return {key.lower(): operand for key, operand in relation.items()}
    return {"$eq": relation}


class PredicateCompiler:
    """Compiles query mappings into WHERE (or IF) relations."""

    def __init__(self, values: ValueExpressionCompiler):
        self.values = values

    def compile(self, query: Mapping[str, Any]) -> Predicate:
        """Compile every relation of ``query`` in input order.

        Ordering, grouping and limit meta-keys are skipped; the find
        compiler handles them.

        Raises:
            CQLFlowError: INVALID_OPERATOR, INVALID_QUERY, INVALID_VALUE
                or INVALID_SCHEMA
        """
        relations: List[str] = []
        params: List[Any] = []

        for key, relation in (query or {}).items():
            if key == SOLR_QUERY_KEY:
                relations.append(f"solr_query={quote_string(relation)}")
                continue
            if key == INDEX_EXPR_KEY:
                relations.append(self._index_expression(relation))
                continue
            if key in QUERY_META_KEYS:
                continue
            if key.startswith("$"):
                raise _operator_error(f"Unknown query key '{key}'", key)

            for entry in self._entries(key, relation):
                for operator, operand in _as_operator_map(entry).items():
                    relation_text, relation_params = self._relation(key, operator, operand)
                    relations.append(relation_text)
                    params.extend(relation_params)

        return Predicate(relations, params)

    def _entries(self, key: str, relation: Any) -> List[Any]:
        # A list is one relation per element, unless the field itself
        # holds list-shaped values.
        if not isinstance(relation, list):
            return [relation]
        if "," not in key and datatypes.requires_type_def(self.values.field(key).type):
            return [relation]
        return relation

    def _index_expression(self, relation: Any) -> str:
        if not isinstance(relation, Mapping) or "index" not in relation or "query" not in relation:
            raise invalid_query_error(
                f"'{INDEX_EXPR_KEY}' expects a mapping with 'index' and 'query'", field=INDEX_EXPR_KEY
            )
        return f"expr({relation['index']},{quote_string(relation['query'])})"

    def _relation(self, key: str, operator: str, operand: Any) -> Tuple[str, List[Any]]:
        if operator == "$token":
            return self._token(key, operand)
        if "," in key:
            raise _operator_error(f"Composite field list '{key}' is only valid with $token", key)

        field = self.values.field(key)
        column = quote_identifier(key)

        if operator == "$in":
            if not isinstance(operand, (list, tuple)):
                raise _operator_error(f"$in on '{key}' expects a list operand", key)
            return f"{column} IN ?", [[self.values.bind(key, item) for item in operand]]

        if operator == "$contains":
            if field.collection_kind is None:
                raise _operator_error(f"$contains requires a collection field, '{key}' is {field.type}", key)
            if field.type == "map" and isinstance(operand, Mapping) and len(operand) == 1:
                map_key, map_value = next(iter(operand.items()))
                return f"{column}[?] = ?", [map_key, map_value]
            return f"{column} CONTAINS ?", [operand]

        if operator == "$contains_key":
            if field.collection_kind != "map":
                raise _operator_error(f"$contains_key requires a map field, '{key}' is {field.type}", key)
            return f"{column} CONTAINS KEY ?", [operand]

        compiled = self.values.compile(key, operand, relation=True)
        return self._format(column, QUERY_OPERATORS[operator], compiled)

    @staticmethod
    def _format(column: str, operator: str, compiled: Any) -> Tuple[str, List[Any]]:
        if isinstance(compiled, ValueExpression):
            return f"{column} {operator} {compiled.fragment}", [compiled.parameter]
        return f"{column} {operator} {compiled}", []

    def _token(self, key: str, operand: Any) -> Tuple[str, List[Any]]:
        if not isinstance(operand, Mapping):
            raise _operator_error(f"$token on '{key}' expects an operator mapping", key)
        if len(operand) != 1:
            raise _operator_error(f"$token on '{key}' expects exactly one comparison operator", key)

        inner, value = next(iter(operand.items()))
        inner = str(inner).lower()
        if inner not in TOKEN_OPERATORS:
            raise _operator_error(f"Operator '{inner}' is not allowed inside $token", key)

        columns = [column.strip() for column in key.split(",")]
        values = value if len(columns) > 1 else [value]
        if not isinstance(values, (list, tuple)) or len(values) != len(columns):
            raise _operator_error(
                f"$token on '{key}' expects {len(columns)} value(s) matching the field list", key
            )

        fragments: List[str] = []
        params: List[Any] = []
        for column, item in zip(columns, values):
            compiled = self.values.compile(column, item, relation=True)
            if isinstance(compiled, ValueExpression):
                fragments.append(compiled.fragment)
                params.append(compiled.parameter)
            else:
                fragments.append(compiled)

        left = ",".join(quote_identifier(column) for column in columns)
        return f"token({left}) {QUERY_OPERATORS[inner]} token({','.join(fragments)})", params
