"""Value expression compilation.

Turns one field value into the right-hand side of a relation or an
assignment: a ``?`` placeholder plus the parameter to bind, or a raw
fragment for database-function markers such as ``now()``.
"""

from typing import Any, NamedTuple, Union

from cqlflow.common.exceptions import invalid_query_error, invalid_schema_error
from cqlflow.constants.cql import DB_FUNCTION_KEY
from cqlflow.query_builder.base import quote_identifier
from cqlflow.schema import datatypes
from cqlflow.schema.fields import FieldSchema, TableSchema
from cqlflow.schema.validator import SchemaValidators
from cqlflow.types.markers import is_db_function, is_null_like


class ValueExpression(NamedTuple):
    fragment: str
    parameter: Any


CompiledValue = Union[ValueExpression, str]


class ValueExpressionCompiler:
    """Compiles values of one table's fields.

    Args:
        schema: Registered table schema
        validators: Validator chains built for ``schema``; built here when omitted
    """

    def __init__(self, schema: TableSchema, validators: SchemaValidators = None):
        self.schema = schema
        self.validators = validators if validators is not None else SchemaValidators(schema)

    def field(self, name: str) -> FieldSchema:
        """Look up a declared field.

        Raises:
            CQLFlowError: INVALID_SCHEMA when the field is not declared
        """
        field = self.schema.get_field(name)
        if field is None or not datatypes.is_known_type(field.type):
            raise invalid_schema_error(
                f"Field '{name}' does not resolve to a known type in table '{self.schema.table_name}'",
                table=self.schema.table_name,
                field=name,
            )
        return field

    def compile(self, name: str, value: Any, *, relation: bool = False) -> CompiledValue:
        """Compile ``value`` for field ``name``.

        Args:
            name: Declared field name
            value: Value to bind
            relation: True inside a WHERE/IF relation, where counter values
                are compared rather than applied as a delta

        Returns:
            ValueExpression, or the raw fragment of a database-function marker

        Raises:
            CQLFlowError: INVALID_VALUE when the validator chain rejects the value
        """
        field = self.field(name)

        if is_null_like(value):
            return ValueExpression("?", value)

        if is_db_function(value):
            return str(value[DB_FUNCTION_KEY])

        if isinstance(value, list) and not datatypes.requires_type_def(field.type):
            return ValueExpression("?", [self._element(name, item, relation) for item in value])

        self.validators[name].check(value)

        if field.is_counter and not relation:
            sign = "-" if value < 0 else "+"
            return ValueExpression(f"{quote_identifier(name)} {sign} ?", abs(value))

        return ValueExpression("?", value)

    def _element(self, name: str, item: Any, relation: bool) -> Any:
        compiled = self.compile(name, item, relation=relation)
        if isinstance(compiled, str):
            raise invalid_query_error(
                f"Database functions cannot be bound inside a value list for field '{name}'",
                field=name,
            )
        return compiled.parameter

    def bind(self, name: str, value: Any) -> Any:
        """Validate ``value`` and return the parameter to bind, without a fragment."""
        compiled = self.compile(name, value, relation=True)
        if isinstance(compiled, str):
            raise invalid_query_error(
                f"A database function cannot be used here for field '{name}'", field=name
            )
        return compiled.parameter
