"""Declared table schema.

A ``TableSchema`` is the application's description of one table: its typed
fields, primary key, clustering order, secondary and custom indexes,
materialized views and lifecycle hooks. It is validated once when it is
built and is immutable afterwards.

Schemas are usually built from the declarative mapping form:

    >>> schema = TableSchema.from_dict("users", {
    ...     "fields": {
    ...         "id": "uuid",
    ...         "name": {"type": "text", "rule": {"required": True}},
    ...         "tags": {"type": "set", "type_def": "<text>"},
    ...     },
    ...     "key": ["id"],
    ...     "indexes": ["name"],
    ... })
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import Field, ValidationError, model_validator

from cqlflow.common.exceptions import (
    invalid_schema_error,
    invalid_table_name_error,
    invalid_validator_rule_error,
)
from cqlflow.schema import datatypes
from cqlflow.schema.targets import index_target_column
from cqlflow.types.base import FrozenModel
from cqlflow.types.markers import MISSING, is_db_function

TABLE_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
MAX_TABLE_NAME_LENGTH = 48

HOOK_NAMES = (
    "before_save",
    "after_save",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
)


class FieldRule(FrozenModel):
    """One user validation rule attached to a field.

    Attributes:
        validator: Predicate receiving the value; None for rules that only
            carry flags such as ``required``
        message: Failure message, or a producer called with (value, field, type)
        required: Writes must supply a non-null value
        ignore_default: Skip validation of values produced by the default
    """
    validator: Optional[Callable[[Any], bool]] = None
    message: Optional[Union[str, Callable[..., str]]] = None
    required: bool = False
    ignore_default: bool = False


class FieldSchema(FrozenModel):
    """A declared column."""
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    type_def: Optional[str] = None
    default: Any = MISSING
    rules: Tuple[FieldRule, ...] = ()
    virtual: bool = False
    static: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def required(self) -> bool:
        return any(rule.required for rule in self.rules)

    @property
    def ignore_default(self) -> bool:
        return any(rule.ignore_default for rule in self.rules)

    @property
    def cql_type(self) -> str:
        return datatypes.format_type(self.type, self.type_def)

    @property
    def is_counter(self) -> bool:
        return self.type == "counter"

    @property
    def is_collection(self) -> bool:
        return datatypes.is_collection(self.type)

    @property
    def collection_kind(self) -> Optional[str]:
        return datatypes.collection_kind(self.type, self.type_def)

    def resolve_default(self) -> Any:
        """Evaluate the default provider.

        Callables are invoked on each call; database-function markers and
        plain values are returned as-is. Returns MISSING without a default.
        """
        if not self.has_default:
            return MISSING
        if callable(self.default):
            return self.default()
        return self.default


class CustomIndexSchema(FrozenModel):
    """Index backed by a pluggable implementation (``USING 'class'``)."""
    on: str = Field(..., min_length=1)
    using: str = Field(..., min_length=1)
    options: Dict[str, Any] = Field(default_factory=dict)


class MaterializedViewSchema(FrozenModel):
    """Server-maintained view of the base table under another primary key."""
    select: Tuple[str, ...] = ("*",)
    partition_key: Tuple[str, ...]
    clustering_key: Tuple[str, ...] = ()
    clustering_order: Dict[str, str] = Field(default_factory=dict)

    @property
    def key_columns(self) -> Tuple[str, ...]:
        return self.partition_key + self.clustering_key

    @property
    def selects_all(self) -> bool:
        return "*" in self.select


def parse_key(key: Any, table: str) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """Split a declared key into (partition key, clustering key).

    ``["id"]`` and ``[["a", "b"], "c"]`` are both accepted; the first element
    is the partition key (a column or a list of columns), the rest are
    clustering columns in order.
    """
    if isinstance(key, str):
        key = [key]
    if not isinstance(key, (list, tuple)) or not key:
        raise invalid_schema_error(f"Table '{table}' must declare a non-empty key", table=table)

    head, rest = key[0], key[1:]
    partition = (head,) if isinstance(head, str) else tuple(head or ())
    if not partition or not all(isinstance(col, str) and col for col in partition):
        raise invalid_schema_error(f"Table '{table}' has an invalid partition key: {head!r}", table=table)
    if not all(isinstance(col, str) and col for col in rest):
        raise invalid_schema_error(f"Table '{table}' has an invalid clustering key: {list(rest)!r}", table=table)
    return partition, tuple(rest)


def parse_clustering_order(order: Optional[Mapping[str, str]], table: str) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for column, direction in (order or {}).items():
        normalized = str(direction).strip().upper()
        if normalized not in ("ASC", "DESC"):
            raise invalid_schema_error(
                f"Clustering order for '{column}' must be ASC or DESC, got {direction!r}",
                table=table,
                field=column,
            )
        result[column] = normalized
    return result


def parse_rules(rule: Any, field: str) -> Tuple[FieldRule, ...]:
    """Turn the ``rule`` entry of a field definition into FieldRules.

    Raises:
        CQLFlowError: INVALID_VALIDATOR_RULE when the rule is malformed
    """
    if rule is None:
        return ()
    if callable(rule):
        return (FieldRule(validator=rule),)
    if not isinstance(rule, Mapping):
        raise invalid_validator_rule_error(
            f"Rule for field '{field}' must be a callable or a mapping", field=field
        )

    required = bool(rule.get("required", False))
    ignore_default = bool(rule.get("ignore_default", False))

    entries: List[Any]
    if "validators" in rule:
        if not isinstance(rule["validators"], (list, tuple)):
            raise invalid_validator_rule_error(
                f"'validators' for field '{field}' must be a list", field=field
            )
        entries = list(rule["validators"])
    elif "validator" in rule:
        entries = [{"validator": rule["validator"], "message": rule.get("message")}]
    else:
        entries = []

    rules: List[FieldRule] = []
    for entry in entries:
        if callable(entry):
            entry = {"validator": entry}
        if not isinstance(entry, Mapping) or not callable(entry.get("validator")):
            raise invalid_validator_rule_error(
                f"Validator for field '{field}' must be callable", field=field
            )
        message = entry.get("message")
        if message is not None and not (isinstance(message, str) or callable(message)):
            raise invalid_validator_rule_error(
                f"Validator message for field '{field}' must be a string or callable", field=field
            )
        rules.append(FieldRule(validator=entry["validator"], message=message))

    if required or ignore_default:
        rules.append(FieldRule(required=required, ignore_default=ignore_default))
    return tuple(rules)


def parse_field(name: str, definition: Any, table: str) -> FieldSchema:
    if isinstance(definition, str):
        definition = {"type": definition}
    if not isinstance(definition, Mapping) or "type" not in definition:
        raise invalid_schema_error(
            f"Field '{name}' must declare a type", table=table, field=name
        )

    try:
        type_name, inline_def = datatypes.split_type_string(str(definition["type"]))
    except ValueError as e:
        raise invalid_schema_error(str(e), table=table, field=name)

    type_def = definition.get("type_def", definition.get("typeDef")) or inline_def
    return FieldSchema(
        name=name,
        type=type_name,
        type_def=type_def,
        default=definition.get("default", MISSING),
        rules=parse_rules(definition.get("rule"), name),
        virtual=bool(definition.get("virtual", False)),
        static=bool(definition.get("static", False)),
    )


def parse_materialized_view(name: str, definition: Any, table: str) -> MaterializedViewSchema:
    if not isinstance(definition, Mapping):
        raise invalid_schema_error(f"Materialized view '{name}' must be a mapping", table=table)
    partition, clustering = parse_key(definition.get("key"), table)
    select = definition.get("select") or ["*"]
    if isinstance(select, str):
        select = [select]
    return MaterializedViewSchema(
        select=tuple(select),
        partition_key=partition,
        clustering_key=clustering,
        clustering_order=parse_clustering_order(definition.get("clustering_order"), table),
    )


class TableSchema(FrozenModel):
    """Validated, immutable table definition."""
    table_name: str
    fields: Dict[str, FieldSchema]
    partition_key: Tuple[str, ...]
    clustering_key: Tuple[str, ...] = ()
    clustering_order: Dict[str, str] = Field(default_factory=dict)
    indexes: Tuple[str, ...] = ()
    custom_indexes: Tuple[CustomIndexSchema, ...] = ()
    materialized_views: Dict[str, MaterializedViewSchema] = Field(default_factory=dict)
    default_ttl: Optional[int] = Field(default=None, ge=0)
    hooks: Dict[str, Callable[..., Any]] = Field(default_factory=dict)

    @classmethod
    def from_dict(cls, table_name: str, definition: Mapping[str, Any]) -> "TableSchema":
        """Build a schema from the declarative mapping form.

        Raises:
            CQLFlowError: INVALID_TABLE_NAME, INVALID_SCHEMA or
                INVALID_VALIDATOR_RULE
        """
        if not isinstance(table_name, str) or not TABLE_NAME_PATTERN.match(table_name):
            raise invalid_table_name_error(table_name)
        if not isinstance(definition, Mapping):
            raise invalid_schema_error("Table definition must be a mapping", table=str(table_name))
        fields = definition.get("fields")
        if not isinstance(fields, Mapping) or not fields:
            raise invalid_schema_error(
                f"Table '{table_name}' must declare at least one field", table=str(table_name)
            )

        partition, clustering = parse_key(definition.get("key"), str(table_name))

        custom_indexes = list(definition.get("custom_indexes") or [])
        if definition.get("custom_index"):
            custom_indexes.append(definition["custom_index"])

        options = definition.get("options") or {}

        try:
            return cls(
                table_name=table_name,
                fields={name: parse_field(name, field_def, str(table_name)) for name, field_def in fields.items()},
                partition_key=partition,
                clustering_key=clustering,
                clustering_order=parse_clustering_order(definition.get("clustering_order"), str(table_name)),
                indexes=tuple(definition.get("indexes") or ()),
                custom_indexes=tuple(CustomIndexSchema(**ci) for ci in custom_indexes),
                materialized_views={
                    name: parse_materialized_view(name, view, str(table_name))
                    for name, view in (definition.get("materialized_views") or {}).items()
                },
                default_ttl=options.get("ttl"),
                hooks={name: definition[name] for name in HOOK_NAMES if definition.get(name)},
            )
        except ValidationError as e:
            raise invalid_schema_error(
                f"Invalid definition for table '{table_name}': {e.errors()[0]['msg']}",
                table=str(table_name),
                cause=e,
            )

    @model_validator(mode="after")
    def validate_definition(self) -> "TableSchema":
        """Registration-time checks; failures raise CQLFlowError directly."""
        name = self.table_name
        if not isinstance(name, str) or len(name) > MAX_TABLE_NAME_LENGTH or not TABLE_NAME_PATTERN.match(name):
            raise invalid_table_name_error(name)

        for field_name, field in self.fields.items():
            if field.name != field_name:
                raise invalid_schema_error(
                    f"Field registered as '{field_name}' is named '{field.name}'", table=name, field=field_name
                )
            self._validate_field(field)

        for column in self.key_columns:
            field = self.fields.get(column)
            if field is None:
                raise invalid_schema_error(f"Key column '{column}' is not a declared field", table=name, field=column)
            if field.virtual or field.static:
                raise invalid_schema_error(
                    f"Key column '{column}' cannot be virtual or static", table=name, field=column
                )
        if len(set(self.key_columns)) != len(self.key_columns):
            raise invalid_schema_error(f"Key of table '{name}' repeats a column", table=name)

        for column in self.clustering_order:
            if column not in self.clustering_key:
                raise invalid_schema_error(
                    f"Clustering order references '{column}', which is not a clustering column",
                    table=name,
                    field=column,
                )

        if not self.clustering_key and any(f.static for f in self.fields.values()):
            raise invalid_schema_error(
                f"Static columns require clustering columns in table '{name}'", table=name
            )

        for expression in self.indexes:
            try:
                column = index_target_column(expression)
            except ValueError as e:
                raise invalid_schema_error(str(e), table=name)
            self._require_stored_field(column, f"Index '{expression}'")

        for custom_index in self.custom_indexes:
            self._require_stored_field(custom_index.on.replace('"', ""), "Custom index")

        for view_name, view in self.materialized_views.items():
            self._validate_view(view_name, view)

        for hook_name, hook in self.hooks.items():
            if hook_name not in HOOK_NAMES or not callable(hook):
                raise invalid_schema_error(f"Hook '{hook_name}' must be a known hook and callable", table=name)
        return self

    def _validate_field(self, field: FieldSchema) -> None:
        if not datatypes.is_known_type(field.type):
            raise invalid_schema_error(
                f"Field '{field.name}' has unknown type '{field.type}'", table=self.table_name, field=field.name
            )
        if datatypes.requires_type_def(field.type) and not field.type_def:
            raise invalid_schema_error(
                f"Field '{field.name}' of type '{field.type}' requires a type_def such as '<text>'",
                table=self.table_name,
                field=field.name,
            )
        if field.has_default and not callable(field.default) and not is_db_function(field.default):
            if field.default is not None and not datatypes.check_value(field.type, field.default):
                raise invalid_schema_error(
                    f"Default value for '{field.name}' is not a valid {field.type}",
                    table=self.table_name,
                    field=field.name,
                )

    def _require_stored_field(self, column: str, what: str) -> None:
        field = self.fields.get(column)
        if field is None or field.virtual:
            raise invalid_schema_error(
                f"{what} references unknown column '{column}'", table=self.table_name, field=column
            )

    def _validate_view(self, view_name: str, view: MaterializedViewSchema) -> None:
        if not TABLE_NAME_PATTERN.match(view_name):
            raise invalid_table_name_error(view_name)
        for column in view.select:
            if column != "*":
                self._require_stored_field(column, f"Materialized view '{view_name}'")
        for column in view.key_columns:
            self._require_stored_field(column, f"Materialized view '{view_name}' key")
            if not view.selects_all and column not in view.select:
                raise invalid_schema_error(
                    f"Materialized view '{view_name}' must select its key column '{column}'",
                    table=self.table_name,
                    field=column,
                )
        missing = [col for col in self.key_columns if col not in view.key_columns]
        if missing:
            raise invalid_schema_error(
                f"Materialized view '{view_name}' key must include base key columns {missing}",
                table=self.table_name,
            )
        for column in view.clustering_order:
            if column not in view.clustering_key:
                raise invalid_schema_error(
                    f"Materialized view '{view_name}' orders by non-clustering column '{column}'",
                    table=self.table_name,
                    field=column,
                )

    @property
    def key_columns(self) -> Tuple[str, ...]:
        return self.partition_key + self.clustering_key

    @property
    def stored_fields(self) -> Dict[str, FieldSchema]:
        """Declared fields that exist as columns (virtual fields excluded)."""
        return {name: field for name, field in self.fields.items() if not field.virtual}

    def is_key_field(self, name: str) -> bool:
        return name in self.partition_key or name in self.clustering_key

    def get_field(self, name: str) -> Optional[FieldSchema]:
        return self.fields.get(name)

    def field_type(self, name: str) -> Optional[str]:
        field = self.fields.get(name)
        return field.type if field else None
