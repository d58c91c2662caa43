"""Canonical schema form.

Declared and live schemas spell the same table differently: fields arrive
in any order, ``varchar`` and ``text`` are the same type, the store reports
``values(tags)`` for an index declared as ``tags`` and fills in ASC for
clustering columns without an explicit order. ``normalize`` reduces both
sides to a ``NormalizedSchema`` whose equality is structural and
insensitive to declaration order. Normalizing twice yields the same value.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

from pydantic import Field, ValidationError

from cqlflow.common.exceptions import CQLFlowError, invalid_schema_error
from cqlflow.schema import datatypes
from cqlflow.schema.fields import TableSchema
from cqlflow.schema.targets import custom_index_hash, normalize_index_target
from cqlflow.types.base import FrozenModel


class NormalizedField(FrozenModel):
    type: str
    type_def: Optional[str] = None
    static: bool = False

    @property
    def cql_type(self) -> str:
        return datatypes.format_type(self.type, self.type_def)


class NormalizedCustomIndex(FrozenModel):
    on: str
    using: str
    options: Dict[str, str] = Field(default_factory=dict)

    @property
    def hash(self) -> str:
        return custom_index_hash({"on": self.on, "using": self.using, "options": self.options})


class NormalizedView(FrozenModel):
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


class NormalizedSchema(FrozenModel):
    """Order-insensitive structural form of a table definition."""
    fields: Dict[str, NormalizedField]
    partition_key: Tuple[str, ...]
    clustering_key: Tuple[str, ...] = ()
    clustering_order: Dict[str, str] = Field(default_factory=dict)
    indexes: Tuple[str, ...] = ()
    custom_indexes: Dict[str, NormalizedCustomIndex] = Field(default_factory=dict)
    materialized_views: Dict[str, NormalizedView] = Field(default_factory=dict)

    @property
    def key_columns(self) -> Tuple[str, ...]:
        return self.partition_key + self.clustering_key

    def same_key_structure(self, other: "NormalizedSchema") -> bool:
        """True when partition key, clustering key and clustering order all match."""
        return (
            self.partition_key == other.partition_key
            and self.clustering_key == other.clustering_key
            and self.clustering_order == other.clustering_order
        )


def _field(type_name: str, type_def: Optional[str], static: bool) -> NormalizedField:
    return NormalizedField(
        type=datatypes.canonical_type(type_name),
        type_def=datatypes.canonical_type_def(type_def),
        static=bool(static),
    )


def _clustering_order(clustering_key: Iterable[str], order: Mapping[str, str]) -> Dict[str, str]:
    return {column: str(order.get(column, "ASC")).upper() for column in clustering_key}


def _custom_index(on: str, using: str, options: Optional[Mapping[str, Any]]) -> NormalizedCustomIndex:
    return NormalizedCustomIndex(
        on=str(on).replace('"', "").strip(),
        using=str(using).strip(),
        options={str(k): str(v) for k, v in (options or {}).items()},
    )


def _view(
    select: Iterable[str],
    partition_key: Iterable[str],
    clustering_key: Iterable[str],
    clustering_order: Mapping[str, str],
) -> NormalizedView:
    select = tuple(select)
    clustering_key = tuple(clustering_key)
    return NormalizedView(
        select=("*",) if "*" in select else tuple(sorted(set(select))),
        partition_key=tuple(partition_key),
        clustering_key=clustering_key,
        clustering_order=_clustering_order(clustering_key, clustering_order),
    )


def _from_declared(schema: TableSchema) -> NormalizedSchema:
    custom = [_custom_index(ci.on, ci.using, ci.options) for ci in schema.custom_indexes]
    return NormalizedSchema(
        fields={
            name: _field(field.type, field.type_def, field.static)
            for name, field in schema.stored_fields.items()
        },
        partition_key=schema.partition_key,
        clustering_key=schema.clustering_key,
        clustering_order=_clustering_order(schema.clustering_key, schema.clustering_order),
        indexes=tuple(sorted({normalize_index_target(expr) for expr in schema.indexes})),
        custom_indexes={ci.hash: ci for ci in sorted(custom, key=lambda ci: ci.hash)},
        materialized_views={
            name: _view(view.select, view.partition_key, view.clustering_key, view.clustering_order)
            for name, view in schema.materialized_views.items()
        },
    )


def _from_normalized(schema: NormalizedSchema) -> NormalizedSchema:
    custom = [_custom_index(ci.on, ci.using, ci.options) for ci in schema.custom_indexes.values()]
    return NormalizedSchema(
        fields={
            name: _field(field.type, field.type_def, field.static)
            for name, field in schema.fields.items()
        },
        partition_key=schema.partition_key,
        clustering_key=schema.clustering_key,
        clustering_order=_clustering_order(schema.clustering_key, schema.clustering_order),
        indexes=tuple(sorted({normalize_index_target(expr) for expr in schema.indexes})),
        custom_indexes={ci.hash: ci for ci in sorted(custom, key=lambda ci: ci.hash)},
        materialized_views={
            name: _view(view.select, view.partition_key, view.clustering_key, view.clustering_order)
            for name, view in schema.materialized_views.items()
        },
    )


def normalize(schema: Union[TableSchema, NormalizedSchema]) -> NormalizedSchema:
    """Canonicalize a declared or live schema.

    Args:
        schema: A registered TableSchema, a LiveSchema or an already
            normalized schema

    Returns:
        A plain NormalizedSchema suitable for equality comparison

    Raises:
        CQLFlowError: INVALID_SCHEMA when a component cannot be normalized
    """
    try:
        if isinstance(schema, TableSchema):
            return _from_declared(schema)
        if isinstance(schema, NormalizedSchema):
            return _from_normalized(schema)
    except CQLFlowError:
        raise
    except (ValueError, ValidationError) as e:
        raise invalid_schema_error(f"Schema normalization failed: {e}", cause=e)
    raise invalid_schema_error(f"Cannot normalize object of type {type(schema).__name__}")
