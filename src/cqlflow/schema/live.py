"""Live schema introspection.

``LiveSchema`` is the normalized shape of a table as the store reports it,
plus the lookup tables needed to drop indexes by name. It is immutable:
the migration planner threads updated copies through its steps via the
``without_*`` helpers instead of mutating one shared instance.

``SystemSchemaOracle`` builds a ``LiveSchema`` from the ``system_schema``
keyspace through the injected statement executor.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from pydantic import Field

from cqlflow.common.exceptions import CQLFlowError, ddl_error
from cqlflow.logging import get_logger
from cqlflow.protocols.providers import DEFINITION_QUERY_OPTIONS, StatementExecutor
from cqlflow.schema import datatypes
from cqlflow.schema.normalizer import (
    NormalizedCustomIndex,
    NormalizedField,
    NormalizedSchema,
    NormalizedView,
)
from cqlflow.schema.targets import index_target_column, normalize_index_target
from cqlflow.utils.decorators import traced

logger = get_logger(__name__)

COLUMNS_QUERY = "SELECT * FROM system_schema.columns WHERE keyspace_name = ? AND table_name = ?;"
INDEXES_QUERY = "SELECT * FROM system_schema.indexes WHERE keyspace_name = ? AND table_name = ?;"
VIEWS_QUERY = (
    "SELECT * FROM system_schema.views WHERE keyspace_name = ? AND base_table_name = ? ALLOW FILTERING;"
)


class LiveSchema(NormalizedSchema):
    """Table definition introspected from the store.

    Attributes:
        table_name: Name of the live table
        index_names: Canonical index target -> index name
        custom_index_names: Custom index content hash -> index name
    """
    table_name: str
    index_names: Dict[str, str] = Field(default_factory=dict)
    custom_index_names: Dict[str, str] = Field(default_factory=dict)

    def dependents_of(self, column: str) -> Tuple[List[str], List[str], List[str]]:
        """Indexes, custom indexes and views that reference ``column``.

        Views depend on a column when they select it, key on it, or select
        every column.
        """
        indexes = [target for target in self.indexes if index_target_column(target) == column]
        custom = [h for h, ci in self.custom_indexes.items() if ci.on == column]
        views = [
            name
            for name, view in self.materialized_views.items()
            if view.selects_all or column in view.select or column in view.key_columns
        ]
        return indexes, custom, views

    def without_field(self, column: str) -> "LiveSchema":
        return self.model_copy(
            update={"fields": {name: f for name, f in self.fields.items() if name != column}}
        )

    def with_field(self, column: str, field: NormalizedField) -> "LiveSchema":
        return self.model_copy(update={"fields": {**self.fields, column: field}})

    def without_index(self, target: str) -> "LiveSchema":
        return self.model_copy(update={
            "indexes": tuple(t for t in self.indexes if t != target),
            "index_names": {t: n for t, n in self.index_names.items() if t != target},
        })

    def without_custom_index(self, index_hash: str) -> "LiveSchema":
        return self.model_copy(update={
            "custom_indexes": {h: ci for h, ci in self.custom_indexes.items() if h != index_hash},
            "custom_index_names": {h: n for h, n in self.custom_index_names.items() if h != index_hash},
        })

    def without_view(self, view_name: str) -> "LiveSchema":
        return self.model_copy(update={
            "materialized_views": {
                name: view for name, view in self.materialized_views.items() if name != view_name
            }
        })


def _key_columns(rows: Sequence[Mapping[str, Any]], kind: str) -> Tuple[str, ...]:
    keyed = [row for row in rows if row.get("kind") == kind]
    keyed.sort(key=lambda row: row.get("position", 0))
    return tuple(row["column_name"] for row in keyed)


def _clustering_order(rows: Sequence[Mapping[str, Any]]) -> Dict[str, str]:
    return {
        row["column_name"]: str(row.get("clustering_order") or "asc").upper()
        for row in rows
        if row.get("kind") == "clustering"
    }


def _parse_column_type(type_string: str) -> Tuple[str, Optional[str]]:
    type_name, type_def = datatypes.split_type_string(type_string)
    return datatypes.canonical_type(type_name), datatypes.canonical_type_def(type_def)


class SystemSchemaOracle:
    """SchemaOracle backed by the ``system_schema`` tables.

    Args:
        executor: Statement executor used for the introspection queries
        keyspace: Keyspace holding the tables
    """

    def __init__(self, executor: StatementExecutor, keyspace: str):
        self.executor = executor
        self.keyspace = keyspace

    def _query(self, statement: str, params: List[Any]) -> List[Dict[str, Any]]:
        try:
            return [dict(row) for row in self.executor.run(statement, params, DEFINITION_QUERY_OPTIONS)]
        except CQLFlowError:
            raise
        except Exception as e:
            raise ddl_error("schema_query", e, statement=statement)

    @traced("cqlflow.schema.fetch_live_schema")
    def fetch_live_schema(self, table_name: str) -> Optional[LiveSchema]:
        """Introspect ``table_name``; None when the table does not exist.

        Raises:
            CQLFlowError: SCHEMA_QUERY_ERROR if an introspection query fails
        """
        columns = self._query(COLUMNS_QUERY, [self.keyspace, table_name])
        if not columns:
            logger.debug("schema.live.absent", extra={"table": table_name, "keyspace": self.keyspace})
            return None

        fields: Dict[str, NormalizedField] = {}
        for row in columns:
            type_name, type_def = _parse_column_type(row["type"])
            fields[row["column_name"]] = NormalizedField(
                type=type_name, type_def=type_def, static=row.get("kind") == "static"
            )

        indexes: List[str] = []
        index_names: Dict[str, str] = {}
        custom_indexes: Dict[str, NormalizedCustomIndex] = {}
        custom_index_names: Dict[str, str] = {}
        for row in self._query(INDEXES_QUERY, [self.keyspace, table_name]):
            options = dict(row.get("options") or {})
            target = options.pop("target", "")
            if row.get("kind") == "CUSTOM":
                custom = NormalizedCustomIndex(
                    on=index_target_column(target),
                    using=options.pop("class_name", ""),
                    options={str(k): str(v) for k, v in options.items()},
                )
                custom_indexes[custom.hash] = custom
                custom_index_names[custom.hash] = row["index_name"]
            else:
                canonical = normalize_index_target(target)
                indexes.append(canonical)
                index_names[canonical] = row["index_name"]

        views: Dict[str, NormalizedView] = {}
        for row in self._query(VIEWS_QUERY, [self.keyspace, table_name]):
            view_name = row["view_name"]
            view_columns = self._query(COLUMNS_QUERY, [self.keyspace, view_name])
            clustering = _key_columns(view_columns, "clustering")
            views[view_name] = NormalizedView(
                select=("*",) if row.get("include_all_columns") else tuple(
                    sorted(col["column_name"] for col in view_columns)
                ),
                partition_key=_key_columns(view_columns, "partition_key"),
                clustering_key=clustering,
                clustering_order=_clustering_order(view_columns),
            )

        live = LiveSchema(
            table_name=table_name,
            fields=fields,
            partition_key=_key_columns(columns, "partition_key"),
            clustering_key=_key_columns(columns, "clustering"),
            clustering_order=_clustering_order(columns),
            indexes=tuple(sorted(indexes)),
            custom_indexes=custom_indexes,
            materialized_views=views,
            index_names=index_names,
            custom_index_names=custom_index_names,
        )
        logger.debug(
            "schema.live.fetched",
            extra={
                "table": table_name,
                "columns": len(fields),
                "indexes": len(indexes),
                "custom_indexes": len(custom_indexes),
                "views": len(views),
            },
        )
        return live
