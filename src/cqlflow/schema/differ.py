"""Structural diff between a live and a declared schema."""

from typing import Any, Optional, Tuple, Union

from cqlflow.constants.migration import DiffKind
from cqlflow.schema.fields import TableSchema
from cqlflow.schema.normalizer import NormalizedField, NormalizedSchema, normalize
from cqlflow.types.base import FrozenModel

# Attribute precedence when one field differs in several ways.
_CHANGE_ORDER = ("type", "type_def", "static")


class FieldDiff(FrozenModel):
    """One field-level difference.

    Attributes:
        kind: added, removed or changed
        path: ``("fields", name)`` or ``("fields", name, attribute)``
        old: Live field definition, None when added
        new: Declared field definition, None when removed
    """
    kind: DiffKind
    path: Tuple[str, ...]
    old: Optional[NormalizedField] = None
    new: Optional[NormalizedField] = None

    @property
    def field(self) -> str:
        return self.path[1]

    @property
    def attribute(self) -> Optional[str]:
        return self.path[2] if len(self.path) > 2 else None


class SchemaDiff(FrozenModel):
    """Field-level changes plus added/removed index and view sets.

    Custom indexes are identified by content hash and views by name; a
    view whose definition changed is both removed and added.
    """
    fields: Tuple[FieldDiff, ...] = ()
    key_changed: bool = False
    added_indexes: Tuple[str, ...] = ()
    removed_indexes: Tuple[str, ...] = ()
    added_custom_indexes: Tuple[str, ...] = ()
    removed_custom_indexes: Tuple[str, ...] = ()
    added_views: Tuple[str, ...] = ()
    removed_views: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.fields
            or self.key_changed
            or self.added_indexes
            or self.removed_indexes
            or self.added_custom_indexes
            or self.removed_custom_indexes
            or self.added_views
            or self.removed_views
        )

    def of_kind(self, kind: DiffKind) -> Tuple[FieldDiff, ...]:
        return tuple(d for d in self.fields if d.kind == kind)


def _changed_attribute(old: NormalizedField, new: NormalizedField) -> Optional[str]:
    for attribute in _CHANGE_ORDER:
        if getattr(old, attribute) != getattr(new, attribute):
            return attribute
    return None


def _set_diff(live: Any, declared: Any) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    return tuple(sorted(set(declared) - set(live))), tuple(sorted(set(live) - set(declared)))


def diff(
    live: Union[TableSchema, NormalizedSchema],
    declared: Union[TableSchema, NormalizedSchema],
) -> SchemaDiff:
    """Compare ``live`` against ``declared``.

    Field records follow declared order for additions and changes and live
    order for removals. A field changed in several attributes yields one
    record, tagged with the highest-precedence attribute (type, then
    type_def, then static).
    """
    live_n = normalize(live)
    declared_n = normalize(declared)

    records = []
    for name, new in declared_n.fields.items():
        old = live_n.fields.get(name)
        if old is None:
            records.append(FieldDiff(kind=DiffKind.ADDED, path=("fields", name), new=new))
            continue
        attribute = _changed_attribute(old, new)
        if attribute is not None:
            records.append(
                FieldDiff(kind=DiffKind.CHANGED, path=("fields", name, attribute), old=old, new=new)
            )
    for name, old in live_n.fields.items():
        if name not in declared_n.fields:
            records.append(FieldDiff(kind=DiffKind.REMOVED, path=("fields", name), old=old))

    added_indexes, removed_indexes = _set_diff(live_n.indexes, declared_n.indexes)
    added_custom, removed_custom = _set_diff(live_n.custom_indexes, declared_n.custom_indexes)

    live_views = live_n.materialized_views
    declared_views = declared_n.materialized_views

    return SchemaDiff(
        fields=tuple(records),
        key_changed=not live_n.same_key_structure(declared_n),
        added_indexes=added_indexes,
        removed_indexes=removed_indexes,
        added_custom_indexes=added_custom,
        removed_custom_indexes=removed_custom,
        added_views=tuple(sorted(n for n, v in declared_views.items() if live_views.get(n) != v)),
        removed_views=tuple(sorted(n for n, v in live_views.items() if declared_views.get(n) != v)),
    )
