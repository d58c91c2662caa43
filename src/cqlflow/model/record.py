"""Typed records with explicit dirty tracking."""

from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterator, Mapping, Optional

from cqlflow.common.exceptions import invalid_schema_error

if TYPE_CHECKING:
    from cqlflow.model.model import Model


class Record:
    """One row of a model's table.

    Values live in an explicit field map; every mutating accessor also
    records the field name in the modified set. Rows read from the store
    start clean.

    Args:
        model: Owning model
        values: Initial field values
        persisted: True for rows read from the store
    """

    def __init__(self, model: "Model", values: Optional[Mapping[str, Any]] = None, *, persisted: bool = False):
        self._model = model
        self._values: Dict[str, Any] = {}
        self._modified: set = set()
        self._persisted = persisted
        for name, value in (values or {}).items():
            if persisted:
                self._values[name] = value
            else:
                self.set(name, value)

    def __repr__(self) -> str:
        return f"Record({self._model.table_name}, {self._values!r})"

    def __getitem__(self, name: str) -> Any:
        return self._values[name]

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def get(self, name: str, default: Any = None) -> Any:
        return self._values.get(name, default)

    def set(self, name: str, value: Any) -> None:
        """Assign a declared field and mark it modified.

        Raises:
            CQLFlowError: INVALID_SCHEMA for undeclared fields
        """
        if name not in self._model.schema.fields:
            raise invalid_schema_error(
                f"Field '{name}' is not declared in table '{self._model.table_name}'",
                table=self._model.table_name,
                field=name,
            )
        self._values[name] = value
        self._modified.add(name)

    def update(self, values: Mapping[str, Any]) -> None:
        for name, value in values.items():
            self.set(name, value)

    @property
    def modified_fields(self) -> FrozenSet[str]:
        return frozenset(self._modified)

    def is_modified(self, name: Optional[str] = None) -> bool:
        if name is None:
            return bool(self._modified)
        return name in self._modified

    @property
    def is_persisted(self) -> bool:
        return self._persisted

    def primary_key(self) -> Dict[str, Any]:
        return {name: self._values.get(name) for name in self._model.schema.key_columns}

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def persistable_values(self) -> Dict[str, Any]:
        """Values of declared, non-virtual fields."""
        fields = self._model.schema.fields
        return {
            name: value
            for name, value in self._values.items()
            if name in fields and not fields[name].virtual
        }

    def save(self, **options: Any) -> Any:
        """Insert this record.

        Returns:
            The record itself, or the CompiledStatement with ``return_query=True``
        """
        outcome = self._model.insert(self.persistable_values(), **options)
        if options.get("return_query"):
            return outcome
        self._modified.clear()
        self._persisted = True
        return self

    def delete(self, **options: Any) -> Any:
        """Delete this record by primary key."""
        return self._model.delete(self.primary_key(), **options)
