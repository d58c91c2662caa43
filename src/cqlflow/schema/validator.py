"""Field value validation.

Each stored field gets a validator chain when its table is registered:
the built-in type check first, then the user rules in declaration order.
Validation stops at the first failing entry and hands back that entry's
message producer, which is called with ``(value, field_name, field_type)``.
"""

from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Tuple, Union

from cqlflow.common.exceptions import invalid_schema_error, invalid_value_error
from cqlflow.schema import datatypes
from cqlflow.schema.fields import FieldRule, FieldSchema, TableSchema
from cqlflow.types.markers import is_db_function, is_null_like

MessageProducer = Callable[[Any, str, str], str]
ValidationResult = Union[Literal[True], MessageProducer]


def default_message(value: Any, field_name: str, field_type: str) -> str:
    return f'Invalid Value: "{value}" for Field: {field_name} (Type: {field_type})'


def _as_producer(message: Union[None, str, Callable[..., str]]) -> MessageProducer:
    if message is None:
        return default_message
    if isinstance(message, str):
        return lambda value, field_name, field_type: message
    return message


class FieldValidator:
    """Ordered validator chain for a single field."""

    def __init__(self, field: FieldSchema):
        if not datatypes.is_known_type(field.type):
            raise invalid_schema_error(f"Field '{field.name}' has unknown type '{field.type}'", field=field.name)
        self.field = field
        self.chain: List[Tuple[Callable[[Any], bool], MessageProducer]] = self._build_chain(field)

    @staticmethod
    def _build_chain(field: FieldSchema) -> List[Tuple[Callable[[Any], bool], MessageProducer]]:
        type_check = datatypes.TYPE_VALIDATORS[field.type]
        chain = [(type_check, default_message)]
        for rule in field.rules:
            if rule.validator is not None:
                chain.append((rule.validator, _as_producer(rule.message)))
        return chain

    def validate(self, value: Any) -> ValidationResult:
        """Return True, or the message producer of the first failing entry.

        None, UNSET and database-function markers always pass.
        """
        if is_null_like(value) or is_db_function(value):
            return True
        for check, message in self.chain:
            if not check(value):
                return message
        return True

    def message_for(self, value: Any) -> Optional[str]:
        """Failure message for ``value``, or None when it is valid."""
        result = self.validate(value)
        if result is True:
            return None
        return result(value, self.field.name, self.field.type)

    def check(self, value: Any) -> None:
        """Raise INVALID_VALUE unless ``value`` passes the chain."""
        message = self.message_for(value)
        if message is not None:
            raise invalid_value_error(message, field=self.field.name, value=value)


def build_validators(schema: TableSchema) -> Dict[str, FieldValidator]:
    """Build the validator chain of every field of a registered table."""
    return {name: FieldValidator(field) for name, field in schema.fields.items()}


def validate(field: FieldSchema, value: Any) -> ValidationResult:
    """One-off validation of ``value`` against ``field``."""
    return FieldValidator(field).validate(value)


class SchemaValidators(Mapping[str, FieldValidator]):
    """Read-only view over the validator chains of one table."""

    def __init__(self, schema: TableSchema):
        self._validators = build_validators(schema)

    def __getitem__(self, name: str) -> FieldValidator:
        return self._validators[name]

    def __iter__(self):
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)


__all__ = [
    "FieldRule",
    "FieldValidator",
    "SchemaValidators",
    "build_validators",
    "default_message",
    "validate",
]
