"""Table schema definition, validation, normalization and diffing."""

from cqlflow.schema.differ import FieldDiff, SchemaDiff, diff
from cqlflow.schema.fields import (
    CustomIndexSchema,
    FieldRule,
    FieldSchema,
    MaterializedViewSchema,
    TableSchema,
)
from cqlflow.schema.live import LiveSchema, SystemSchemaOracle
from cqlflow.schema.normalizer import (
    NormalizedCustomIndex,
    NormalizedField,
    NormalizedSchema,
    NormalizedView,
    normalize,
)
from cqlflow.schema.validator import FieldValidator, SchemaValidators, build_validators

__all__ = [
    "CustomIndexSchema",
    "FieldDiff",
    "FieldRule",
    "FieldSchema",
    "FieldValidator",
    "LiveSchema",
    "MaterializedViewSchema",
    "NormalizedCustomIndex",
    "NormalizedField",
    "NormalizedSchema",
    "NormalizedView",
    "SchemaDiff",
    "SchemaValidators",
    "SystemSchemaOracle",
    "TableSchema",
    "build_validators",
    "diff",
    "normalize",
]
