"""Shared fixtures: in-memory collaborators and sample schemas."""

from typing import Any, Dict, List, Optional

import pytest

from cqlflow.constants.migration import MigrationPolicy
from cqlflow.schema import LiveSchema, NormalizedField, TableSchema, normalize
from cqlflow.settings import MigrationSettings, _Settings


class RecordingExecutor:
    """StatementExecutor that records every call and replays scripted rows."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, errors: Optional[List[Exception]] = None):
        self.rows = rows or []
        self.errors = list(errors or [])
        self.calls: List[tuple] = []

    def run(self, statement, params, options):
        self.calls.append((statement, list(params), options))
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        return list(self.rows)

    @property
    def statements(self) -> List[str]:
        return [call[0] for call in self.calls]


class ScriptedConfirmation:
    """ConfirmationOracle answering from a fixed script ("y" once exhausted)."""

    def __init__(self, *answers: str):
        self.answers = list(answers)
        self.prompts: List[str] = []

    def ask(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answers.pop(0) if self.answers else "y"


class StaticSchemaOracle:
    """SchemaOracle returning a fixed live schema."""

    def __init__(self, live: Optional[LiveSchema] = None):
        self.live = live
        self.requests: List[str] = []

    def fetch_live_schema(self, table_name: str) -> Optional[LiveSchema]:
        self.requests.append(table_name)
        return self.live


class MismatchError(Exception):
    """Driver-style error carrying a provider error code."""

    def __init__(self, message: str, code: int):
        super().__init__(message)
        self.code = code


def make_settings(policy: MigrationPolicy = MigrationPolicy.SAFE, **kwargs) -> _Settings:
    auto_approve = kwargs.pop("disable_interactive_confirmation", False)
    return _Settings(
        migration=MigrationSettings(policy=policy, disable_interactive_confirmation=auto_approve),
        **kwargs,
    )


def live_from(schema: TableSchema, **overrides) -> LiveSchema:
    """Live schema matching ``schema`` exactly, index names derived from targets."""
    normalized = normalize(schema)
    data = normalized.model_dump()
    data.update(
        table_name=schema.table_name,
        index_names={target: f"{schema.table_name}_{target.replace('(', '_').replace(')', '')}_idx"
                     for target in normalized.indexes},
        custom_index_names={h: f"{schema.table_name}_{ci.on}_custom_idx"
                            for h, ci in normalized.custom_indexes.items()},
    )
    data.update(overrides)
    return LiveSchema(**data)


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def users_schema():
    """Wide table exercising every field feature used by the compilers."""
    return TableSchema.from_dict("t", {
        "fields": {
            "id": "uuid",
            "name": "text",
            "age": "int",
            "score": "double",
            "visits": "counter",
            "tags": {"type": "set", "type_def": "<text>"},
            "items": {"type": "list", "type_def": "<int>"},
            "attrs": {"type": "map", "type_def": "<text, text>"},
            "email": {"type": "text", "rule": {"required": True}},
        },
        "key": ["id", "name"],
    })


@pytest.fixture
def people_schema():
    """Plain row table with defaults and a virtual field."""
    return TableSchema.from_dict("people", {
        "fields": {
            "id": "uuid",
            "name": "text",
            "age": {"type": "int", "default": 18},
            "created": {"type": "timestamp", "default": {"$db_function": "toTimestamp(now())"}},
            "nickname": {"type": "text", "virtual": True},
        },
        "key": ["id"],
        "options": {"ttl": 3600},
    })


@pytest.fixture
def indexed_schema():
    """Table with a clustering key, indexes and a materialized view."""
    return TableSchema.from_dict("events", {
        "fields": {
            "id": "uuid",
            "ts": "timestamp",
            "kind": "text",
            "payload": "text",
            "tags": {"type": "set", "type_def": "<text>"},
        },
        "key": ["id", "ts"],
        "clustering_order": {"ts": "desc"},
        "indexes": ["kind", "keys(tags)"],
        "materialized_views": {
            "events_by_kind": {
                "select": ["kind", "id", "ts"],
                "key": ["kind", "id", "ts"],
            },
        },
    })


@pytest.fixture
def counter_schema():
    return TableSchema.from_dict("hits", {
        "fields": {"page": "text", "views": "counter"},
        "key": ["page"],
    })


def text_field(type_name: str = "text", type_def: Optional[str] = None, static: bool = False) -> NormalizedField:
    return NormalizedField(type=type_name, type_def=type_def, static=static)
