import re
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

from pydantic import Field

from cqlflow.common.exceptions import invalid_query_error
from cqlflow.constants.cql import QueryType
from cqlflow.operations import (
    AlterTable,
    BaseOperation,
    CreateCustomIndex,
    CreateIndex,
    CreateMaterializedView,
    CreateTable,
    Delete,
    DropIndex,
    DropMaterializedView,
    DropTable,
    Insert,
    Select,
    Truncate,
    Update,
)
from cqlflow.types.base import FrozenModel

CQL_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def quote_identifier(identifier: str) -> str:
    identifier = identifier.strip().replace('"', "")
    if not CQL_IDENTIFIER.match(identifier):
        raise invalid_query_error(f"Invalid identifier: '{identifier}'", field=identifier)
    return f'"{identifier}"'


def quote_string(value: Any) -> str:
    # Escape single quotes by doubling them
    escaped = str(value).replace("'", "''")
    return f"'{escaped}'"


class CompiledStatement(FrozenModel):
    """CQL text with its ordered bound parameters.

    Attributes:
        operation_type: Statement type the text was built for
        statement: CQL text, terminated by ``;``
        params: Bound parameters in placeholder order
        before_hook: Zero-argument thunk run before execution; returning
            False vetoes the statement
        after_hook: Zero-argument thunk run after a successful execution
    """
    operation_type: QueryType
    statement: str
    params: List[Any] = Field(default_factory=list)
    before_hook: Optional[Callable[[], Any]] = None
    after_hook: Optional[Callable[[], Any]] = None

    @property
    def query_type(self) -> QueryType:
        return QueryType(self.operation_type)


class BaseQueryBuilder(ABC):
    """Base interface for query builders with CQL injection protection.

    Query builders are responsible for generating CQL statements. They do
    NOT execute them - that responsibility belongs to the model, which
    hands compiled statements to the injected statement executor.

    Security Principles:
        1. **Input Validation**: Identifiers are validated before use
        2. **Bound Values**: Values are always bound, never inlined, except
           database-function markers and integer TTL/LIMIT literals
        3. **Whitelist Approach**: Only allow known-safe characters in identifiers
    """

    @abstractmethod
    def _build_create_table(self, operation: CreateTable) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_drop_table(self, operation: DropTable) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_alter_table(self, operation: AlterTable) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_create_index(self, operation: CreateIndex) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_create_custom_index(self, operation: CreateCustomIndex) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_drop_index(self, operation: DropIndex) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_create_materialized_view(self, operation: CreateMaterializedView) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_drop_materialized_view(self, operation: DropMaterializedView) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_select(self, operation: Select) -> CompiledStatement:
        """Build SELECT statement.

        Args:
            operation: Select operation

        Returns:
            SELECT statement with WHERE parameters
        """
        pass

    @abstractmethod
    def _build_insert(self, operation: Insert) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_update(self, operation: Update) -> CompiledStatement:
        """Build UPDATE statement.

        Args:
            operation: Update operation

        Returns:
            UPDATE statement with SET, WHERE and IF parameters in that order
        """
        pass

    @abstractmethod
    def _build_delete(self, operation: Delete) -> CompiledStatement:
        pass

    @abstractmethod
    def _build_truncate(self, operation: Truncate) -> CompiledStatement:
        pass

    def build_query(self, operation: BaseOperation) -> CompiledStatement:
        """Build a CQL statement from an operation.

        Main method that converts operations into compiled statements.

        Args:
            operation: Operation to convert to CQL

        Returns:
            CompiledStatement with text and bound parameters

        Raises:
            NotImplementedError: If operation type is not supported
            CQLFlowError: If the operation cannot be compiled
        """
        operation_mapping = {
            QueryType.CREATE_TABLE: self._build_create_table,
            QueryType.DROP_TABLE: self._build_drop_table,
            QueryType.ALTER_TABLE: self._build_alter_table,
            QueryType.CREATE_INDEX: self._build_create_index,
            QueryType.CREATE_CUSTOM_INDEX: self._build_create_custom_index,
            QueryType.DROP_INDEX: self._build_drop_index,
            QueryType.CREATE_MATERIALIZED_VIEW: self._build_create_materialized_view,
            QueryType.DROP_MATERIALIZED_VIEW: self._build_drop_materialized_view,
            QueryType.SELECT: self._build_select,
            QueryType.INSERT: self._build_insert,
            QueryType.UPDATE: self._build_update,
            QueryType.DELETE: self._build_delete,
            QueryType.TRUNCATE: self._build_truncate,
        }

        builder_method = operation_mapping.get(QueryType(operation.operation_type))
        if builder_method:
            return builder_method(operation)

        raise NotImplementedError(
            f"Operation type {operation.operation_type} not supported by {self.__class__.__name__}"
        )

    def quote_identifier(self, identifier: str) -> str:
        """Quote an identifier for safe CQL usage.

        Args:
            identifier: Column, table, view or index name

        Returns:
            Double-quoted identifier

        Raises:
            CQLFlowError: INVALID_QUERY if the identifier contains unsafe characters
        """
        return quote_identifier(identifier)

    def quote_string(self, value: str) -> str:
        """Quote a string literal for CQL.

        Args:
            value: String value to quote

        Returns:
            Properly quoted and escaped string
        """
        return quote_string(value)

    def format_column_list(self, columns: List[str]) -> str:
        """Format a list of columns as a comma-separated list of quoted identifiers."""
        return ", ".join(self.quote_identifier(col) for col in columns)
