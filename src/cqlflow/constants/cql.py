"""CQL statement and operator constants.

This module contains the statement type enumeration and the operator
vocabularies used by the predicate, update and find compilers.

These constants are in Layer 0 as they represent core CQL concepts
that can be used by any layer without creating circular dependencies.
"""

from enum import Enum


class QueryType(str, Enum):
    """CQL statement type enumeration.

    Categories:
    - DML: SELECT, INSERT, UPDATE, DELETE, TRUNCATE
    - DDL: CREATE_TABLE, DROP_TABLE, ALTER_TABLE, CREATE_INDEX,
           CREATE_CUSTOM_INDEX, DROP_INDEX, CREATE_MATERIALIZED_VIEW,
           DROP_MATERIALIZED_VIEW
    """

    # Data Query
    SELECT = "SELECT"

    # Data Manipulation (DML)
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    TRUNCATE = "TRUNCATE"

    # Data Definition (DDL) - Tables
    CREATE_TABLE = "CREATE_TABLE"
    DROP_TABLE = "DROP_TABLE"
    ALTER_TABLE = "ALTER_TABLE"

    # Data Definition (DDL) - Indexes
    CREATE_INDEX = "CREATE_INDEX"
    CREATE_CUSTOM_INDEX = "CREATE_CUSTOM_INDEX"
    DROP_INDEX = "DROP_INDEX"

    # Data Definition (DDL) - Materialized views
    CREATE_MATERIALIZED_VIEW = "CREATE_MATERIALIZED_VIEW"
    DROP_MATERIALIZED_VIEW = "DROP_MATERIALIZED_VIEW"


class AlterAction(str, Enum):
    """ALTER TABLE sub-commands."""

    ADD = "ADD"
    DROP = "DROP"
    ALTER = "ALTER"


# Predicate operators -> CQL operator token
QUERY_OPERATORS = {
    "$eq": "=",
    "$ne": "!=",
    "$isnt": "IS NOT",
    "$gt": ">",
    "$lt": "<",
    "$gte": ">=",
    "$lte": "<=",
    "$in": "IN",
    "$like": "LIKE",
    "$token": "token",
    "$contains": "CONTAINS",
    "$contains_key": "CONTAINS KEY",
}

# Meta keys recognised at the top level of a query mapping
SOLR_QUERY_KEY = "$solr_query"
INDEX_EXPR_KEY = "$expr"
ORDER_BY_KEY = "$orderby"
GROUP_BY_KEY = "$groupby"
LIMIT_KEY = "$limit"
PER_PARTITION_LIMIT_KEY = "$per_partition_limit"

QUERY_META_KEYS = frozenset(
    {SOLR_QUERY_KEY, INDEX_EXPR_KEY, ORDER_BY_KEY, GROUP_BY_KEY, LIMIT_KEY, PER_PARTITION_LIMIT_KEY}
)

ORDER_DIRECTIONS = {
    "$asc": "ASC",
    "$desc": "DESC",
}

# Collection mutation directives accepted by UPDATE
UPDATE_DIRECTIVES = frozenset({"$add", "$append", "$prepend", "$replace", "$remove"})

DB_FUNCTION_KEY = "$db_function"

# Provider error code reported when a prepared statement no longer matches
# the server-side table definition.
SCHEMA_MISMATCH_ERROR_CODE = 8704
