"""CQL generation.

``CQLQueryBuilder`` turns operations into ``CompiledStatement`` objects
using the value and predicate compilers. Nothing in this package
executes statements.
"""

from cqlflow.query_builder.base import BaseQueryBuilder, CompiledStatement, quote_identifier, quote_string
from cqlflow.query_builder.cql_builder import CQLQueryBuilder
from cqlflow.query_builder.predicates import Predicate, PredicateCompiler
from cqlflow.query_builder.values import ValueExpression, ValueExpressionCompiler

__all__ = [
    "BaseQueryBuilder",
    "CQLQueryBuilder",
    "CompiledStatement",
    "Predicate",
    "PredicateCompiler",
    "ValueExpression",
    "ValueExpressionCompiler",
    "quote_identifier",
    "quote_string",
]
