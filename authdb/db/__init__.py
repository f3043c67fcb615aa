"""Database access layer for authdb.

Main exports:
- ConnectionSource / ConnectionHandle: pooled connections (asyncpg)
- init_pool / get_pool / close_pool: optional global source
- TransactionController / Transaction: BEGIN ... COMMIT/ROLLBACK ownership
- QueryExecutor: generic insert/select/update/delete/upsert operations
- SessionAuthQueries: session lookup and session upsert
- Success / BadRequest / Unauthorized / NotFound / Conflict / InternalError

Statement builders live in authdb.db.query_builders for callers that want
the SQL without running it.
"""

from .pool import (
    ConnectionHandle,
    ConnectionSource,
    DatabaseConfig,
    check_pool_health,
    close_pool,
    get_pool,
    init_pool,
)
from .outcome import (
    BadRequest,
    Conflict,
    Failure,
    InternalError,
    NotFound,
    Outcome,
    Success,
    Unauthorized,
)
from .query_builders import ParamList, Statement
from .transaction import Transaction, TransactionController
from .executor import QueryExecutor, QueryResult
from .session_queries import SessionAuthQueries

__all__ = [
    # Connections
    "ConnectionHandle",
    "ConnectionSource",
    "DatabaseConfig",
    "check_pool_health",
    "close_pool",
    "get_pool",
    "init_pool",
    # Outcomes
    "BadRequest",
    "Conflict",
    "Failure",
    "InternalError",
    "NotFound",
    "Outcome",
    "Success",
    "Unauthorized",
    # Statements
    "ParamList",
    "Statement",
    # Operations
    "Transaction",
    "TransactionController",
    "QueryExecutor",
    "QueryResult",
    "SessionAuthQueries",
]
