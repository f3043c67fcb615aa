"""Parameterized statement builders for the generic data operations.

Builders are pure functions: they take table/column identifiers and values
and return a Statement (text + positional parameters) ready for asyncpg.
Nothing here touches a connection.

Architecture:
    - One shared placeholder allocator (ParamList) mints every $N
    - Values always travel as parameters, never inside the SQL text
    - Identifiers (tables, columns) are trusted caller configuration
    - Malformed shapes raise ValueError before any I/O

Usage Examples:
    # Multi-row insert
    statement = build_insert_many("widgets", ["name", "qty"], [("a", 1), ("b", 2)])
    # INSERT INTO widgets (name, qty) VALUES ($1, $2), ($3, $4) RETURNING id

    # UPDATE with WHERE numbered after SET
    statement = build_update("widgets", {"qty": 5}, {"name": "a", "kind": "x"}, "AND")
    # UPDATE widgets SET qty = $1 WHERE name = $2 AND kind = $3 RETURNING id

    rows = await conn.fetch(statement.text, *statement.params)

Notes:
    - All builders use $1, $2, $3 placeholders (asyncpg format)
    - Statement unpacks like the (query, params) tuples used elsewhere
"""

import logging
from typing import Any, Iterable, List, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

ALL_COLUMNS = "*"
COMBINATORS = ("AND", "OR")

Columns = Union[Sequence[str], str]


class Statement(NamedTuple):
    """SQL text plus its positional parameters."""

    text: str
    params: Tuple[Any, ...]


class ParamList:
    """
    Allocator for positional placeholders.

    Each add() appends a value and returns the placeholder that refers to it,
    so clauses built one after another can never reuse a number.

    Example:
        params = ParamList()
        params.add("a")        # "$1"
        params.add_all([1, 2]) # ["$2", "$3"]
        params.values          # ("a", 1, 2)
    """

    def __init__(self):
        self._values: List[Any] = []

    def add(self, value: Any) -> str:
        self._values.append(value)
        return f"${len(self._values)}"

    def add_all(self, values: Iterable[Any]) -> List[str]:
        return [self.add(value) for value in values]

    @property
    def values(self) -> Tuple[Any, ...]:
        return tuple(self._values)

    def __len__(self) -> int:
        return len(self._values)


# ============================================================================
# CLAUSE HELPERS
# ============================================================================

def normalize_combinator(combinator: str) -> str:
    op = combinator.upper().strip()
    if op not in COMBINATORS:
        raise ValueError(f"Condition combinator must be AND or OR, got {combinator!r}")
    return op


def build_conditions(
    conditions: Optional[Mapping[str, Any]],
    params: ParamList,
    combinator: str = "AND",
) -> str:
    """
    Build `k1 = $n <op> k2 = $n+1 ...` for a condition map.

    Args:
        conditions: Column -> value map (None or empty yields "")
        params: Placeholder allocator shared with the rest of the statement
        combinator: "AND" or "OR"

    Returns:
        The condition expression without the WHERE keyword
    """
    op = normalize_combinator(combinator)
    if not conditions:
        return ""
    return f" {op} ".join(f"{key} = {params.add(value)}" for key, value in conditions.items())


def where_clause(expression: str) -> str:
    return f" WHERE {expression}" if expression else ""


def column_list(columns: Columns) -> str:
    if columns == ALL_COLUMNS or not columns:
        return ALL_COLUMNS
    if isinstance(columns, str):
        return columns
    return ", ".join(columns)


def returning_clause(returning: Optional[Sequence[str]]) -> str:
    return f" RETURNING {', '.join(returning)}" if returning else ""


def interval_seconds(value: Any, name: str) -> float:
    """Coerce a non-negative duration in seconds for make_interval()."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number of seconds, got {value!r}")
    if seconds < 0:
        raise ValueError(f"{name} must not be negative")
    return seconds


# ============================================================================
# INSERT
# ============================================================================

def build_insert_many(
    table: str,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    returning: Optional[Sequence[str]] = ("id",),
) -> Statement:
    """
    Build a single multi-row INSERT.

    Row i's placeholders start at i * len(columns) + 1.

    Raises:
        ValueError: No columns, no rows, or a row whose width differs from
            the number of columns
    """
    if not columns:
        raise ValueError("Please specify at least one column")
    if not rows:
        raise ValueError("Please specify at least one row")
    width = len(columns)
    if any(len(row) != width for row in rows):
        raise ValueError("Number of values does not match number of columns")

    params = ParamList()
    tuples = ", ".join(f"({', '.join(params.add_all(row))})" for row in rows)
    text = (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES {tuples}"
        + returning_clause(returning)
    )
    return Statement(text, params.values)


def build_insert_one(
    table: str,
    values: Mapping[str, Any],
    returning: Optional[Sequence[str]] = ("id",),
) -> Statement:
    if not values:
        raise ValueError("Insert values cannot be empty")
    return build_insert_many(table, list(values.keys()), [list(values.values())], returning)


# ============================================================================
# SELECT / UPDATE / DELETE
# ============================================================================

def build_select(
    table: str,
    columns: Columns = ALL_COLUMNS,
    conditions: Optional[Mapping[str, Any]] = None,
    combinator: str = "AND",
) -> Statement:
    """
    Build `SELECT <columns> FROM <table> [WHERE ...]`.

    An empty or missing condition map omits WHERE and selects every row.
    """
    params = ParamList()
    expression = build_conditions(conditions, params, combinator)
    text = f"SELECT {column_list(columns)} FROM {table}" + where_clause(expression)
    return Statement(text, params.values)


def build_update(
    table: str,
    values: Mapping[str, Any],
    conditions: Mapping[str, Any],
    combinator: str = "AND",
    returning: Optional[Sequence[str]] = ("id",),
) -> Statement:
    """
    Build `UPDATE <table> SET ... WHERE ... RETURNING id`.

    WHERE placeholders continue right after the last SET placeholder.

    Raises:
        ValueError: Empty SET map, or empty condition map (an unconditional
            update is never what a one-row update means)
    """
    if not values:
        raise ValueError("Update values cannot be empty")
    if not conditions:
        raise ValueError("Update conditions cannot be empty")

    params = ParamList()
    assignments = ", ".join(f"{key} = {params.add(value)}" for key, value in values.items())
    expression = build_conditions(conditions, params, combinator)
    text = (
        f"UPDATE {table} SET {assignments}"
        + where_clause(expression)
        + returning_clause(returning)
    )
    return Statement(text, params.values)


def build_delete(
    table: str,
    conditions: Optional[Mapping[str, Any]] = None,
    returning: Optional[Sequence[str]] = None,
) -> Statement:
    """Build `DELETE FROM <table> [WHERE k = $1 AND ...]`. No conditions deletes every row."""
    params = ParamList()
    expression = build_conditions(conditions, params, "AND")
    text = f"DELETE FROM {table}" + where_clause(expression) + returning_clause(returning)
    return Statement(text, params.values)


# ============================================================================
# UPSERT HELPERS
# ============================================================================

def build_upsert(
    table: str,
    values: Mapping[str, Any],
    conflict_columns: Sequence[str],
    update_columns: Sequence[str],
    returning: Optional[Sequence[str]] = ("id",),
) -> Statement:
    """
    Build an UPSERT (INSERT ... ON CONFLICT DO UPDATE).

    Example:
        build_upsert(
            "sessions",
            {"m_name": "bob", "m_ip": "1.2.3.4", "m_device": "d", "token": "t"},
            conflict_columns=["m_name", "m_ip", "m_device"],
            update_columns=["token"],
        )

        # INSERT INTO sessions (m_name, m_ip, m_device, token)
        # VALUES ($1, $2, $3, $4)
        # ON CONFLICT (m_name, m_ip, m_device) DO UPDATE SET token = EXCLUDED.token
        # RETURNING id

    Notes:
        - Uses EXCLUDED.column_name to reference the proposed values
        - No update columns turns the statement into ON CONFLICT DO NOTHING
    """
    if not values:
        raise ValueError("Upsert values cannot be empty")
    if not conflict_columns:
        raise ValueError("Conflict columns must be specified")

    params = ParamList()
    placeholders = ", ".join(params.add_all(values.values()))
    insert_clause = f"INSERT INTO {table} ({', '.join(values.keys())}) VALUES ({placeholders})"
    target = f"ON CONFLICT ({', '.join(conflict_columns)})"

    if update_columns:
        updates = ", ".join(f"{col} = EXCLUDED.{col}" for col in update_columns)
        action = f"DO UPDATE SET {updates}"
    else:
        action = "DO NOTHING"

    text = f"{insert_clause} {target} {action}" + returning_clause(returning)
    return Statement(text, params.values)


def build_replace_if_expired(
    table: str,
    values: Mapping[str, Any],
    deadline_seconds: float,
    conflict_column: str = "m_name",
    status_column: str = "m_status",
    inactive_status: Any = 0,
    created_column: str = "created_at",
    returning: Optional[Sequence[str]] = ("id",),
) -> Statement:
    """
    Build an upsert that only replaces an inactive row older than a deadline.

    On conflict with `conflict_column`, every other supplied column is taken
    from EXCLUDED and `created_column` is reset to NOW(), but only when the
    existing row has `status_column = inactive_status` and was created more
    than `deadline_seconds` ago. Otherwise no row is returned.

    Raises:
        ValueError: Empty values, missing conflict column, or a deadline
            that is negative or not a number
    """
    if not values:
        raise ValueError("Insert values cannot be empty")
    if conflict_column not in values:
        raise ValueError(f"Values must include the conflict column {conflict_column!r}")
    deadline = interval_seconds(deadline_seconds, "Deadline")

    params = ParamList()
    placeholders = ", ".join(params.add_all(values.values()))
    updates = [f"{col} = EXCLUDED.{col}" for col in values if col not in (conflict_column, created_column)]
    updates.append(f"{created_column} = NOW()")

    text = (
        f"INSERT INTO {table} ({', '.join(values.keys())}) VALUES ({placeholders})"
        f" ON CONFLICT ({conflict_column}) DO UPDATE SET {', '.join(updates)}"
        f" WHERE {table}.{status_column} = {params.add(inactive_status)}"
        f" AND {table}.{created_column} < NOW() - make_interval(secs => {params.add(deadline)})"
        + returning_clause(returning)
    )
    return Statement(text, params.values)
