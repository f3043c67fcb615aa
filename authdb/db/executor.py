"""Generic insert/select/update/delete/upsert operations returning Outcomes.

Each operation builds one parameterized Statement, runs it on a connection
and classifies the result. Callers inside a transaction pass its handle;
otherwise the executor leases a connection from the source and gives it back
on every exit path (success, empty result, exception).

Usage Examples:
    executor = QueryExecutor(source)

    result = await executor.insert_many("widgets", ["name", "qty"], [["a", 1], ["b", 2]])
    if result.ok:
        print(result.value.ids)

    member = await executor.select_one_or_fail("members", ["id", "m_name"], {"m_name": "bob"})

    async with TransactionController(source).transaction() as tx:
        await executor.insert_one("members", {"m_name": "bob"}, tx.handle)

Notes:
    - Public operations never raise; failures come back as Failure outcomes
    - Table and column names are trusted identifiers, values are parameters
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence

from authdb.db.outcome import (
    BadRequest,
    Conflict,
    Failure,
    NotFound,
    Outcome,
    Success,
    bad_request,
    classify_error,
)
from authdb.db.pool import ConnectionHandle, ConnectionSource
from authdb.db.query_builders import (
    ALL_COLUMNS,
    Columns,
    Statement,
    build_delete,
    build_insert_many,
    build_insert_one,
    build_replace_if_expired,
    build_select,
    build_update,
    build_upsert,
)

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


@dataclass(frozen=True)
class QueryResult:
    """Rows returned by a statement."""

    rows: List[Row] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def ids(self) -> List[Any]:
        return [row.get("id") for row in self.rows]

    @property
    def first(self) -> Optional[Row]:
        return self.rows[0] if self.rows else None


class AmbiguousUpdateError(Exception):
    """Internal signal to roll back an update that matched several rows."""

    def __init__(self, row_count: int):
        super().__init__(f"Update matched {row_count} rows, expected exactly one")
        self.row_count = row_count


def affected_rows(status: str) -> int:
    """Row count from an asyncpg status tag such as "DELETE 3"."""
    tail = status.rsplit(" ", 1)[-1] if status else ""
    return int(tail) if tail.isdigit() else 0


class QueryExecutor:
    """Runs generic statements against a table through a ConnectionSource."""

    def __init__(self, source: ConnectionSource):
        self._source = source

    @property
    def source(self) -> ConnectionSource:
        return self._source

    @asynccontextmanager
    async def borrow(self, handle: Optional[ConnectionHandle] = None) -> AsyncIterator[ConnectionHandle]:
        """
        Yield the caller's handle, or lease one for the duration of the block.

        A leased connection is released normally on success and discarded
        (force release) when the block raised.
        """
        if handle is not None:
            yield handle
            return

        leased = await self._source.acquire()
        try:
            yield leased
        except BaseException:
            await self._source.release(leased, force=True)
            raise
        await self._source.release(leased)

    async def _fetch(self, statement: Statement, handle: Optional[ConnectionHandle]) -> List[Row]:
        async with self.borrow(handle) as conn:
            return await conn.fetch(statement)

    # ========================================================================
    # INSERT
    # ========================================================================

    async def insert_many(
        self,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Sequence[Any]],
        handle: Optional[ConnectionHandle] = None,
        returning: Optional[Sequence[str]] = ("id",),
    ) -> Outcome[QueryResult]:
        """
        Insert several rows with one statement.

        Args:
            table: Target table
            columns: Column names, one per tuple position
            rows: Value tuples, each exactly len(columns) wide
            handle: Caller-owned connection (leased if None)
            returning: Columns to return for each inserted row

        Returns:
            Success(QueryResult) with one returned row per input row,
            BadRequest (1008 width mismatch, 1009 no rows, 1011 no columns),
            Conflict (1014) on a unique violation, InternalError (1017)
        """
        width = len(columns)
        if any(len(row) != width for row in rows):
            return BadRequest(1008, "Number of values does not match number of keys")
        if not width:
            return BadRequest(1011, "Please specify at least one key")
        if not rows:
            return BadRequest(1009, "Please specify at least one row")

        statement = build_insert_many(table, columns, rows, returning)
        try:
            result = await self._fetch(statement, handle)
        except Exception as e:
            return classify_error(e, internal_code=1017, conflict_code=1014)
        return Success(QueryResult(result))

    async def insert_one(
        self,
        table: str,
        values: Mapping[str, Any],
        handle: ConnectionHandle,
        returning: Optional[Sequence[str]] = ("id",),
    ) -> Outcome[QueryResult]:
        """
        Insert one row from a column -> value map on a caller-owned handle.

        There is no implicit pooling here: this is a step of a larger
        transactional flow, so the handle is required.
        """
        try:
            statement = build_insert_one(table, values, returning)
        except ValueError as e:
            return bad_request(e, 1019)

        try:
            result = await handle.fetch(statement)
        except Exception as e:
            return classify_error(e, internal_code=1023, conflict_code=1020)
        return Success(QueryResult(result))

    # ========================================================================
    # SELECT
    # ========================================================================

    async def _select(
        self,
        table: str,
        columns: Columns,
        conditions: Optional[Mapping[str, Any]],
        combinator: str,
        handle: Optional[ConnectionHandle],
        bad_request_code: int,
        internal_code: int,
    ):
        try:
            statement = build_select(table, columns, conditions, combinator)
        except ValueError as e:
            return bad_request(e, bad_request_code)

        try:
            return await self._fetch(statement, handle)
        except Exception as e:
            return classify_error(e, internal_code=internal_code)

    async def select_many(
        self,
        table: str,
        columns: Columns = ALL_COLUMNS,
        conditions: Optional[Mapping[str, Any]] = None,
        combinator: str = "AND",
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[QueryResult]:
        """All matching rows; an empty result is still a Success."""
        rows = await self._select(table, columns, conditions, combinator, handle, 1034, 1035)
        if isinstance(rows, Failure):
            return rows
        return Success(QueryResult(rows))

    async def select_one_optional(
        self,
        table: str,
        columns: Columns = ALL_COLUMNS,
        conditions: Optional[Mapping[str, Any]] = None,
        combinator: str = "AND",
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[Optional[Row]]:
        """First matching row, or Success(None) when nothing matches."""
        rows = await self._select(table, columns, conditions, combinator, handle, 1031, 1032)
        if isinstance(rows, Failure):
            return rows
        return Success(rows[0] if rows else None)

    async def select_one_or_fail(
        self,
        table: str,
        columns: Columns = ALL_COLUMNS,
        conditions: Optional[Mapping[str, Any]] = None,
        combinator: str = "AND",
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[Row]:
        """First matching row, or NotFound (1026) when nothing matches.

        Several matches are not an error: the first row is returned.
        """
        rows = await self._select(table, columns, conditions, combinator, handle, 1025, 1029)
        if isinstance(rows, Failure):
            return rows
        if not rows:
            return NotFound(1026, "No data found")
        return Success(rows[0])

    # ========================================================================
    # UPDATE / DELETE
    # ========================================================================

    async def update_one_or_fail(
        self,
        values: Mapping[str, Any],
        conditions: Mapping[str, Any],
        combinator: str,
        table: str,
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[QueryResult]:
        """
        Update exactly one row and return its id.

        Returns:
            Success(QueryResult) with the single updated id,
            BadRequest (1001) for empty maps or a bad combinator,
            NotFound (1002) when no row matched,
            Conflict (1003) when several rows matched (the update is rolled back),
            InternalError (1005)

        Notes:
            - Runs inside its own transaction, or a savepoint when the
              handle belongs to an open Transaction
        """
        try:
            statement = build_update(table, values, conditions, combinator)
        except ValueError as e:
            return bad_request(e, 1001)

        try:
            async with self.borrow(handle) as conn:
                async with conn.transaction():
                    rows = await conn.fetch(statement)
                    if len(rows) > 1:
                        raise AmbiguousUpdateError(len(rows))
        except AmbiguousUpdateError as e:
            logger.warning(f"[1003] {e} in {table}; rolled back")
            return Conflict(1003, str(e))
        except Exception as e:
            return classify_error(e, internal_code=1005)

        if not rows:
            return NotFound(1002, "No data found")
        return Success(QueryResult(rows))

    async def delete(
        self,
        conditions: Optional[Mapping[str, Any]],
        table: str,
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[int]:
        """
        Delete rows matching every condition (AND); returns the affected count.

        An empty condition map deletes every row in the table.
        """
        statement = build_delete(table, conditions)
        try:
            async with self.borrow(handle) as conn:
                status = await conn.execute(statement)
        except Exception as e:
            return classify_error(e, internal_code=1038)
        return Success(affected_rows(status))

    async def delete_or_fail(
        self,
        conditions: Optional[Mapping[str, Any]],
        table: str,
        handle: Optional[ConnectionHandle] = None,
        returning: Optional[Sequence[str]] = ("id",),
    ) -> Outcome[QueryResult]:
        """Delete like delete(), but NotFound (1039) unless at least one row went."""
        statement = build_delete(table, conditions, returning)
        try:
            rows = await self._fetch(statement, handle)
        except Exception as e:
            return classify_error(e, internal_code=1040)

        if not rows:
            return NotFound(1039, "No data found")
        return Success(QueryResult(rows))

    # ========================================================================
    # UPSERT
    # ========================================================================

    async def upsert_on_conflict(
        self,
        values: Mapping[str, Any],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
        table: str,
        handle: Optional[ConnectionHandle] = None,
        returning: Optional[Sequence[str]] = ("id",),
    ) -> Outcome[QueryResult]:
        """
        Insert, or update `update_columns` from the proposed row on conflict.

        Returns:
            Success(QueryResult), BadRequest (1060), Conflict (1062) when a
            different unique constraint is violated, InternalError (1061)
        """
        try:
            statement = build_upsert(table, values, conflict_columns, update_columns, returning)
        except ValueError as e:
            return bad_request(e, 1060)

        try:
            rows = await self._fetch(statement, handle)
        except Exception as e:
            return classify_error(e, internal_code=1061, conflict_code=1062)
        return Success(QueryResult(rows))

    async def replace_if_expired(
        self,
        values: Mapping[str, Any],
        table: str,
        deadline_seconds: float,
        handle: ConnectionHandle,
        conflict_column: str = "m_name",
        status_column: str = "m_status",
        inactive_status: Any = 0,
        created_column: str = "created_at",
    ) -> Outcome[QueryResult]:
        """
        Insert a row, or take over an existing one that has gone stale.

        The existing row (same `conflict_column`) is replaced only when its
        status is inactive and it is older than `deadline_seconds`. When the
        row is still active or too young nothing changes and Conflict (1041)
        is returned.

        Returns:
            Success(QueryResult), BadRequest (1042), Conflict (1041 occupied,
            1044 unique violation elsewhere), InternalError (1047)
        """
        try:
            statement = build_replace_if_expired(
                table,
                values,
                deadline_seconds,
                conflict_column=conflict_column,
                status_column=status_column,
                inactive_status=inactive_status,
                created_column=created_column,
            )
        except ValueError as e:
            return bad_request(e, 1042)

        try:
            rows = await handle.fetch(statement)
        except Exception as e:
            return classify_error(e, internal_code=1047, conflict_code=1044)

        if not rows:
            return Conflict(1041, "Occupied and not yet expired")
        return Success(QueryResult(rows))
