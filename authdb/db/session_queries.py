"""Session lookups and session upserts for the authentication flow.

Two composite operations on top of QueryExecutor:

    lookup_member_by_session   member row for a live session, or Unauthorized
    upsert_session_record      insert-or-refresh a member's session row

Table names come from an immutable TableNameConfig passed to the
constructor. Column names of the session and member tables are fixed:

    sessions: m_name, token, m_device, m_ip, created_time
    members:  m_name (joined on), anything else the caller asks for
"""

import logging
import re
from typing import Any, Mapping, Optional, Sequence, Union

from authdb.config import TableNameConfig
from authdb.db.executor import QueryExecutor, QueryResult, Row
from authdb.db.outcome import Outcome, Success, Unauthorized, bad_request, classify_error
from authdb.db.pool import ConnectionHandle
from authdb.db.query_builders import ALL_COLUMNS, ParamList, Statement, interval_seconds

logger = logging.getLogger(__name__)

_MEMBER_ALIAS_RE = re.compile(r"^members\.")


def qualify_member_columns(columns: Sequence[str], members_table: str) -> list:
    """Rewrite the generic `members.` prefix to the configured members table."""
    return [_MEMBER_ALIAS_RE.sub(f"{members_table}.", column) for column in columns]


def build_member_session_lookup(
    tables: TableNameConfig,
    token: str,
    max_age_seconds: float,
    device: str,
    ip: str,
    columns: Union[Sequence[str], str] = ALL_COLUMNS,
) -> Statement:
    """
    Build the member-by-session query.

    A CTE picks the session matching token, device and ip that was created
    within the last `max_age_seconds`, then joins it to the members table on
    m_name. Explicit column lists (or a single column name) also get
    sub_query.created_time.

    Raises:
        ValueError: max_age_seconds is negative or not a number
    """
    if columns == ALL_COLUMNS or not columns:
        projection = ALL_COLUMNS
    else:
        if isinstance(columns, str):
            columns = [columns]
        projection = ", ".join(
            ["sub_query.created_time"] + qualify_member_columns(columns, tables.members)
        )

    max_age = interval_seconds(max_age_seconds, "Session max age")
    sessions, members = tables.sessions, tables.members
    params = ParamList()
    text = f"""
      WITH sub_query AS (
        SELECT {sessions}.m_name, {sessions}.created_time
        FROM {sessions}
        WHERE token = {params.add(token)}
        AND created_time > NOW() - make_interval(secs => {params.add(max_age)})
        AND m_device = {params.add(device)}
        AND m_ip = {params.add(ip)}
      )
      SELECT {projection}
      FROM {members}
      JOIN sub_query
      ON {members}.m_name = sub_query.m_name"""
    return Statement(text, params.values)


class SessionAuthQueries:
    """Session-specific queries bound to a table-name configuration."""

    def __init__(self, executor: QueryExecutor, tables: Optional[TableNameConfig] = None):
        self._executor = executor
        self.tables = tables or TableNameConfig()

    async def lookup_member_by_session(
        self,
        token: str,
        max_age_seconds: float,
        device: str,
        ip: str,
        columns: Union[Sequence[str], str] = ALL_COLUMNS,
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[Row]:
        """
        Find the member owning a live session.

        Args:
            token: Session token
            max_age_seconds: Sessions created longer ago than this are ignored
            device: Device identifier the session was issued to
            ip: Client address the session was issued to
            columns: "*" or column names; `members.x` is rewritten to the
                configured members table
            handle: Caller-owned connection (leased if None)

        Returns:
            Success(row), BadRequest (1051) for a bad max_age_seconds,
            Unauthorized (1050) when no live session matches,
            InternalError (1058)
        """
        try:
            statement = build_member_session_lookup(
                self.tables, token, max_age_seconds, device, ip, columns
            )
        except ValueError as e:
            return bad_request(e, 1051)

        try:
            async with self._executor.borrow(handle) as conn:
                rows = await conn.fetch(statement)
        except Exception as e:
            return classify_error(e, internal_code=1058)

        # Really "not found", but to the caller that is an authorization failure
        if not rows:
            return Unauthorized(1050, "No valid session")
        return Success(rows[0])

    async def upsert_session_record(
        self,
        values: Mapping[str, Any],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
        table: Optional[str] = None,
        handle: Optional[ConnectionHandle] = None,
    ) -> Outcome[QueryResult]:
        """
        Insert a session row or refresh the existing one.

        Example:
            await queries.upsert_session_record(
                {"m_name": "bob", "m_ip": ip, "m_device": device, "token": token},
                conflict_columns=["m_name", "m_ip", "m_device"],
                update_columns=["token", "created_time"],
            )
        """
        return await self._executor.upsert_on_conflict(
            values,
            conflict_columns,
            update_columns,
            table or self.tables.sessions,
            handle,
            returning=None,
        )
