"""In-memory stand-ins for an asyncpg pool and its connections.

FakePool counts acquire/release calls so tests can check that every leased
connection goes back, and FakeConnection records every statement it runs.

Example:
    pool = FakePool()
    pool.connection.queue_fetch([{"id": 1}])
    pool.connection.queue_fetch(FakePostgresError("boom"))
    source = ConnectionSource(pool)
"""

from typing import Any, List, Optional, Tuple


class FakePostgresError(Exception):
    """Exception shaped like asyncpg.PostgresError (sqlstate + detail)."""

    def __init__(self, message: str, sqlstate: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(message)
        self.sqlstate = sqlstate
        self.detail = detail


def unique_violation(detail: str = "Key (m_name)=(bob) already exists.") -> FakePostgresError:
    return FakePostgresError("duplicate key value", sqlstate="23505", detail=detail)


class FakeTransaction:
    """Mimics asyncpg's Transaction: start/commit/rollback or async with."""

    def __init__(self, connection: "FakeConnection"):
        self.connection = connection

    async def start(self):
        self.connection.events.append("start")
        if self.connection.fail_on == "start":
            raise FakePostgresError("could not begin")

    async def commit(self):
        self.connection.events.append("commit")
        if self.connection.fail_on == "commit":
            raise FakePostgresError("could not commit")

    async def rollback(self):
        self.connection.events.append("rollback")
        if self.connection.fail_on == "rollback":
            raise FakePostgresError("could not roll back")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()
        return False


class FakeConnection:
    """Scripted connection: fetch() pops queued results in order."""

    def __init__(self):
        self.statements: List[Tuple[str, Tuple[Any, ...]]] = []
        self.events: List[str] = []
        self.fetch_queue: List[Any] = []
        self.execute_queue: List[Any] = []
        self.fail_on: Optional[str] = None
        self.terminated = False

    def queue_fetch(self, result: Any) -> None:
        """Queue rows (list of dicts) or an exception for the next fetch()."""
        self.fetch_queue.append(result)

    def queue_execute(self, result: Any) -> None:
        """Queue a status tag or an exception for the next execute()."""
        self.execute_queue.append(result)

    @staticmethod
    def _next(queue: List[Any], default: Any) -> Any:
        result = queue.pop(0) if queue else default
        if isinstance(result, BaseException):
            raise result
        return result

    async def fetch(self, text: str, *params: Any):
        self.statements.append((text, params))
        return self._next(self.fetch_queue, [])

    async def execute(self, text: str, *params: Any) -> str:
        self.statements.append((text, params))
        return self._next(self.execute_queue, "OK")

    async def fetchval(self, text: str, *params: Any):
        self.statements.append((text, params))
        return "PostgreSQL 16.2, compiled by gcc"

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    def terminate(self) -> None:
        self.terminated = True

    @property
    def last_statement(self) -> Tuple[str, Tuple[Any, ...]]:
        return self.statements[-1]


class FakeAcquireContext:
    """Awaitable and async-context-manager, like asyncpg's PoolAcquireContext."""

    def __init__(self, pool: "FakePool", timeout: Optional[float]):
        self.pool = pool
        self.timeout = timeout
        self.connection = None

    def __await__(self):
        return self.pool._acquire(self.timeout).__await__()

    async def __aenter__(self):
        self.connection = await self.pool._acquire(self.timeout)
        return self.connection

    async def __aexit__(self, exc_type, exc, tb):
        await self.pool.release(self.connection)
        return False


class FakePool:
    """Counts leases; every acquire hands out the same scripted connection."""

    def __init__(self, connection: Optional[FakeConnection] = None):
        self.connection = connection or FakeConnection()
        self.acquire_count = 0
        self.release_count = 0
        self.acquire_error: Optional[BaseException] = None
        self.close_error: Optional[BaseException] = None
        self.release_error: Optional[BaseException] = None
        self.closed = False
        self.timeouts: List[Optional[float]] = []

    def acquire(self, timeout: Optional[float] = None) -> FakeAcquireContext:
        return FakeAcquireContext(self, timeout)

    async def _acquire(self, timeout: Optional[float]) -> FakeConnection:
        self.timeouts.append(timeout)
        if self.acquire_error is not None:
            raise self.acquire_error
        self.acquire_count += 1
        return self.connection

    async def release(self, connection: FakeConnection) -> None:
        if self.release_error is not None:
            raise self.release_error
        self.release_count += 1

    async def close(self) -> None:
        if self.close_error is not None:
            raise self.close_error
        self.closed = True

    def get_size(self) -> int:
        return 4

    def get_idle_size(self) -> int:
        return 3

    @property
    def balanced(self) -> bool:
        return self.acquire_count == self.release_count
