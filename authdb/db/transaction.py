"""Transactions that own one pooled connection from BEGIN to COMMIT/ROLLBACK.

Usage Examples:
    controller = TransactionController(source)

    # Scoped: commits on success, rolls back on any exception
    async with controller.transaction() as tx:
        await executor.insert_one("members", {"m_name": "bob"}, tx.handle)
        await executor.update_one_or_fail({"m_status": 1}, {"m_name": "bob"}, "AND", "members", tx.handle)

    # Manual: every begin must end in exactly one commit or rollback
    began = await controller.begin_transaction()
    if not began.ok:
        return began
    tx = began.value
    result = await executor.insert_one("members", values, tx.handle)
    if result.ok:
        await controller.commit(tx)
    else:
        await controller.rollback(tx)

Notes:
    - After commit/rollback, tx.handle raises HandleReleasedError
    - Nested transactions are not supported
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from authdb.db.outcome import InternalError, Outcome, Success, describe, error_detail
from authdb.db.pool import ConnectionHandle, ConnectionSource
from authdb.errors import HandleReleasedError, TransactionError

logger = logging.getLogger(__name__)


class Transaction:
    """An open transaction and the handle it exclusively owns."""

    def __init__(self, handle: ConnectionHandle, driver_transaction: Any):
        self._handle: Optional[ConnectionHandle] = handle
        self._driver_transaction = driver_transaction

    @property
    def finished(self) -> bool:
        return self._handle is None

    @property
    def handle(self) -> ConnectionHandle:
        if self._handle is None:
            raise HandleReleasedError("Transaction already committed or rolled back")
        return self._handle

    def _close(self):
        handle, driver_transaction = self._handle, self._driver_transaction
        self._handle = None
        self._driver_transaction = None
        return handle, driver_transaction

    def __repr__(self) -> str:
        return f"Transaction(finished={self.finished})"


class TransactionController:
    """Begin/commit/rollback on connections leased from a ConnectionSource."""

    def __init__(self, source: ConnectionSource):
        self._source = source

    async def begin_transaction(self) -> Outcome[Transaction]:
        """Acquire a connection and issue BEGIN."""
        try:
            handle = await self._source.acquire()
        except Exception as e:
            logger.error(f"[1070] could not acquire connection for transaction: {e}", exc_info=True)
            return InternalError(1070, error_detail(e))

        try:
            driver_transaction = handle.transaction()
            await driver_transaction.start()
        except Exception as e:
            logger.error(f"[1070] BEGIN failed: {e}", exc_info=True)
            await self._release_quietly(handle, True)
            return InternalError(1070, error_detail(e))

        return Success(Transaction(handle, driver_transaction))

    async def commit(self, tx: Transaction, force: Optional[bool] = None) -> Outcome[None]:
        """Issue COMMIT and release the handle."""
        return await self._finish(tx, "commit", 1073, force)

    async def rollback(self, tx: Transaction, force: Optional[bool] = None) -> Outcome[None]:
        """Issue ROLLBACK and release the handle."""
        return await self._finish(tx, "rollback", 1076, force)

    async def _finish(self, tx: Transaction, action: str, code: int, force: Optional[bool]) -> Outcome[None]:
        if tx.finished:
            logger.error(f"[1079] {action} on a finished transaction")
            return InternalError(1079, f"Cannot {action}: transaction already finished")

        handle, driver_transaction = tx._close()
        try:
            await getattr(driver_transaction, action)()
        except Exception as e:
            logger.error(f"[{code}] {action.upper()} failed: {e}", exc_info=True)
            # Connection state is unknown after a failed terminal statement
            await self._release_quietly(handle, True)
            return InternalError(code, error_detail(e))

        await self._release_quietly(handle, force)
        return Success(None)

    async def _release_quietly(self, handle: ConnectionHandle, force: Optional[bool]) -> None:
        try:
            await self._source.release(handle, force)
        except Exception as e:
            logger.error(f"Error releasing transaction connection: {e}", exc_info=True)

    @asynccontextmanager
    async def transaction(self, force: Optional[bool] = None) -> AsyncIterator[Transaction]:
        """
        Scoped transaction.

        Yields:
            Transaction: Use tx.handle with QueryExecutor operations

        Raises:
            TransactionError: BEGIN or COMMIT failed
            Exception: Anything raised inside the block, after rollback

        Notes:
            - Commits on normal exit, rolls back on exception
            - If the block commits or rolls back itself, exit does nothing
        """
        began = await self.begin_transaction()
        if not began.ok:
            raise TransactionError(began)
        tx = began.value

        try:
            yield tx
        except BaseException:
            if not tx.finished:
                rolled_back = await self.rollback(tx, force)
                logger.warning(f"Transaction rolled back after error: {describe(rolled_back)}")
            raise

        if not tx.finished:
            committed = await self.commit(tx, force)
            if not committed.ok:
                raise TransactionError(committed)
