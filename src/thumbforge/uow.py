"""Transaction management for thumbforge.

Runs a unit of work against a single database session with all-or-nothing commit.
"""

from typing import Awaitable, Callable, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from thumbforge.core.errors import BaseError, DatabaseError, exception_detail
from thumbforge.core.result import Result

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TransactionCallback = Callable[[AsyncSession], Awaitable[Result[T, BaseError]]]


class TransactionManager:
    """Runs callbacks inside one database transaction.

    The callback receives the transactional session and passes it as ``tx`` to
    repository methods. Outcome:

    - Callback returns Ok: commit, return the Ok
    - Callback returns Err: rollback, return the Err
    - Callback raises: rollback, re-raise (non-BaseError exceptions are wrapped
      in DatabaseError)

    Example:
        async def rename(tx):
            found = await repo.find_by_id(thumbnail_id, tx=tx)
            if found.is_err():
                return found
            return await repo.update_status(thumbnail_id, status, tx=tx)

        result = await transactions.run_in_transaction(rename)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize manager with database session factory.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self.session_factory = session_factory

    async def run_in_transaction(self, callback: TransactionCallback[T]) -> Result[T, BaseError]:
        """Execute callback in a transaction.

        Args:
            callback: Async callable taking the transactional session and returning a Result

        Returns:
            The callback's Result

        Raises:
            BaseError: If the callback or the commit raises
        """
        async with self.session_factory() as session:
            try:
                result = await callback(session)
                if result.is_err():
                    await session.rollback()
                    logger.info(
                        "transaction.rolled_back",
                        reason="error_result",
                        error=result.error.name,
                    )
                    return result

                await session.commit()
                logger.info("transaction.committed")
                return result
            except BaseError as e:
                await session.rollback()
                logger.error("transaction.rolled_back", reason="exception", error=e.name)
                raise
            except Exception as e:
                await session.rollback()
                logger.error(
                    "transaction.failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise DatabaseError("Transaction failed", exception_detail(e)) from e
