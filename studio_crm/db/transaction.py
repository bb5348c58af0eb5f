from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from studio_crm.core.app_logger import get_logger
from studio_crm.core.exceptions import ConflictError, TransientStorageError

logger = get_logger("db")


@asynccontextmanager
async def atomic(db: AsyncSession, conflict_message: str = "Conflicting data") -> AsyncIterator[AsyncSession]:
    """Commit everything written inside the block, or nothing.

    IntegrityError becomes ConflictError; connection-level failures become
    TransientStorageError so callers know the whole call can be retried.
    """
    try:
        yield db
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(conflict_message)
    except OperationalError as exc:
        await db.rollback()
        logger.warning("Storage failure, transaction rolled back: %s", exc)
        raise TransientStorageError()
    except DBAPIError as exc:
        await db.rollback()
        if exc.connection_invalidated:
            logger.warning("Connection invalidated, transaction rolled back: %s", exc)
            raise TransientStorageError()
        raise
    except BaseException:
        await db.rollback()
        raise
