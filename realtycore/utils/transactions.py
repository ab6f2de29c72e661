"""
Transactional retry for check-then-act sequences.

The whole operation (lock, read, decide, write) is re-run from scratch on a
storage conflict; a partially applied attempt is always rolled back first.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from realtycore.utils.errors import StorageConflict, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_CONFLICT_ATTEMPTS = 3
CONFLICT_RETRY_DELAY_SECONDS = 0.05

# PostgreSQL: serialization_failure, deadlock_detected
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})
UNIQUE_VIOLATION_SQLSTATE = "23505"


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    """SQLSTATE of the driver error (asyncpg and psycopg expose one of these)."""
    for source in (exc.orig, getattr(exc.orig, "__cause__", None)):
        for attr in ("sqlstate", "pgcode"):
            code = getattr(source, attr, None)
            if isinstance(code, str):
                return code
    return None


def is_conflict(exc: BaseException) -> bool:
    """
    True for errors worth re-running the whole transaction for: lock
    contention, deadlocks, serialization failures and unique violations from
    racing inserts. Other integrity errors (NOT NULL, foreign keys, checks)
    fail the same way every time and are not conflicts.
    """
    if isinstance(exc, StorageConflict):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    code = _sqlstate(exc)
    if isinstance(exc, IntegrityError):
        if code is not None:
            return code == UNIQUE_VIOLATION_SQLSTATE
        return "UNIQUE constraint failed" in str(exc.orig)
    if code in TRANSIENT_SQLSTATES:
        return True
    return isinstance(exc, OperationalError)


async def run_in_transaction(
    db: AsyncSession,
    operation: Callable[[AsyncSession], Awaitable[T]],
    label: str,
    max_attempts: int = MAX_CONFLICT_ATTEMPTS,
) -> T:
    """
    Run operation(db) and commit. Conflicts (see is_conflict) trigger rollback
    and a full retry; an operation can ask for a retry by raising
    StorageConflict. Any other database error is wrapped in StorageError.
    Non-database exceptions roll back and propagate unchanged.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation(db)
            await db.commit()
            return result
        except (SQLAlchemyError, StorageConflict) as e:
            await db.rollback()
            if not is_conflict(e):
                logger.error("Storage error in %s: %s", label, str(e)[:200])
                raise StorageError(f"{label} failed: {e.__class__.__name__}") from e
            logger.warning(
                "Storage conflict in %s (attempt %d/%d): %s",
                label, attempt, max_attempts, str(getattr(e, "orig", None) or e)[:200],
                extra={"error_code": "storage_conflict"},
            )
            if attempt == max_attempts:
                raise StorageConflict(
                    f"{label} failed after {max_attempts} attempts"
                ) from e
            await asyncio.sleep(CONFLICT_RETRY_DELAY_SECONDS * attempt)
        except Exception:
            await db.rollback()
            raise

    # Unreachable: the loop either returns or raises
    raise StorageConflict(f"{label} failed after {max_attempts} attempts")
