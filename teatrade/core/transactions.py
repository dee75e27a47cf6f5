"""
Transaction retry helper

Runs a unit of work inside a database transaction and retries it when the
database reports a transient conflict (serialization failure or deadlock).
Uniqueness violations and every other error are propagated on the first
attempt.
"""
import enum
import logging
import time
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATE codes
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
UNIQUE_VIOLATION = "23505"

TRANSIENT_SQLSTATES = frozenset({SERIALIZATION_FAILURE, DEADLOCK_DETECTED})

RETRY_BASE_DELAY_SECONDS = 0.1


class ErrorClass(str, enum.Enum):
    """How the retry loop treats a failed attempt"""
    TRANSIENT = "transient"
    CONFLICT = "conflict"
    OTHER = "other"


class TransactionRetryError(Exception):
    """Every attempt failed with a transient conflict"""

    def __init__(self, attempts: int, last_error: Optional[BaseException]):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Transaction failed after {attempts} attempts: {last_error}")


def _sqlstate(error: BaseException) -> Optional[str]:
    orig = getattr(error, "orig", None)
    if orig is None:
        return None
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def classify_error(error: BaseException) -> ErrorClass:
    """
    Classify a failed transaction attempt.

    Returns:
        ErrorClass.TRANSIENT for serialization failures and deadlocks,
        ErrorClass.CONFLICT for uniqueness violations,
        ErrorClass.OTHER for anything else
    """
    if not isinstance(error, DBAPIError):
        return ErrorClass.OTHER

    code = _sqlstate(error)
    if code in TRANSIENT_SQLSTATES:
        return ErrorClass.TRANSIENT
    if code == UNIQUE_VIOLATION:
        return ErrorClass.CONFLICT

    # SQLite has no SQLSTATE; fall back to its messages
    message = str(error.orig).lower()
    if isinstance(error, IntegrityError) and "unique constraint failed" in message:
        return ErrorClass.CONFLICT
    if isinstance(error, OperationalError) and ("database is locked" in message or "deadlock" in message):
        return ErrorClass.TRANSIENT

    return ErrorClass.OTHER


def retry_transaction(
    operation: Callable[[Session], T],
    max_retries: int = 3,
    session_factory: Optional[Callable[[], Session]] = None,
    session: Optional[Session] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute ``operation`` in a transaction, retrying transient conflicts.

    Args:
        operation: Callable receiving the session to work with
        max_retries: Maximum number of attempts (default: 3)
        session_factory: Builds a fresh session for each attempt
        session: Session already inside a caller-owned transaction. When
            given, ``operation`` runs in it directly, without retry and
            without opening a new transaction
        sleep: Delay function, ``0.1s * attempt`` between attempts

    Returns:
        Whatever ``operation`` returns

    Raises:
        TransactionRetryError: all attempts hit a transient conflict
        Exception: uniqueness violations and other errors, unchanged

    Example:
        shipment = retry_transaction(
            lambda tx: create_shipment(tx, payload),
            session_factory=database.session_factory,
        )
    """
    if session is not None:
        return operation(session)

    if session_factory is None:
        raise ValueError("session_factory is required when no session is supplied")
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    last_error: Optional[BaseException] = None

    for attempt in range(1, max_retries + 1):
        tx = session_factory()
        try:
            with tx.begin():
                return operation(tx)

        except Exception as e:
            error_class = classify_error(e)

            if error_class is ErrorClass.TRANSIENT:
                last_error = e
                logger.warning(
                    f"Transaction conflict on attempt {attempt}/{max_retries}, retrying...",
                    extra={"meta": {"attempt": attempt, "error": str(e)}},
                )
                if attempt < max_retries:
                    sleep(RETRY_BASE_DELAY_SECONDS * attempt)
                continue

            if error_class is ErrorClass.CONFLICT:
                logger.error(f"Unique constraint violation, aborting retries: {e}")
            raise

        finally:
            tx.close()

    logger.error(f"All {max_retries} transaction attempts failed")
    raise TransactionRetryError(max_retries, last_error) from last_error
