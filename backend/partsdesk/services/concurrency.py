# Overview: Write-boundary helpers: retry on lock conflicts and map storage failures to domain errors.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DashboardError, PermissionDenied, StorageUnavailable, ValidationError
from ..extensions import db

logger = logging.getLogger(__name__)

_LOCK_MARKERS = ("database is locked", "deadlock", "lock wait timeout", "could not serialize")
_PERMISSION_MARKERS = (
    "readonly database",
    "read-only",
    "permission denied",
    "insufficient privilege",
    "access denied",
)


def _message(exc: BaseException) -> str:
    return str(getattr(exc, "orig", None) or exc).lower()


def is_lock_conflict(exc: BaseException) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    return isinstance(exc, OperationalError) and any(m in _message(exc) for m in _LOCK_MARKERS)


def is_permission_error(exc: BaseException) -> bool:
    return isinstance(exc, DBAPIError) and any(m in _message(exc) for m in _PERMISSION_MARKERS)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries lock/deadlock OperationalErrors and StaleDataError
    (optimistic locking conflicts). Anything else propagates immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if not is_lock_conflict(exc):
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


@contextmanager
def storage_errors(*, operation: str, collection: str, path: str | None = None, payload: dict | None = None):
    """
    Roll back and translate storage failures raised inside the block.

    - PermissionDenied is logged with the full operation context.
    - Constraint violations become ValidationError.
    - Connection/lock failures become StorageUnavailable.
    """
    try:
        yield
    except DashboardError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        if is_permission_error(exc):
            denied = PermissionDenied(
                operation=operation,
                collection=collection,
                path=path or collection,
                payload=payload,
            )
            logger.error("Data store denied %s: %s", operation, denied.context(), exc_info=exc)
            raise denied from exc
        if isinstance(exc, IntegrityError):
            raise ValidationError("The data violates a storage constraint.") from exc
        if isinstance(exc, (OperationalError, InterfaceError, StaleDataError)):
            logger.warning("Data store unavailable during %s on %s", operation, path or collection)
            raise StorageUnavailable("The data store is not reachable. Please try again.") from exc
        raise
    except Exception:
        db.session.rollback()
        raise
