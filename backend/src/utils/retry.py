"""
Retry helper for transient directory store failures.

Infrastructure errors are retried once with a short backoff; the session is
rolled back first so the retry starts from a clean transaction. Business
errors (HTTPException subclasses) and integrity errors are never retried.
Only the outermost decorated call retries; decorated operations it calls
run once and let the error reach it.
"""

import functools
import logging
import time
from contextvars import ContextVar
from typing import Any, Callable, Optional, TypeVar, cast

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session

from core.config import STORE_RETRY_BASE_DELAY_SECONDS
from core.database import is_statement_timeout

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_retry_active: ContextVar[bool] = ContextVar("store_retry_active", default=False)


def _is_transient(error: DBAPIError) -> bool:
    if isinstance(error, IntegrityError):
        return False
    if is_statement_timeout(error):
        # The deadline already expired; retrying would only extend it
        return False
    return isinstance(error, OperationalError) or bool(getattr(error, "connection_invalidated", False))


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Optional[Session]:
    candidate = kwargs.get("db")
    if isinstance(candidate, Session):
        return candidate
    for arg in args:
        if isinstance(arg, Session):
            return arg
    return None


def retry_on_store_error(max_retries: int = 1, base_delay: Optional[float] = None) -> Callable[[F], F]:
    """
    Decorator to retry a store operation after a transient failure.

    Args:
        max_retries: Number of retries after the first attempt
        base_delay: Base delay in seconds (exponential backoff); defaults to config
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            if _retry_active.get():
                return func(*args, **kwargs)

            delay_base = STORE_RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay
            for attempt in range(max_retries + 1):
                token = _retry_active.set(True)
                try:
                    return func(*args, **kwargs)
                except DBAPIError as e:
                    if not _is_transient(e) or attempt >= max_retries:
                        raise
                    session = _find_session(args, kwargs)
                    if session is not None:
                        session.rollback()
                    delay = delay_base * (2 ** attempt)
                    logger.warning(
                        f"Transient store error in {getattr(func, '__name__', 'unknown')} "
                        f"(attempt {attempt + 1}/{max_retries + 1}), retrying in {delay:.2f} seconds: {e}"
                    )
                    time.sleep(delay)
                finally:
                    _retry_active.reset(token)
            raise RuntimeError("unreachable")  # pragma: no cover
        return cast(F, wrapper)
    return decorator
