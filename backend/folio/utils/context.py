# backend/folio/utils/context.py
"""
Request-scoped values that the logging filter stamps on every record.

- correlation_id: set once per HTTP request by CorrelationIdMiddleware
- position_ids: the positions whose write lock is currently held, set by
  LedgerStore.position_locks() so every log line of a ledger write names
  the positions it touches

Both live in ContextVars and therefore follow the request through the
threadpool FastAPI runs sync endpoints in.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_position_ids: ContextVar[tuple[int, ...]] = ContextVar("position_ids", default=())


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def clear_correlation_id() -> None:
    _correlation_id.set(None)


def get_position_ids() -> tuple[int, ...]:
    """Positions locked by the current ledger write, empty outside one."""
    return _position_ids.get()


@contextmanager
def position_scope(position_ids: Iterable[int]) -> Iterator[tuple[int, ...]]:
    """
    Mark the positions a block of code is writing to.

    Scopes nest; the previous value is restored on exit.
    """
    scoped = tuple(sorted(set(position_ids)))
    token = _position_ids.set(scoped)
    try:
        yield scoped
    finally:
        _position_ids.reset(token)
