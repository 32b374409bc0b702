"""
Per-task record of the open database session.

A write transaction and a read transaction are tracked separately so that a
readonly lookup made while a write is in flight never borrows the write
connection by accident. ``@readonly`` pins a whole call chain to the read
side, which is how usage reports stay off the primary.
"""

from contextvars import ContextVar, Token
from functools import wraps
from typing import Callable, Optional, ParamSpec, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

P = ParamSpec("P")
T = TypeVar("T")

_sessions: dict[bool, ContextVar[Optional[AsyncSession]]] = {
    False: ContextVar("billing_write_session", default=None),
    True: ContextVar("billing_read_session", default=None),
}

_force_readonly: ContextVar[bool] = ContextVar("billing_force_readonly", default=False)


def is_readonly_forced() -> bool:
    return _force_readonly.get()


def get_current_session(readonly: bool = False) -> Optional[AsyncSession]:
    """Session of the enclosing transaction, or None outside of one.

    Under ``@readonly`` the read session is returned whatever ``readonly`` says.
    """
    return _sessions[readonly or is_readonly_forced()].get()


def set_current_session(session: AsyncSession, readonly: bool = False) -> Token:
    return _sessions[readonly].set(session)


def reset_current_session(token: Token, readonly: bool = False) -> None:
    _sessions[readonly].reset(token)


def in_transaction(readonly: bool = False) -> bool:
    return get_current_session(readonly=readonly) is not None


def readonly(func: Callable[P, T]) -> Callable[P, T]:
    """
    Route every session opened below ``func`` to the read side.

        @readonly
        async def get_usage_history(self, seller_id, months):
            return await self.usage_records.get_history(seller_id, months)
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        token = _force_readonly.set(True)
        try:
            return await func(*args, **kwargs)
        finally:
            _force_readonly.reset(token)

    return wrapper
