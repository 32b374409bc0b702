"""
Operation-scoped database sessions.

Repositories never hold a session of their own. Each call goes through
get_session(), which either joins the transaction() open in the current task
or borrows a connection for that single statement and gives it back straight
away.

Billing writes that must be serialized per seller (plan changes, webhook
reconciliation, grace expiry) run inside one transaction() so the
``SELECT ... FOR UPDATE`` row locks last until commit:

    async with transaction():
        subscription = await subscriptions.get_by_seller_id(seller_id, for_update=True)
        await subscriptions.update(subscription.id, {"status": "past_due"})
        await grace_periods.start(seller_id)  # joins, does not commit

The outermost block commits or rolls back. Nested blocks only join.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from common.core.otel_axiom_exporter import get_logger
from common.db.context import (
    get_current_session,
    is_readonly_forced,
    reset_current_session,
    set_current_session,
)
from common.db.session import AsyncSessionLocal, AsyncSessionLocalReadonly

logger = get_logger(__name__)


def _elapsed_ms(start: float) -> str:
    return f"{(time.perf_counter() - start) * 1000:.2f}ms"


@asynccontextmanager
async def _fresh_session(
    readonly: bool, scope: str, track: bool
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session, commit it on success unless readonly, roll back on error."""
    factory = AsyncSessionLocalReadonly if readonly else AsyncSessionLocal

    start = time.perf_counter()
    async with factory() as session:
        logger.debug(f"{scope} session acquire: {_elapsed_ms(start)}, readonly={readonly}")
        token = set_current_session(session, readonly=readonly) if track else None
        try:
            yield session
            if not readonly:
                start = time.perf_counter()
                await session.commit()
                logger.debug(f"{scope} commit: {_elapsed_ms(start)}")
        except Exception as e:
            logger.error(f"{scope} rollback due to: {e}")
            await session.rollback()
            raise
        finally:
            if token is not None:
                reset_current_session(token, readonly=readonly)


@asynccontextmanager
async def transaction(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """
    Explicit transaction boundary shared by everything in the block.

    Args:
        readonly: Use the read session and never commit. ``@readonly`` on a
            caller has the same effect.

    Raises:
        Whatever the block raised, after rolling back.
    """
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)
    if existing is not None:
        logger.debug("Joining existing transaction session")
        yield existing
        return

    async with _fresh_session(effective_readonly, "Transaction", track=True) as session:
        yield session


@asynccontextmanager
async def get_session(readonly: bool = False) -> AsyncGenerator[AsyncSession, None]:
    """Session for a single repository call."""
    effective_readonly = readonly or is_readonly_forced()
    existing = get_current_session(readonly=effective_readonly)
    if existing is None and effective_readonly:
        # Reads inside a write transaction must see its uncommitted rows
        existing = get_current_session(readonly=False)

    if existing is not None:
        yield existing
        return

    async with _fresh_session(effective_readonly, "Operation", track=False) as session:
        yield session
