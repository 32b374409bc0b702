import asyncio
import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from common.db.base import Base
from common.db.context import get_current_session, in_transaction
from common.db.scoped import get_session, transaction
from marketplace.sellers.models.database import SellerEntity


@pytest_asyncio.fixture(scope="function")
async def scoped_session_factory(tmp_path):
    """Session factory on its own engine, without the outer test transaction.

    File-backed so every session gets its own connection; concurrent
    transactions never share one sqlite connection.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'scoped.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def patch_session_factories(scoped_session_factory, monkeypatch):
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", scoped_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", scoped_session_factory
    )
    yield


def seller(email: str) -> SellerEntity:
    return SellerEntity(email=email, name="Scoped Seller")


async def emails(session_factory, pattern: str) -> list[str]:
    async with session_factory() as verify_session:
        result = await verify_session.execute(
            text("SELECT email FROM sellers WHERE email LIKE :pattern ORDER BY email"),
            {"pattern": pattern},
        )
        return [row[0] for row in result.fetchall()]


class TestTransaction:
    """Test transaction() against a real database."""

    async def test_commits_on_success(
        self, patch_session_factories, scoped_session_factory
    ):
        async with transaction() as session:
            session.add(seller("commit@example.com"))

        assert await emails(scoped_session_factory, "commit@%") == [
            "commit@example.com"
        ]

    async def test_rolls_back_on_exception(
        self, patch_session_factories, scoped_session_factory
    ):
        with pytest.raises(ValueError):
            async with transaction() as session:
                session.add(seller("rollback@example.com"))
                await session.flush()
                raise ValueError("Simulated error")

        assert await emails(scoped_session_factory, "rollback@%") == []

    async def test_session_tracked_in_context(self, patch_session_factories):
        async with transaction() as session:
            assert get_current_session(readonly=False) is session
            assert in_transaction(readonly=False) is True

        assert get_current_session(readonly=False) is None
        assert in_transaction(readonly=False) is False

    async def test_nested_transactions_share_session(self, patch_session_factories):
        """Test nested transaction() calls join the outer one."""
        async with transaction() as outer:
            async with transaction() as inner:
                async with transaction() as innermost:
                    assert inner is outer
                    assert innermost is outer

    async def test_inner_failure_rolls_back_outer(
        self, patch_session_factories, scoped_session_factory
    ):
        with pytest.raises(ValueError):
            async with transaction() as outer:
                outer.add(seller("outer@example.com"))
                await outer.flush()

                async with transaction() as inner:
                    inner.add(seller("inner@example.com"))
                    await inner.flush()
                    raise ValueError("Error in nested transaction")

        assert await emails(scoped_session_factory, "%er@example.com") == []

    async def test_nested_commit_deferred_to_outer(
        self, patch_session_factories, scoped_session_factory
    ):
        async with transaction() as outer:
            async with transaction() as inner:
                inner.add(seller("nested@example.com"))
                await inner.flush()

            result = await outer.execute(
                text("SELECT email FROM sellers WHERE email = 'nested@example.com'")
            )
            assert result.fetchone() is not None

        assert await emails(scoped_session_factory, "nested@%") == [
            "nested@example.com"
        ]


class TestGetSession:
    """Test get_session() inside and outside transactions."""

    async def test_standalone_commits(
        self, patch_session_factories, scoped_session_factory
    ):
        async with get_session() as session:
            session.add(seller("standalone@example.com"))

        assert await emails(scoped_session_factory, "standalone@%") == [
            "standalone@example.com"
        ]

    async def test_standalone_rolls_back_on_exception(
        self, patch_session_factories, scoped_session_factory
    ):
        with pytest.raises(ValueError):
            async with get_session() as session:
                session.add(seller("broken@example.com"))
                await session.flush()
                raise ValueError("Simulated error")

        assert await emails(scoped_session_factory, "broken@%") == []

    async def test_reuses_transaction_session(
        self, patch_session_factories, scoped_session_factory
    ):
        """Test repository sessions inside a transaction commit together."""
        async with transaction() as tx_session:
            for index in range(3):
                async with get_session() as session:
                    assert session is tx_session
                    session.add(seller(f"multi{index}@example.com"))

        assert len(await emails(scoped_session_factory, "multi%")) == 3


class TestConcurrentTransactions:
    async def test_failures_stay_isolated(
        self, patch_session_factories, scoped_session_factory
    ):
        """Test one failing task does not roll back its neighbours."""
        failed = []

        async def create(email: str, should_fail: bool):
            try:
                async with transaction() as session:
                    session.add(seller(email))
                    if should_fail:
                        raise ValueError("Intentional failure")
            except ValueError:
                failed.append(email)

        await asyncio.gather(
            create("concurrent1@example.com", should_fail=False),
            create("concurrent2@example.com", should_fail=True),
            create("concurrent3@example.com", should_fail=False),
        )

        assert failed == ["concurrent2@example.com"]
        assert await emails(scoped_session_factory, "concurrent%") == [
            "concurrent1@example.com",
            "concurrent3@example.com",
        ]
