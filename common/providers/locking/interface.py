from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional


class DistributedLockInterface(ABC):
    """Interface for distributed lock providers."""

    @abstractmethod
    async def acquire_lock(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> Optional[str]:
        """
        Acquire a distributed lock for a resource.

        Args:
            resource_key: The resource to lock (e.g., "billing_sweep")
            timeout_seconds: Lock expiration time in seconds

        Returns:
            Lock token if acquired, None otherwise
        """
        pass

    @abstractmethod
    async def release_lock(self, resource_key: str, lock_token: str) -> bool:
        """
        Release a distributed lock.

        Returns:
            True if released, False if token doesn't match or lock expired
        """
        pass

    async def disconnect(self) -> None:
        """Release client resources. No-op by default."""
        return None

    @asynccontextmanager
    async def hold(
        self, resource_key: str, timeout_seconds: int = 30
    ) -> AsyncGenerator[Optional[str], None]:
        """
        Hold a lock for the duration of the block.

        Yields the lock token, or None when another holder has it; callers
        decide whether to skip their work in that case.
        """
        token = await self.acquire_lock(resource_key, timeout_seconds)
        try:
            yield token
        finally:
            if token:
                await self.release_lock(resource_key, token)
