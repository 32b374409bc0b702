from typing import Optional

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger

from .interface import DistributedLockInterface
from .redis_lock import RedisLock

logger = get_logger(__name__)

_lock_provider: Optional[DistributedLockInterface] = None


def get_lock_provider() -> DistributedLockInterface:
    """Lock provider shared by the sweep worker replicas.

    Only one replica may run the billing sweep at a time, so every process
    must point at the same Redis instance.
    """
    global _lock_provider

    if _lock_provider is None:
        _lock_provider = RedisLock(url=settings.redis_connection_url)
        logger.info("Billing sweep locks backed by Redis")

    return _lock_provider
