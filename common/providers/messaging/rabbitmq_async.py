import json
from typing import Any, Dict, Optional, Set
from urllib.parse import quote

import aio_pika
from aio_pika import Message, connect_robust
from aio_pika.abc import AbstractChannel, AbstractRobustConnection

from common.core.config import settings
from common.core.otel_axiom_exporter import get_logger, inject_trace_context
from .constants import QueueConfig
from .interface import MessageQueueInterface

logger = get_logger(__name__)


class RabbitMQClient(MessageQueueInterface):
    """
    Publisher for seller notifications.

    Connects on first publish and declares each destination queue once per
    connection, together with a dead letter queue that keeps rejected
    messages for a day.
    """

    def __init__(self, url: Optional[str] = None):
        self._url = url or (
            f"amqp://{quote(settings.rabbitmq_username)}:{quote(settings.rabbitmq_password)}"
            f"@{settings.rabbitmq_host}:{settings.rabbitmq_port}/{settings.rabbitmq_vhost}"
        )
        self.connection: Optional[AbstractRobustConnection] = None
        self.channel: Optional[AbstractChannel] = None
        self._declared: Set[str] = set()

    async def connect(self) -> bool:
        try:
            self.connection = await connect_robust(self._url)
            self.channel = await self.connection.channel()
        except Exception as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            return False

        self._declared.clear()
        logger.info("Connected to RabbitMQ")
        return True

    async def disconnect(self) -> None:
        try:
            if self.channel and not self.channel.is_closed:
                await self.channel.close()
            if self.connection and not self.connection.is_closed:
                await self.connection.close()
        except Exception as e:
            logger.error(f"Error disconnecting from RabbitMQ: {e}")
            return
        logger.info("Disconnected from RabbitMQ")

    async def _ready(self) -> bool:
        if self.channel and not self.channel.is_closed:
            return True
        return await self.connect()

    async def publish(self, queue: str, message: Dict[str, Any]) -> bool:
        if not await self._ready():
            return False
        if queue not in self._declared and not await self.declare_queue(queue):
            return False

        try:
            await self.channel.default_exchange.publish(
                Message(
                    body=json.dumps(message, default=str).encode(),
                    delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                    content_type="application/json",
                    headers=inject_trace_context(),
                ),
                routing_key=queue,
                mandatory=True,
            )
        except Exception as e:
            logger.error(f"Failed to publish message to {queue}: {e}")
            return False

        logger.info(f"Published message to queue {queue}")
        return True

    async def declare_queue(
        self, queue: str, durable: bool = True, dlq_enabled: bool = True
    ) -> bool:
        if not await self._ready():
            return False

        try:
            arguments = await self._declare_dead_letters(queue) if dlq_enabled else None
            await self.channel.declare_queue(queue, durable=durable, arguments=arguments)
        except Exception as e:
            logger.error(f"Failed to declare queue {queue}: {e}")
            return False

        self._declared.add(queue)
        logger.info(f"Declared queue: {queue} (DLQ enabled: {dlq_enabled})")
        return True

    async def _declare_dead_letters(self, queue: str) -> Dict[str, str]:
        """Declare ``<queue>.dlx`` and ``<queue>.dlq``; return the source queue arguments."""
        exchange = f"{queue}{QueueConfig.DLX_SUFFIX}"
        dead_letters = await self.channel.declare_queue(
            f"{queue}{QueueConfig.DLQ_SUFFIX}",
            durable=True,
            arguments={
                "x-message-ttl": QueueConfig.DLQ_MESSAGE_TTL_MS,
                "x-max-length": QueueConfig.DLQ_MAX_LENGTH,
            },
        )
        await self.channel.declare_exchange(
            name=exchange, type=aio_pika.ExchangeType.DIRECT, durable=True
        )
        await dead_letters.bind(exchange, routing_key=queue)
        return {
            "x-dead-letter-exchange": exchange,
            "x-dead-letter-routing-key": queue,
        }
