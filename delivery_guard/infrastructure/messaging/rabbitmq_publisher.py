# delivery_guard/infrastructure/messaging/rabbitmq_publisher.py

import json
from typing import Any, Dict

import aio_pika

EXCHANGE_SECURITY_ALERTS = "security_alerts"


class RabbitMQAlertPublisher:
    """Publishes critical security events to a durable topic exchange. Implements AlertPublisher."""

    def __init__(self, rabbitmq_url: str, exchange_name: str = EXCHANGE_SECURITY_ALERTS) -> None:
        self._url = rabbitmq_url
        self._exchange_name = exchange_name
        self._connection = None
        self._channel = None
        self._exchange = None

    async def connect(self) -> None:
        self._connection = await aio_pika.connect_robust(self._url)
        self._channel = await self._connection.channel()
        self._exchange = await self._channel.declare_exchange(
            self._exchange_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )

    async def publish_alert(self, alert: Dict[str, Any]) -> None:
        if self._exchange is None:
            await self.connect()

        routing_key = f"security.{alert.get('severity', 'unknown')}.{str(alert.get('event_type', 'event')).lower()}"
        msg = aio_pika.Message(
            body=json.dumps(alert, default=str).encode(),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            headers={
                "correlation_id": alert.get("correlation_id") or "",
            },
        )

        await self._exchange.publish(msg, routing_key=routing_key)

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._channel = None
        self._exchange = None
