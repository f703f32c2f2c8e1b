# tenantguard/infrastructure/messaging/rabbitmq_publisher.py

import aio_pika
import json

from tenantguard.governance.anomaly_models import AnomalySignal

ROUTING_PREFIX = "anomaly."


class RabbitMQAlertPublisher:
    """Publishes anomaly signals to a topic exchange, routed as anomaly.<kind>."""

    def __init__(self, rabbitmq_url: str, exchange_name: str = "security_alerts"):
        self._url = rabbitmq_url
        self._exchange_name = exchange_name
        self._connection = None
        self._channel = None

    async def connect(self):
        self._connection = await aio_pika.connect_robust(self._url)
        self._channel = await self._connection.channel()
        await self._channel.set_qos(prefetch_count=10)

    async def close(self):
        if self._connection is not None:
            await self._connection.close()
        self._connection = None
        self._channel = None

    async def publish(
        self,
        routing_key: str,
        message: dict,
        message_id: str,
    ):

        if not self._channel:
            await self.connect()

        exchange = await self._channel.declare_exchange(
            self._exchange_name,
            aio_pika.ExchangeType.TOPIC,
            durable=True,
        )

        msg = aio_pika.Message(
            body=json.dumps(message).encode(),
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            message_id=message_id,
            content_type="application/json",
        )

        await exchange.publish(msg, routing_key=routing_key)

    async def notify(self, signal: AnomalySignal) -> None:
        """AlertNotifier implementation."""
        await self.publish(
            f"{ROUTING_PREFIX}{signal.kind.value}",
            signal.to_dict(),
            signal.signal_id,
        )
