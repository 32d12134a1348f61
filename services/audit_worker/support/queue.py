import json
from typing import Any

import aio_pika
from pydantic import BaseModel

from config.logging_config import get_logger
from services.audit_worker.schemas.audit import AuditResultMessage

logger = get_logger(__name__)


def encode_body(body: Any) -> bytes:
    if isinstance(body, AuditResultMessage):
        return body.to_bytes()
    if isinstance(body, BaseModel):
        body = body.model_dump(mode="json", by_alias=True)
    return json.dumps(body, ensure_ascii=False).encode("utf-8")


class AmqpQueueClient:
    """Publishes JSON messages to named queues through the AMQP default exchange.

    A ``queue_url`` is the queue's name; the default exchange routes on it
    directly.
    """

    def __init__(self, rabbitmq_url: str):
        self.rabbitmq_url = rabbitmq_url

    async def send_message(self, queue_url: str, body: Any) -> None:
        msg = aio_pika.Message(
            body=encode_body(body),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
        )
        conn = await aio_pika.connect_robust(self.rabbitmq_url)
        async with conn:
            ch = await conn.channel()
            await ch.default_exchange.publish(msg, routing_key=queue_url)

        logger.info(f"Message sent to queue {queue_url}", extra={"queue_url": queue_url})
