import asyncio
import json

import aio_pika
from pydantic import ValidationError

from config.logging_config import get_logger, setup_logging
from services.audit_worker import handler
from services.audit_worker.config import settings
from services.audit_worker.context import AuditContext
from services.audit_worker.db.data_access import SqlDataAccess
from services.audit_worker.db.session import dispose_engine
from services.audit_worker.schemas.audit import AuditMessage
from services.audit_worker.support.queue import AmqpQueueClient

logger = get_logger(__name__, service_name=settings.service_name)


def new_context(data_access: SqlDataAccess, queue_client: AmqpQueueClient) -> AuditContext:
    return AuditContext(data_access=data_access, queue=queue_client, settings=settings, log=logger)


async def process_message(body: bytes, context: AuditContext) -> int:
    try:
        message = AuditMessage.model_validate(json.loads(body))
    except (ValueError, ValidationError):
        logger.error("Discarding malformed audit message", exc_info=True)
        return 400

    response = await handler.run(message, context)
    return response.status


async def consume() -> None:
    if not settings.rabbitmq_url:
        raise RuntimeError("AUDIT_RABBITMQ_URL is not configured")

    data_access = SqlDataAccess()
    queue_client = AmqpQueueClient(settings.rabbitmq_url)

    conn = await aio_pika.connect_robust(settings.rabbitmq_url)
    try:
        async with conn:
            ch = await conn.channel()
            await ch.set_qos(prefetch_count=1)
            queue = await ch.declare_queue(settings.jobs_queue_url, durable=True)

            logger.info(f"Consuming audit jobs from {settings.jobs_queue_url}")
            async with queue.iterator() as it:
                async for incoming in it:
                    async with incoming.process(requeue=False):
                        status = await process_message(incoming.body, new_context(data_access, queue_client))
                        logger.info(f"Audit job finished with status {status}", extra={"status_code": status})
    finally:
        await dispose_engine()


if __name__ == "__main__":
    setup_logging(settings.service_name)
    asyncio.run(consume())
