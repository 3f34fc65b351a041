from typing import Optional
import asyncio
from loguru import logger

from app.core.config import settings
from app.infrastructure.notifications import send_notification, format_housekeeping_message
from app.workers.celery_app import AlertTask, celery_app


@celery_app.task(bind=True, base=AlertTask, max_retries=3, name="app.workers.tasks.send_housekeeping_alert")
def send_housekeeping_alert(
    self,
    tenant_id: str,
    bed_id: str,
    bed_number: str,
    unit_name: Optional[str],
    priority: str,
    reason: str
):
    """Page housekeeping about a bed that needs cleaning"""
    message = format_housekeeping_message(bed_number, unit_name, priority, reason)
    logger.info(f"Dispatching housekeeping alert for bed {bed_id} (tenant {tenant_id}, priority {priority})")

    result = asyncio.run(send_notification(
        recipient=settings.HOUSEKEEPING_ALERT_RECIPIENT,
        subject=message["subject"],
        body=message["body"],
        channel=settings.HOUSEKEEPING_ALERT_CHANNEL
    ))

    if result.get("status") != "sent":
        logger.error(f"Housekeeping alert for bed {bed_id} failed: {result.get('error')}")
        countdown = 2 ** self.request.retries
        raise self.retry(exc=RuntimeError(result.get("error", "notification failed")), countdown=countdown)

    return {"status": "success", "bed_id": bed_id, "channel": result["channel"]}
