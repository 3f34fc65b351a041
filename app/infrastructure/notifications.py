import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def format_housekeeping_message(
    bed_number: str,
    unit_name: Optional[str],
    priority: str,
    reason: str
) -> Dict[str, str]:
    """Subject and body for a housekeeping page"""
    location = f"{unit_name} / bed {bed_number}" if unit_name else f"bed {bed_number}"
    subject = f"[{priority.upper()}] Cleaning requested: {location}"
    body = f"Housekeeping requested for {location}. Priority: {priority}. Reason: {reason}"
    return {"subject": subject, "body": body}


async def send_notification(recipient: str, subject: str, body: str, channel: str = "email") -> Dict[str, Any]:
    """Lightweight notification sender used by services/tasks.

    Delivery is logged only. This is the hook for a pager or SMS gateway,
    which reports failures as ``{"status": "error", "error": ...}`` so the
    housekeeping alert task retries them.
    """
    logger.info(f"Sending {channel} notification to {recipient}: {subject}")
    return {"status": "sent", "recipient": recipient, "channel": channel}
