import pytest
from app.infrastructure.notifications import send_notification, format_housekeeping_message
from app.workers.tasks import send_housekeeping_alert


@pytest.mark.asyncio
async def test_send_notification_success():
    """Test successful notification sending"""
    result = await send_notification(
        recipient="housekeeping@example.com",
        subject="Cleaning requested",
        body="Bed 4 needs cleaning",
        channel="email"
    )
    assert result["status"] == "sent"
    assert result["recipient"] == "housekeeping@example.com"
    assert result["channel"] == "email"


@pytest.mark.asyncio
async def test_send_notification_sms():
    """Test SMS notification"""
    result = await send_notification(
        recipient="+1234567890",
        subject="",
        body="Bed 4 needs cleaning",
        channel="sms"
    )
    assert result["status"] == "sent"
    assert result["channel"] == "sms"


def test_format_housekeeping_message():
    message = format_housekeeping_message("12", "4 West", "stat", "Isolation discharge")

    assert message["subject"] == "[STAT] Cleaning requested: 4 West / bed 12"
    assert "Reason: Isolation discharge" in message["body"]


def test_format_housekeeping_message_without_unit():
    message = format_housekeeping_message("12", None, "normal", "Routine")

    assert message["subject"] == "[NORMAL] Cleaning requested: bed 12"


def test_housekeeping_alert_task():
    """Running the task body directly pages housekeeping"""
    result = send_housekeeping_alert("tenant-north", "bed-1", "12", "4 West", "high", "Spill")

    assert result == {"status": "success", "bed_id": "bed-1", "channel": "sms"}


def test_housekeeping_alert_task_failure(monkeypatch):
    """A failed page is retried; called directly the retry surfaces the error"""
    async def failing_send(**kwargs):
        return {"status": "error", "error": "gateway timeout"}

    monkeypatch.setattr("app.workers.tasks.send_notification", failing_send)

    with pytest.raises(RuntimeError, match="gateway timeout"):
        send_housekeeping_alert("tenant-north", "bed-1", "12", "4 West", "high", "Spill")
