from celery import Celery, Task
from loguru import logger
import os
from app.core.config import settings

# Create Celery app
celery_app = Celery(
    "bed_management",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["app.workers.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Worker settings
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    task_default_queue="default",
    task_queues={
        "default": {"exchange": "default", "routing_key": "default"},
        "housekeeping": {"exchange": "housekeeping", "routing_key": "housekeeping"},
    },
    task_routes={
        "app.workers.tasks.send_housekeeping_alert": {"queue": "housekeeping"},
    },

    # Result backend settings
    result_expires=6 * 3600,

    broker_transport_options={"visibility_timeout": 600},
    broker_connection_retry_on_startup=True,

    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=settings.CELERY_TASK_ALWAYS_EAGER,
)

if os.getenv("ENVIRONMENT") == "production":
    celery_app.conf.update(
        worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
        worker_task_log_format="[%(asctime)s: %(levelname)s/%(processName)s][%(task_name)s(%(task_id)s)] %(message)s",
        worker_log_color=False,
        worker_concurrency=4,
    )


class AlertTask(Task):
    """Base class for notification tasks; logs the outcome of every attempt"""

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(f"Task {self.name}[{task_id}] delivered: {retval}")

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(f"Task {self.name}[{task_id}] retrying: {exc}")

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(f"Task {self.name}[{task_id}] gave up: {exc}")
