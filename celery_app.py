import logging
from celery import Celery
from typing import Dict, Any

from config import get_settings
from core.slack import get_notifier

BROKER_URL = get_settings().celery_broker_url
app = Celery('tasks', broker=BROKER_URL)
app.conf.task_serializer = 'json'
app.conf.accept_content = ['json']

logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
logger = logging.getLogger(__name__)


@app.task(ignore_result=True)
def deliver_reminder(recipient: str, payload: Dict[str, Any]) -> bool:
    """
    Celery task to deliver a reminder payload to Slack. Not retried: reminders are at-most-once.
    """
    delivered = get_notifier().send(recipient, payload)
    if delivered:
        logger.info(f"Delivered {payload.get('kind')} reminder to {recipient}")
    else:
        logger.warning(f"Could not deliver {payload.get('kind')} reminder to {recipient}")
    return delivered


class CeleryReminderSink:
    """Reminder sink that queues delivery on the Celery worker."""

    def send(self, recipient: str, payload: Dict[str, Any]) -> bool:
        deliver_reminder.delay(recipient, payload)
        return True
