"""
Celery worker and beat schedule for subscription housekeeping.

Run with:
    celery -A celery_worker.celery_app worker --beat --loglevel=info
"""
import logging
from celery import Celery, Task
from celery.schedules import crontab
from app import app as flask_app

logger = logging.getLogger(__name__)


def make_celery(app):
    """Celery app whose tasks run inside the Flask application context."""

    class FlaskTask(Task):
        def __call__(self, *args, **kwargs):
            with app.app_context():
                return super().__call__(*args, **kwargs)

    celery = Celery(app.import_name, task_cls=FlaskTask)
    celery.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        task_serializer="json",
        accept_content=["json"],
        timezone=app.config['CELERY_TIMEZONE'],
        enable_utc=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_time_limit=300,
        task_soft_time_limit=240,
        task_ignore_result=True,
        beat_schedule={
            "expire-subscriptions-hourly": {
                "task": "celery_worker.expire_subscriptions",
                "schedule": crontab(minute=0),
            },
            "expiry-reminders-daily": {
                "task": "celery_worker.send_expiry_reminders",
                "schedule": crontab(minute=0, hour=10),
            },
        },
    )
    app.extensions['celery'] = celery
    return celery


celery_app = make_celery(flask_app)


@celery_app.task(name="celery_worker.expire_subscriptions")
def expire_subscriptions():
    count = flask_app.extensions['expiration_sweeper'].sweep()
    logger.info("Scheduled sweep expired %s subscription(s)", count)
    return count


@celery_app.task(name="celery_worker.send_expiry_reminders")
def send_expiry_reminders():
    days = flask_app.config['REMINDER_DAYS_AHEAD']
    count = flask_app.extensions['expiration_sweeper'].send_reminders(days_ahead=days)
    logger.info("Scheduled reminders sent to %s subscriber(s)", count)
    return count
