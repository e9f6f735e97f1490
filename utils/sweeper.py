"""
Periodic subscription housekeeping: expire lapsed subscriptions, remind those about to lapse.
"""
import logging
import math
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.subscription import Subscription

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """
    Moves `active` subscriptions whose `expires_at` has passed to `expired`.

    Each row is expired with its own status-guarded UPDATE and commit, so a
    failure on one row never blocks the others and two overlapping runs
    expire (and notify) each row once.
    """

    def __init__(self, notifier, clock=datetime.utcnow):
        self.notifier = notifier
        self.clock = clock

    def sweep(self, now=None) -> int:
        now = now or self.clock()
        due = [row.id for row in Subscription.query.with_entities(Subscription.id).filter(
            Subscription.status == 'active',
            Subscription.expires_at.isnot(None),
            Subscription.expires_at < now,
        ).order_by(Subscription.expires_at).all()]
        if not due:
            logger.info("No expired subscriptions found")
            return 0

        logger.info("Found %s expired subscriptions", len(due))
        expired = 0
        for subscription_id in due:
            try:
                won = Subscription.query.filter(
                    Subscription.id == subscription_id,
                    Subscription.status == 'active',
                    Subscription.expires_at < now,
                ).update({'status': 'expired', 'updated_at': now}, synchronize_session=False) == 1
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                logger.error("Could not expire subscription #%s", subscription_id, exc_info=True)
                continue
            if not won:
                continue

            expired += 1
            subscription = db.session.get(Subscription, subscription_id)
            try:
                self.notifier.notify_expired(subscription)
            except Exception:
                logger.error("Expiry notice for subscription #%s failed", subscription_id, exc_info=True)

        logger.info("Expired %s of %s subscriptions", expired, len(due))
        return expired

    def send_reminders(self, days_ahead=3, now=None) -> int:
        """Notify active subscriptions expiring within `days_ahead` days, once per activation."""
        now = now or self.clock()
        horizon = now + timedelta(days=days_ahead)
        due = Subscription.query.with_entities(Subscription.id, Subscription.expires_at).filter(
            Subscription.status == 'active',
            Subscription.expires_at.isnot(None),
            Subscription.expires_at >= now,
            Subscription.expires_at < horizon,
            Subscription.expiry_reminder_sent_at.is_(None),
        ).all()

        sent = 0
        for subscription_id, expires_at in due:
            try:
                claimed = Subscription.query.filter(
                    Subscription.id == subscription_id,
                    Subscription.expiry_reminder_sent_at.is_(None),
                ).update({'expiry_reminder_sent_at': now}, synchronize_session=False) == 1
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                logger.error("Could not mark reminder for subscription #%s", subscription_id, exc_info=True)
                continue
            if not claimed:
                continue

            days_left = max(1, math.ceil((expires_at - now).total_seconds() / 86400))
            subscription = db.session.get(Subscription, subscription_id)
            try:
                self.notifier.notify_expiring_soon(subscription, days_left)
                sent += 1
            except Exception:
                logger.error("Expiry reminder for subscription #%s failed", subscription_id, exc_info=True)

        logger.info("Sent %s expiration reminders", sent)
        return sent
