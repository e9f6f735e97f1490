"""
Webhook reconciliation: apply normalized provider events to local payment state.

Notifications arrive unordered, duplicated and concurrently. Every status
change is a compare-and-swap UPDATE guarded by the expected current status,
so of two identical notifications exactly one wins and only the winner
activates the subscription and notifies the subscriber.
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from errors import InvalidTransitionError, ReconciliationNoMatch
from gateways.base import CONFIRMED, FAILED, REFUNDED
from models import db
from models.subscription import Subscription
from models.transaction import Transaction

logger = logging.getLogger(__name__)

ACK = {'received': True}


def compare_and_swap(model, row_id, expected, values):
    """UPDATE model SET values WHERE id = row_id AND status IN expected. True when the row moved."""
    count = model.query.filter(
        model.id == row_id,
        model.status.in_(expected),
    ).update(values, synchronize_session=False)
    return count == 1


def with_provider_status(values, event):
    if event.provider_status:
        values['gateway_status'] = str(event.provider_status)[:50]
    return values


def activation_window(subscription, now):
    """(starts_at, expires_at) for an activation at `now`; lifetime access never expires."""
    if subscription.is_lifetime:
        return now, None
    return now, now + timedelta(days=subscription.duration_days)


class WebhookReconciler:
    def __init__(self, notifier, clock=datetime.utcnow):
        self.notifier = notifier
        self.clock = clock

    def reconcile(self, gateway_id, event):
        """Apply one event. Always acknowledges; database errors propagate so the provider retries."""
        if event is None or event.is_empty:
            logger.info("Ignoring %s notification without payment identifiers", gateway_id)
            return dict(ACK)

        try:
            transaction = self.find_transaction(gateway_id, event)
            if transaction is None:
                db.session.rollback()
                error = ReconciliationNoMatch(
                    f"No transaction for payment {event.provider_payment_id!r} "
                    f"/ reference {event.external_reference!r}",
                    gateway=gateway_id,
                )
                logger.warning("%s: %s", type(error).__name__, error.message)
                return dict(ACK)

            self.record_provider_state(transaction, event)
            activated_id = None
            if event.outcome == CONFIRMED:
                activated_id = self.confirm(transaction, event)
            elif event.outcome == FAILED:
                self.fail(transaction, event)
            elif event.outcome == REFUNDED:
                self.refund(transaction, event)
            else:
                self.note_pending(transaction, event)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Reconciliation of %s event %s failed", gateway_id, event.provider_payment_id,
                         exc_info=True)
            raise

        if activated_id is not None:
            self._notify_activated(activated_id)
        return dict(ACK)

    def find_transaction(self, gateway_id, event):
        """By provider payment id first, then by correlation id to the subscription's latest attempt."""
        if event.provider_payment_id:
            transaction = Transaction.query.filter_by(
                gateway=gateway_id, gateway_payment_id=str(event.provider_payment_id)
            ).order_by(Transaction.id.desc()).with_for_update().first()
            if transaction is not None:
                return transaction

        if event.external_reference:
            origin = Transaction.query.filter_by(correlation_id=event.external_reference).first()
            if origin is not None:
                return Transaction.query.filter_by(
                    subscription_id=origin.subscription_id
                ).order_by(Transaction.id.desc()).with_for_update().first()
        return None

    def record_provider_state(self, transaction, event):
        if event.provider_payment_id and not transaction.gateway_payment_id:
            transaction.gateway_payment_id = str(event.provider_payment_id)
        if event.amount_paid is not None and event.outcome == CONFIRMED \
                and event.amount_paid != transaction.amount_gross:
            logger.warning("Transaction #%s paid %s but expected %s",
                           transaction.id, event.amount_paid, transaction.amount_gross)
        db.session.flush()

    def confirm(self, transaction, event):
        """Returns the subscription id when this call activated it, else None."""
        now = self.clock()
        won = compare_and_swap(Transaction, transaction.id, ('pending',), with_provider_status({
            'status': 'confirmed',
            'paid_at': event.paid_at or now,
            'updated_at': now,
        }, event))
        if not won:
            logger.info("Transaction #%s already %s, confirmation ignored", transaction.id, transaction.status)
            return None

        subscription = db.session.get(Subscription, transaction.subscription_id)
        starts_at, expires_at = activation_window(subscription, now)
        values = {
            'status': 'active',
            'starts_at': starts_at,
            'expires_at': expires_at,
            'expiry_reminder_sent_at': None,
            'updated_at': now,
        }
        if event.gateway_subscription_id:
            values['gateway_subscription_id'] = str(event.gateway_subscription_id)
        activated = compare_and_swap(Subscription, subscription.id, ('pending', 'failed'), values)
        if activated:
            logger.info("Subscription #%s activated until %s", subscription.id, expires_at or 'lifetime')
            return subscription.id

        db.session.refresh(subscription)
        if subscription.status in ('cancelled', 'expired'):
            error = InvalidTransitionError('Subscription', subscription.id, subscription.status, 'active')
            logger.error("Payment confirmed for closed subscription: %s (transaction #%s kept confirmed)",
                         error.message, transaction.id)
        else:
            logger.info("Subscription #%s already %s", subscription.id, subscription.status)
        return None

    def fail(self, transaction, event):
        now = self.clock()
        won = compare_and_swap(Transaction, transaction.id, ('pending',), with_provider_status({
            'status': 'failed',
            'updated_at': now,
        }, event))
        if not won:
            logger.info("Transaction #%s is %s, failure notice ignored", transaction.id, transaction.status)
            return
        compare_and_swap(Subscription, transaction.subscription_id, ('pending',), {
            'status': 'failed',
            'updated_at': now,
        })
        logger.info("Transaction #%s failed", transaction.id)

    def refund(self, transaction, event):
        won = compare_and_swap(Transaction, transaction.id, ('confirmed',), with_provider_status({
            'status': 'refunded',
            'updated_at': self.clock(),
        }, event))
        if won:
            logger.info("Transaction #%s refunded", transaction.id)
        else:
            logger.info("Transaction #%s is %s, refund notice ignored", transaction.id, transaction.status)

    def note_pending(self, transaction, event):
        """Intermediate provider states only show on transactions still waiting."""
        if event.provider_status:
            compare_and_swap(Transaction, transaction.id, ('pending',), with_provider_status({}, event))

    def _notify_activated(self, subscription_id):
        subscription = db.session.get(Subscription, subscription_id)
        try:
            self.notifier.notify_activated(subscription)
        except Exception:
            logger.error("Activation notice for subscription #%s failed", subscription_id, exc_info=True)
