"""
Subscription status helpers: latest payment attempt, status payloads and cancellation.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from errors import InvalidTransitionError, NotFoundError
from gateways.base import Unsupported
from models import db
from models.subscription import Subscription
from models.transaction import Transaction

logger = logging.getLogger(__name__)

CANCELLABLE_STATUSES = ('pending', 'active')


def latest_transaction(subscription):
    """Most recent payment attempt; the only authoritative one."""
    return Transaction.query.filter_by(subscription_id=subscription.id).order_by(
        Transaction.id.desc()
    ).first()


def get_subscription_status(subscription, now=None):
    """Status payload for the checkout page polling loop."""
    latest = latest_transaction(subscription)
    return {
        'subscriptionId': subscription.id,
        'status': subscription.status,
        'isActive': subscription.is_active(now),
        'gateway': subscription.gateway,
        'paymentStatus': latest.status if latest else 'pending',
        'paymentUrl': latest.payment_url if latest else None,
        'qrCode': latest.qr_code if latest else None,
        'startsAt': subscription.starts_at.isoformat() if subscription.starts_at else None,
        'expiresAt': subscription.expires_at.isoformat() if subscription.expires_at else None,
    }


def cancel_subscription(subscription, registry, now=None):
    """
    Cancel a pending or active subscription.

    When the provider holds a recurring agreement it is cancelled first with
    the creator's credentials. A provider that no longer knows the agreement
    does not block the local cancel; credential or transport errors do, and
    leave the row untouched.
    """
    if subscription.status not in CANCELLABLE_STATUSES:
        raise InvalidTransitionError('Subscription', subscription.id, subscription.status, 'cancelled')

    if subscription.gateway_subscription_id:
        adapter = registry.get(subscription.gateway)
        try:
            result = adapter.cancel_subscription(
                subscription.creator.gateway_credentials, subscription.gateway_subscription_id
            )
            if isinstance(result, Unsupported):
                logger.info("%s cannot cancel agreements remotely; cancelling subscription #%s locally",
                            adapter.gateway_id, subscription.id)
        except NotFoundError:
            logger.warning("%s agreement %s not found; cancelling subscription #%s locally",
                           adapter.gateway_id, subscription.gateway_subscription_id, subscription.id)

    now = now or datetime.utcnow()
    try:
        won = Subscription.query.filter(
            Subscription.id == subscription.id,
            Subscription.status.in_(CANCELLABLE_STATUSES),
        ).update({'status': 'cancelled', 'cancelled_at': now, 'updated_at': now},
                 synchronize_session=False) == 1
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.error("Could not cancel subscription #%s", subscription.id, exc_info=True)
        raise

    db.session.refresh(subscription)
    if not won:
        raise InvalidTransitionError('Subscription', subscription.id, subscription.status, 'cancelled')
    logger.info("Subscription #%s cancelled", subscription.id)
    return subscription
