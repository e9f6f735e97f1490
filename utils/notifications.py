"""
Subscriber notifications for lifecycle events
"""
import logging

from utils.mail import (
    mail_configured, send_expiry_reminder_email,
    send_subscription_activated_email, send_subscription_expired_email,
)

logger = logging.getLogger(__name__)


class Notifier:
    """
    Interface used by the reconciler and the sweeper.

    Delivery to the end user (bot message, e-mail) lives behind this seam;
    implementations may raise, callers log and carry on.
    """

    def notify_activated(self, subscription):
        raise NotImplementedError

    def notify_expired(self, subscription):
        raise NotImplementedError

    def notify_expiring_soon(self, subscription, days_left):
        raise NotImplementedError


class LoggingNotifier(Notifier):
    """Records lifecycle events in the application log only."""

    def notify_activated(self, subscription):
        logger.info("Subscription #%s activated for user %s (expires %s)",
                    subscription.id, subscription.user_external_id, subscription.expires_at or 'never')

    def notify_expired(self, subscription):
        logger.info("Subscription #%s expired for user %s", subscription.id, subscription.user_external_id)

    def notify_expiring_soon(self, subscription, days_left):
        logger.info("Subscription #%s for user %s expires in %s day(s)",
                    subscription.id, subscription.user_external_id, days_left)


class MailNotifier(LoggingNotifier):
    """E-mails the subscriber when an address is known, otherwise only logs."""

    def _can_mail(self, subscription):
        return bool(subscription.user_email) and mail_configured()

    def notify_activated(self, subscription):
        super().notify_activated(subscription)
        if self._can_mail(subscription):
            send_subscription_activated_email(subscription)

    def notify_expired(self, subscription):
        super().notify_expired(subscription)
        if self._can_mail(subscription):
            send_subscription_expired_email(subscription)

    def notify_expiring_soon(self, subscription, days_left):
        super().notify_expiring_soon(subscription, days_left)
        if self._can_mail(subscription):
            send_expiry_reminder_email(subscription, days_left)


def build_notifier(config):
    if config.get('NOTIFIER', 'mail') == 'log':
        return LoggingNotifier()
    return MailNotifier()
