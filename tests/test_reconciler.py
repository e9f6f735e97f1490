from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from gateways.base import CONFIRMED, FAILED, PENDING, REFUNDED, NormalizedEvent
from models import db
from models.subscription import Subscription
from models.transaction import Transaction
from utils.reconciler import ACK, WebhookReconciler

pytestmark = pytest.mark.payment

NOW = datetime(2024, 5, 1, 12, 0, 0)


@pytest.fixture()
def reconciler(notifier):
    return WebhookReconciler(notifier, clock=lambda: NOW)


def event(outcome, payment_id='pay_1', reference=None, status=None, amount=None):
    return NormalizedEvent(
        provider_payment_id=payment_id,
        provider_status=status or outcome,
        external_reference=reference,
        amount_paid=amount,
        outcome=outcome,
    )


def only_transaction(subscription):
    return Transaction.query.filter_by(subscription_id=subscription.id).one()


def test_confirmation_activates_subscription(reconciler, notifier, make_subscription):
    subscription = make_subscription()

    assert reconciler.reconcile('fake', event(CONFIRMED, status='paid')) == ACK

    subscription = db.session.get(Subscription, subscription.id)
    assert subscription.status == 'active'
    assert subscription.starts_at == NOW
    assert subscription.expires_at == NOW + timedelta(days=30)
    transaction = only_transaction(subscription)
    assert transaction.status == 'confirmed'
    assert transaction.paid_at == NOW
    assert transaction.gateway_status == 'paid'
    assert notifier.activated == [subscription.id]


def test_duplicate_confirmation_is_idempotent(reconciler, notifier, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(CONFIRMED))
    first_expiry = db.session.get(Subscription, subscription.id).expires_at
    reconciler.reconcile('fake', event(CONFIRMED))

    subscription = db.session.get(Subscription, subscription.id)
    assert subscription.status == 'active'
    assert subscription.expires_at == first_expiry
    assert notifier.activated == [subscription.id]


def test_lifetime_access_never_expires(reconciler, make_subscription):
    subscription = make_subscription(duration_days=None)

    reconciler.reconcile('fake', event(CONFIRMED))

    subscription = db.session.get(Subscription, subscription.id)
    assert subscription.status == 'active'
    assert subscription.expires_at is None


def test_correlation_id_matches_when_provider_id_is_unknown(reconciler, notifier, make_subscription):
    subscription = make_subscription(payment_id='pref_1', correlation_id='sub_abc')

    reconciler.reconcile('fake', event(CONFIRMED, payment_id='123456', reference='sub_abc'))

    assert db.session.get(Subscription, subscription.id).status == 'active'
    assert notifier.activated == [subscription.id]


def test_provider_payment_id_is_recorded_when_missing(reconciler, make_subscription):
    subscription = make_subscription(payment_id=None, correlation_id='sub_abc')

    reconciler.reconcile('fake', event(PENDING, payment_id='pay_77', reference='sub_abc', status='in_process'))

    transaction = only_transaction(subscription)
    assert transaction.gateway_payment_id == 'pay_77'
    assert transaction.gateway_status == 'in_process'
    assert transaction.status == 'pending'


def test_unknown_reference_is_acknowledged_without_changes(reconciler, notifier, make_subscription):
    subscription = make_subscription()

    result = reconciler.reconcile('fake', event(CONFIRMED, payment_id='pay_999', reference='sub_nope'))

    assert result == ACK
    assert db.session.get(Subscription, subscription.id).status == 'pending'
    assert notifier.activated == []


def test_same_payment_id_on_other_gateway_does_not_match(reconciler, make_subscription):
    subscription = make_subscription(gateway='fake')

    reconciler.reconcile('pushinpay', event(CONFIRMED))

    assert db.session.get(Subscription, subscription.id).status == 'pending'


def test_empty_events_are_acknowledged(reconciler):
    assert reconciler.reconcile('fake', None) == ACK
    assert reconciler.reconcile('fake', NormalizedEvent(outcome=CONFIRMED)) == ACK


def test_failure_marks_pending_rows_failed(reconciler, notifier, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(FAILED, status='expired'))

    assert db.session.get(Subscription, subscription.id).status == 'failed'
    assert only_transaction(subscription).status == 'failed'
    assert notifier.activated == []


def test_failure_after_confirmation_is_ignored(reconciler, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(CONFIRMED))
    reconciler.reconcile('fake', event(FAILED))

    assert db.session.get(Subscription, subscription.id).status == 'active'
    assert only_transaction(subscription).status == 'confirmed'


def test_confirmation_after_failure_is_rejected(reconciler, notifier, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(FAILED))
    reconciler.reconcile('fake', event(CONFIRMED))

    assert db.session.get(Subscription, subscription.id).status == 'failed'
    assert only_transaction(subscription).status == 'failed'
    assert notifier.activated == []


def test_pending_notice_only_records_provider_status(reconciler, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(PENDING, status='in_process'))

    assert db.session.get(Subscription, subscription.id).status == 'pending'
    assert only_transaction(subscription).gateway_status == 'in_process'


def test_cancelled_subscription_is_not_reactivated(reconciler, notifier, make_subscription):
    subscription = make_subscription(status='cancelled')

    assert reconciler.reconcile('fake', event(CONFIRMED)) == ACK

    assert db.session.get(Subscription, subscription.id).status == 'cancelled'
    assert only_transaction(subscription).status == 'confirmed'
    assert notifier.activated == []


def test_refund_marks_confirmed_transaction_refunded(reconciler, make_subscription):
    subscription = make_subscription(status='active', tx_status='confirmed')

    reconciler.reconcile('fake', event(REFUNDED))

    assert only_transaction(subscription).status == 'refunded'
    assert db.session.get(Subscription, subscription.id).status == 'active'


def test_refund_of_pending_transaction_is_ignored(reconciler, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(REFUNDED))

    assert only_transaction(subscription).status == 'pending'


def test_provider_status_is_truncated(reconciler, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(PENDING, status='x' * 80))

    assert only_transaction(subscription).gateway_status == 'x' * 50


def test_amount_mismatch_is_logged_but_still_activates(reconciler, make_subscription, caplog):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(CONFIRMED, amount=Decimal('9.00')))

    assert db.session.get(Subscription, subscription.id).status == 'active'
    assert 'expected' in caplog.text


def test_latest_attempt_is_the_one_confirmed(reconciler, make_subscription):
    subscription = make_subscription(payment_id='pay_old', correlation_id='sub_first')
    retry = Transaction(
        subscription_id=subscription.id, gateway='fake', gateway_payment_id='pay_new',
        correlation_id='sub_second', status='pending', amount_gross=Decimal('10.00'),
        amount_platform_fee=Decimal('0.55'), amount_creator_net=Decimal('9.45'),
    )
    db.session.add(retry)
    db.session.commit()

    reconciler.reconcile('fake', event(CONFIRMED, payment_id=None, reference='sub_first'))

    assert db.session.get(Transaction, retry.id).status == 'confirmed'
    assert Transaction.query.filter_by(gateway_payment_id='pay_old').one().status == 'pending'


def test_notifier_failure_does_not_undo_activation(reconciler, notifier, make_subscription):
    notifier.fail_on.add('activated')
    subscription = make_subscription()

    assert reconciler.reconcile('fake', event(CONFIRMED)) == ACK

    assert db.session.get(Subscription, subscription.id).status == 'active'


def test_database_errors_propagate_for_provider_retry(reconciler, make_subscription, monkeypatch):
    subscription = make_subscription()

    def broken_commit():
        raise OperationalError('COMMIT', {}, Exception('database is locked'))

    monkeypatch.setattr(db.session, 'commit', broken_commit)
    with pytest.raises(OperationalError):
        reconciler.reconcile('fake', event(CONFIRMED))
    monkeypatch.undo()

    assert db.session.get(Subscription, subscription.id).status == 'pending'


def test_late_failure_does_not_rewrite_confirmed_provider_status(reconciler, make_subscription):
    subscription = make_subscription()

    reconciler.reconcile('fake', event(CONFIRMED, status='paid'))
    reconciler.reconcile('fake', event(FAILED, status='rejected'))
    reconciler.reconcile('fake', event(PENDING, status='in_process'))

    transaction = only_transaction(subscription)
    assert transaction.status == 'confirmed'
    assert transaction.gateway_status == 'paid'


def test_refund_records_provider_status(reconciler, make_subscription):
    subscription = make_subscription(status='active', tx_status='confirmed')

    reconciler.reconcile('fake', event(REFUNDED, status='charged_back'))

    transaction = only_transaction(subscription)
    assert transaction.status == 'refunded'
    assert transaction.gateway_status == 'charged_back'


def test_confirmation_stores_late_gateway_subscription_id(reconciler, make_subscription):
    subscription = make_subscription(gateway_subscription_id=None)
    confirmed = event(CONFIRMED, status='paid')
    confirmed.gateway_subscription_id = 'sub_remote_1'

    reconciler.reconcile('fake', confirmed)

    subscription = db.session.get(Subscription, subscription.id)
    assert subscription.status == 'active'
    assert subscription.gateway_subscription_id == 'sub_remote_1'
