from datetime import datetime, timedelta

import pytest

from models import db
from models.subscription import Subscription
from utils.settings_helper import FEE_SETTING_KEY, get_setting


def test_sweep_expired_command(app, make_subscription):
    subscription = make_subscription(status='active', tx_status='confirmed',
                                     expires_at=datetime.utcnow() - timedelta(minutes=5))

    result = app.test_cli_runner().invoke(args=['sweep-expired'])

    assert result.exit_code == 0
    assert 'Expired 1 subscription(s)' in result.output
    assert db.session.get(Subscription, subscription.id).status == 'expired'


def test_send_reminders_command(app, make_subscription):
    make_subscription(status='active', tx_status='confirmed', expires_at=datetime.utcnow() + timedelta(days=2))

    result = app.test_cli_runner().invoke(args=['send-reminders', '--days', '5'])

    assert result.exit_code == 0
    assert 'Sent 1 reminder(s)' in result.output


def test_set_fee_command(app):
    result = app.test_cli_runner().invoke(args=['set-fee', '0.99'])

    assert result.exit_code == 0
    assert 'fixed_fee_amount = 0.99' in result.output
    assert get_setting(FEE_SETTING_KEY) == '0.99'


@pytest.mark.parametrize('amount', ['0.555', '-1', 'abc', 'NaN'])
def test_set_fee_command_rejects_invalid_amounts(app, amount):
    result = app.test_cli_runner().invoke(args=['set-fee', amount])

    assert result.exit_code != 0
    assert get_setting(FEE_SETTING_KEY) == '0.55'


def test_celery_beat_schedules_housekeeping():
    from celery_worker import celery_app, expire_subscriptions, send_expiry_reminders

    schedule = celery_app.conf.beat_schedule
    assert schedule['expire-subscriptions-hourly']['task'] == expire_subscriptions.name
    assert schedule['expiry-reminders-daily']['task'] == send_expiry_reminders.name
    assert celery_app.conf.task_acks_late is True


def test_celery_tasks_run_inside_app_context():
    from celery_worker import expire_subscriptions, send_expiry_reminders

    assert expire_subscriptions() == 0
    assert send_expiry_reminders() == 0
