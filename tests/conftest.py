import hashlib
import hmac
import json
import os
import time
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock

# The module-level WSGI app in app.py is built at import time; keep it off real services
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SWEEP_ON_STARTUP", "false")
os.environ.setdefault("NOTIFIER", "log")

import pytest

from app import create_app
from config import TestingConfig
from gateways.base import GatewayAdapter, PaymentResult, SubscriptionResult, NormalizedEvent, PENDING
from gateways.registry import GatewayRegistry
from models import db
from models.creator import Creator
from models.plan import Plan
from models.subscription import Subscription
from models.transaction import Transaction
from utils.auth_utils import issue_api_token
from utils.notifications import Notifier
from utils.settings_helper import FeePolicy


def pytest_configure(config):
    config.addinivalue_line("markers", "payment: mark test as payment-related")
    config.addinivalue_line("markers", "db: mark test as database-intensive")


@pytest.fixture()
def app():
    """Fresh application and in-memory database per test"""
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


class RecordingNotifier(Notifier):
    """Captures lifecycle notifications instead of delivering them."""

    def __init__(self):
        self.activated = []
        self.expired = []
        self.reminded = []
        self.fail_on = set()

    def notify_activated(self, subscription):
        if 'activated' in self.fail_on:
            raise RuntimeError("bot offline")
        self.activated.append(subscription.id)

    def notify_expired(self, subscription):
        if subscription.id in self.fail_on:
            raise RuntimeError("bot offline")
        self.expired.append(subscription.id)

    def notify_expiring_soon(self, subscription, days_left):
        self.reminded.append((subscription.id, days_left))


class FakeAdapter(GatewayAdapter):
    """In-memory gateway used to drive the orchestrator and webhook routes."""

    gateway_id = 'fake'
    display_name = 'Fake Pay'
    description = 'Test gateway'

    def __init__(self, recurring=False, error=None):
        self.recurring = recurring
        self.error = error
        self.payments = []
        self.subscriptions = []
        self.cancelled = []
        self.cancel_error = None
        self.next_id = 0

    def create_payment(self, credentials, request):
        self.require_credentials(credentials)
        if self.error:
            raise self.error
        self.next_id += 1
        self.payments.append((credentials, request))
        return PaymentResult(
            external_id=f"pay_{self.next_id}",
            status=PENDING,
            split=request.split,
            pay_url=f"https://fake.test/pay/{self.next_id}",
            qr_code='000201PIX',
            raw={'status': 'created'},
        )

    def create_subscription(self, credentials, request):
        if not self.recurring:
            return self.unsupported('create_subscription')
        if self.error:
            raise self.error
        self.next_id += 1
        self.subscriptions.append((credentials, request))
        return SubscriptionResult(
            external_id=f"agr_{self.next_id}",
            split=request.split,
            pay_url=f"https://fake.test/sub/{self.next_id}",
            payment_id=f"pay_{self.next_id}",
        )

    def cancel_subscription(self, credentials, external_id):
        if self.cancel_error:
            raise self.cancel_error
        self.cancelled.append(external_id)
        return {'id': external_id, 'status': 'cancelled'}

    def verify_webhook(self, raw_payload, headers, query=None):
        return headers.get('X-Fake-Token') != 'bad'

    def parse_webhook(self, raw_payload, headers, query=None):
        body = json.loads(raw_payload or b'{}')
        if not body.get('id') and not body.get('reference'):
            return None
        return NormalizedEvent(
            provider_payment_id=body.get('id'),
            provider_status=body.get('status'),
            external_reference=body.get('reference'),
            outcome=body.get('outcome', PENDING),
            raw=body,
        )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def fake_adapter():
    return FakeAdapter()


@pytest.fixture()
def registry(fake_adapter):
    return GatewayRegistry([fake_adapter])


@pytest.fixture()
def fee_policy():
    return FeePolicy(default='0.55', cache_seconds=0)


@pytest.fixture()
def creator(app):
    creator = Creator(
        name='Ana Creator',
        email='ana@creators.test',
        gateway_preference='fake',
        gateway_credentials='tok_creator',
        wallet_id='wallet_creator',
        is_active=True,
    )
    db.session.add(creator)
    db.session.commit()
    return creator


@pytest.fixture()
def auth_headers(creator):
    token = issue_api_token(creator)
    db.session.commit()
    return {'Authorization': f"Bearer {token}"}


@pytest.fixture()
def plan(creator):
    plan = Plan(creator_id=creator.id, name='VIP Monthly', description='VIP group', price=Decimal('29.90'),
                duration_days=30, is_recurring=False, is_active=True)
    db.session.add(plan)
    db.session.commit()
    return plan


@pytest.fixture()
def make_subscription(creator):
    """Persist a subscription with one transaction, bypassing any gateway."""

    def _make(status='pending', tx_status='pending', gateway='fake', payment_id='pay_1',
              correlation_id='sub_corr1', duration_days=30, expires_at=None, user_email=None,
              gateway_subscription_id=None):
        subscription = Subscription(
            creator_id=creator.id,
            user_external_id='777',
            user_email=user_email,
            gateway=gateway,
            gateway_subscription_id=gateway_subscription_id,
            status=status,
            duration_days=duration_days,
            expires_at=expires_at,
            starts_at=datetime.utcnow() if status == 'active' else None,
        )
        transaction = Transaction(
            subscription=subscription,
            gateway=gateway,
            gateway_payment_id=payment_id,
            correlation_id=correlation_id,
            status=tx_status,
            amount_gross=Decimal('10.00'),
            amount_platform_fee=Decimal('0.55'),
            amount_creator_net=Decimal('9.45'),
        )
        db.session.add(subscription)
        db.session.add(transaction)
        db.session.commit()
        return subscription

    return _make


def make_response(status=200, body=None, text=None):
    """requests.Response stand-in for ProviderClient tests"""
    response = MagicMock()
    response.status_code = status
    if body is not None:
        response.content = json.dumps(body).encode('utf-8')
        response.json.return_value = body
        response.text = json.dumps(body)
    else:
        response.content = (text or '').encode('utf-8')
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ''
    return response


@pytest.fixture()
def http_session(monkeypatch):
    """Replaces requests.Session used by ProviderClient; queue responses on .request"""
    session = MagicMock()
    session.headers = {}
    monkeypatch.setattr('gateways.http.requests.Session', lambda: session)
    return session


def stripe_signature(payload, secret='whsec_test'):
    """Stripe-Signature header for a JSON payload, as Stripe signs it"""
    ts = int(time.time())
    signed = f"{ts}.{payload}".encode()
    v1 = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return {'Stripe-Signature': f"t={ts},v1={v1}"}


def mp_signature(secret, data_id, request_id, ts):
    """x-signature / x-request-id headers as Mercado Pago sends them"""
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    v1 = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return {'x-signature': f"ts={ts},v1={v1}", 'x-request-id': request_id}
