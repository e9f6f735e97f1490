"""
Stripe adapter (Connect destination charges).

Checkout Sessions are created on the platform key. The creator's connected
account (acct_...) is the transfer destination and the platform keeps
`application_fee_amount`.
"""
import logging

import stripe

from errors import ConfigurationError, NotFoundError, ProviderRejectedError, ProviderTransportError
from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    GatewayAdapter, NormalizedEvent, PaymentResult, SubscriptionResult,
    header, load_json, parse_timestamp, to_decimal,
)

logger = logging.getLogger(__name__)

EVENT_MAP = {
    'checkout.session.async_payment_succeeded': CONFIRMED,
    'checkout.session.async_payment_failed': FAILED,
    'checkout.session.expired': FAILED,
    'charge.refunded': REFUNDED,
}

PAID_STATUSES = ('paid', 'no_payment_required')

CYCLE_INTERVALS = {
    'WEEKLY': ('week', 1),
    'MONTHLY': ('month', 1),
    'QUARTERLY': ('month', 3),
    'SEMIANNUALLY': ('month', 6),
    'YEARLY': ('year', 1),
}


class StripeConnectAdapter(GatewayAdapter):
    gateway_id = 'stripe'
    display_name = 'Stripe'
    description = 'Cartão de Crédito Internacional'
    signature_required = True

    def __init__(self, secret_key=None, webhook_secret=None, currency='brl',
                 frontend_url='', timeout=15, client_factory=None):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.frontend_url = (frontend_url or '').rstrip('/')
        self.timeout = timeout
        self._client_factory = client_factory or self._default_client
        self._client = None

    def _default_client(self):
        return stripe.StripeClient(
            self.secret_key,
            http_client=stripe.RequestsClient(timeout=self.timeout),
        )

    @property
    def client(self):
        if not self.secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY is not configured", gateway=self.gateway_id)
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def _call(self, operation, *args, **kwargs):
        try:
            return operation(*args, **kwargs)
        except (stripe.AuthenticationError, stripe.PermissionError) as e:
            raise ConfigurationError(f"Stripe rejected the credentials: {e.user_message or e}",
                                     gateway=self.gateway_id) from e
        except stripe.InvalidRequestError as e:
            if e.code == 'resource_missing':
                raise NotFoundError(f"Stripe resource not found: {e.user_message or e}",
                                    gateway=self.gateway_id) from e
            raise ProviderRejectedError(f"Stripe rejected the request: {e.user_message or e}",
                                        gateway=self.gateway_id, status_code=e.http_status,
                                        details=e.json_body) from e
        except stripe.APIConnectionError as e:
            raise ProviderTransportError(f"Connection error talking to Stripe: {e}",
                                         gateway=self.gateway_id) from e
        except stripe.StripeError as e:
            raise ProviderTransportError(f"Stripe error: {e}", gateway=self.gateway_id,
                                         status_code=e.http_status) from e

    def _session_params(self, request, recurring):
        destination = self.require_credentials(request.creator_account)
        price_data = {
            'currency': self.currency,
            'product_data': {'name': request.title, 'description': request.description or request.title},
            'unit_amount': request.split.gross_cents,
        }
        metadata = {
            'external_reference': request.external_reference,
            'user_external_id': str(request.payer.external_id),
            'plan_id': str(request.plan_id or ''),
        }
        params = {
            'mode': 'subscription' if recurring else 'payment',
            'line_items': [{'price_data': price_data, 'quantity': 1}],
            'success_url': request.success_url or f"{self.frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            'cancel_url': request.cancel_url or f"{self.frontend_url}/cancel",
            'client_reference_id': request.external_reference,
            'metadata': metadata,
        }
        if request.payer.email:
            params['customer_email'] = request.payer.email

        if recurring:
            interval, count = CYCLE_INTERVALS.get(request.cycle, ('month', 1))
            price_data['recurring'] = {'interval': interval, 'interval_count': count}
            # Subscriptions only accept a percentage transfer; send the creator's share.
            percent = 0
            if request.split.gross > 0:
                percent = round(float(request.split.creator_net / request.split.gross * 100), 2)
            params['subscription_data'] = {
                'transfer_data': {'destination': destination, 'amount_percent': percent},
                'metadata': metadata,
            }
        else:
            params['payment_intent_data'] = {
                'application_fee_amount': request.split.platform_fee_cents,
                'transfer_data': {'destination': destination},
                'metadata': metadata,
            }
        return params

    def create_payment(self, credentials, request):
        self.require_positive(request.amount)
        request.creator_account = request.creator_account or credentials
        params = self._session_params(request, recurring=False)
        session = self._call(self.client.checkout.sessions.create, params=params)
        return PaymentResult(
            external_id=session.id,
            status=PENDING,
            split=request.split,
            pay_url=session.url,
            raw={'id': session.id, 'url': session.url},
        )

    def create_subscription(self, credentials, request):
        self.require_positive(request.amount)
        request.creator_account = request.creator_account or credentials
        params = self._session_params(request, recurring=True)
        session = self._call(self.client.checkout.sessions.create, params=params)
        return SubscriptionResult(
            external_id=getattr(session, 'subscription', None),
            split=request.split,
            pay_url=session.url,
            payment_id=session.id,
            raw={'id': session.id, 'url': session.url},
        )

    def cancel_subscription(self, credentials, external_id):
        result = self._call(self.client.subscriptions.cancel, external_id)
        return {'id': result.id, 'status': result.status}

    def verify_webhook(self, raw_payload, headers, query=None):
        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured, rejecting notification")
            return False
        signature = header(headers, 'stripe-signature')
        if not signature:
            return False
        payload = raw_payload.decode('utf-8') if isinstance(raw_payload, (bytes, bytearray)) else raw_payload
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("Stripe webhook signature verification failed: %s", e)
            return False
        return True

    def parse_webhook(self, raw_payload, headers, query=None):
        if not self.verify_webhook(raw_payload, headers):
            return None
        body = load_json(raw_payload)
        event_type = body.get('type')
        data = body.get('data')
        obj = data.get('object') if isinstance(data, dict) else None
        if not isinstance(obj, dict):
            return None
        metadata = obj.get('metadata') if isinstance(obj.get('metadata'), dict) else {}

        if event_type == 'checkout.session.completed':
            status = obj.get('payment_status')
            outcome = CONFIRMED if status in PAID_STATUSES else PENDING
        elif event_type in EVENT_MAP:
            status = obj.get('payment_status') or obj.get('status')
            outcome = EVENT_MAP[event_type]
        else:
            return None

        subscription_id = None
        if event_type == 'charge.refunded':
            amount = to_decimal(obj.get('amount_refunded'), cents=True)
            provider_payment_id = obj.get('payment_intent') or obj.get('id')
        else:
            amount = to_decimal(obj.get('amount_total'), cents=True)
            provider_payment_id = obj.get('id')
            # Subscription-mode sessions only get their subscription id on completion
            if isinstance(obj.get('subscription'), str):
                subscription_id = obj['subscription']

        return NormalizedEvent(
            provider_payment_id=provider_payment_id,
            provider_status=status,
            external_reference=metadata.get('external_reference') or obj.get('client_reference_id'),
            amount_paid=amount,
            paid_at=parse_timestamp(obj.get('created')) if outcome == CONFIRMED else None,
            outcome=outcome,
            event_type=event_type,
            gateway_subscription_id=subscription_id,
            raw=body,
        )
