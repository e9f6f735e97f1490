"""
Mercado Pago adapter.

Preferences are created in the creator's account with the creator's access
token; `marketplace_fee` carries the platform fee. Notifications only carry
the payment id, so events are enriched with a lookup on the platform token.
"""
import hashlib
import hmac
import logging

from errors import NotFoundError
from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    GatewayAdapter, NormalizedEvent, PaymentResult,
    classify, header, load_json, parse_timestamp, to_decimal,
)
from gateways.http import ProviderClient

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'approved': CONFIRMED,
    'authorized': CONFIRMED,
    'pending': PENDING,
    'in_process': PENDING,
    'in_mediation': PENDING,
    'rejected': FAILED,
    'cancelled': FAILED,
    'refunded': REFUNDED,
    'charged_back': REFUNDED,
}


def parse_signature_header(value):
    """'ts=1704908010,v1=618c8534...' -> {'ts': '1704908010', 'v1': '618c8534...'}"""
    parts = {}
    for chunk in (value or '').split(','):
        key, sep, val = chunk.strip().partition('=')
        if sep:
            parts[key.strip()] = val.strip()
    return parts


class MercadoPagoAdapter(GatewayAdapter):
    gateway_id = 'mercadopago'
    display_name = 'Mercado Pago'
    description = 'PIX, Cartão, Boleto'
    signature_required = True

    def __init__(self, api_url, platform_access_token=None, webhook_secret=None,
                 frontend_url='', timeout=15):
        self.api_url = api_url
        self.platform_access_token = platform_access_token
        self.webhook_secret = webhook_secret
        self.frontend_url = (frontend_url or '').rstrip('/')
        self.timeout = timeout

    def client(self, access_token):
        token = self.require_credentials(access_token)
        return ProviderClient(
            self.gateway_id, self.api_url,
            headers={'Authorization': f"Bearer {token}"}, timeout=self.timeout,
        )

    def create_payment(self, credentials, request):
        self.require_positive(request.amount)
        client = self.client(credentials)

        success_url = request.success_url or f"{self.frontend_url}/success"
        failure_url = request.cancel_url or f"{self.frontend_url}/failure"
        preference = {
            'items': [{
                'id': str(request.plan_id or request.external_reference),
                'title': request.title,
                'description': request.description or '',
                'quantity': 1,
                'currency_id': 'BRL',
                'unit_price': float(request.split.gross),
            }],
            'payer': {
                'email': request.payer.contact_email,
                'name': request.payer.display_name,
            },
            'back_urls': {
                'success': success_url,
                'failure': failure_url,
                'pending': f"{self.frontend_url}/pending",
            },
            'auto_return': 'approved',
            'external_reference': request.external_reference,
            'notification_url': request.notification_url,
            'marketplace_fee': float(request.split.platform_fee),
            'metadata': {
                'user_external_id': request.payer.external_id,
                'plan_id': request.plan_id,
            },
        }

        data = client.post('/checkout/preferences', json=preference)
        return PaymentResult(
            external_id=data.get('id'),
            status=PENDING,
            split=request.split,
            pay_url=data.get('init_point') or data.get('sandbox_init_point'),
            raw=data,
        )

    def create_subscription(self, credentials, request):
        # Preapprovals cannot carry a marketplace fee, so recurring billing here
        # would route the whole amount to the creator.
        return self.unsupported('create_subscription')

    def cancel_subscription(self, credentials, external_id):
        client = self.client(credentials)
        return client.put(f"/preapproval/{external_id}", json={'status': 'cancelled'})

    def verify_webhook(self, raw_payload, headers, query=None):
        if not self.webhook_secret:
            logger.error("MERCADOPAGO_WEBHOOK_SECRET not configured, rejecting notification")
            return False
        parts = parse_signature_header(header(headers, 'x-signature'))
        ts = parts.get('ts')
        received = parts.get('v1')
        if not ts or not received:
            return False

        # The signed id is the data.id query parameter; older senders only put it in the body
        data_id = (query or {}).get('data.id')
        if data_id is None:
            data = load_json(raw_payload).get('data')
            data_id = data.get('id') if isinstance(data, dict) else None
        manifest = ''
        if data_id is not None:
            manifest += f"id:{str(data_id).lower()};"
        request_id = header(headers, 'x-request-id')
        if request_id:
            manifest += f"request-id:{request_id};"
        manifest += f"ts:{ts};"

        expected = hmac.new(
            self.webhook_secret.encode('utf-8'), manifest.encode('utf-8'), hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, received)

    def parse_webhook(self, raw_payload, headers, query=None):
        if not self.verify_webhook(raw_payload, headers, query):
            return None
        body = load_json(raw_payload)
        query = query or {}
        topic = body.get('type') or body.get('topic') or query.get('type')
        if topic != 'payment':
            return None
        data = body.get('data')
        payment_id = data.get('id') if isinstance(data, dict) else None
        if payment_id is None:
            payment_id = query.get('data.id')
        if payment_id is None:
            return None
        return NormalizedEvent(
            provider_payment_id=str(payment_id),
            event_type=body.get('action') or topic,
            outcome=PENDING,
            raw=body,
        )

    def enrich_event(self, event):
        """Fetch the payment with the platform token to learn its status and reference."""
        if event is None or not event.provider_payment_id:
            return event
        if not self.platform_access_token:
            logger.warning("MERCADOPAGO_ACCESS_TOKEN not configured, cannot look up payment %s",
                           event.provider_payment_id)
            return event
        try:
            payment = self.client(self.platform_access_token).get(f"/v1/payments/{event.provider_payment_id}")
        except NotFoundError:
            logger.warning("Mercado Pago payment %s not found", event.provider_payment_id)
            return event

        status = payment.get('status')
        event.provider_status = status
        event.outcome = classify(status, STATUS_MAP)
        event.external_reference = payment.get('external_reference') or event.external_reference
        event.amount_paid = to_decimal(payment.get('transaction_amount'))
        event.paid_at = parse_timestamp(payment.get('date_approved'))
        return event
