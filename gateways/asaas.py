"""
Asaas adapter (PIX, boleto, card).

Charges are created in the creator's own Asaas account with the creator's
API key; the platform fee travels as a fixed-value split to the platform
wallet.
"""
import hmac
import logging
from datetime import date, timedelta

from errors import NotFoundError
from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    GatewayAdapter, NormalizedEvent, PaymentResult, SubscriptionResult,
    classify, header, load_json, parse_timestamp, to_decimal,
)
from gateways.http import ProviderClient

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'CONFIRMED': CONFIRMED,
    'RECEIVED': CONFIRMED,
    'RECEIVED_IN_CASH': CONFIRMED,
    'PENDING': PENDING,
    'AWAITING_RISK_ANALYSIS': PENDING,
    'OVERDUE': FAILED,
    'CANCELLED': FAILED,
    'DELETED': FAILED,
    'REFUNDED': REFUNDED,
    'REFUND_REQUESTED': PENDING,
    'CHARGEBACK_REQUESTED': PENDING,
}

# Event names that describe a payment removal rather than a status field change
EVENT_MAP = {
    'PAYMENT_DELETED': FAILED,
    'PAYMENT_REFUNDED': REFUNDED,
}


def next_due_date(today=None):
    return ((today or date.today()) + timedelta(days=1)).isoformat()


class AsaasAdapter(GatewayAdapter):
    gateway_id = 'asaas'
    display_name = 'Asaas'
    description = 'PIX, Boleto, Cartão'

    def __init__(self, api_url, platform_wallet_id=None, webhook_token=None, timeout=15):
        self.api_url = api_url
        self.platform_wallet_id = platform_wallet_id
        self.webhook_token = webhook_token
        self.timeout = timeout

    def client(self, credentials):
        api_key = self.require_credentials(credentials)
        return ProviderClient(self.gateway_id, self.api_url, headers={'access_token': api_key}, timeout=self.timeout)

    def _split_rules(self, split):
        if not self.platform_wallet_id:
            logger.warning("ASAAS_PLATFORM_WALLET_ID not configured, charge created without platform split")
            return None
        return [{'walletId': self.platform_wallet_id, 'fixedValue': float(split.platform_fee)}]

    def ensure_customer(self, client, request):
        """Find the payer by e-mail in the creator's account, or create them."""
        email = request.payer.contact_email
        found = client.get('/customers', params={'email': email})
        existing = (found.get('data') or [None])[0]
        if existing:
            return existing['id']
        created = client.post('/customers', json={
            'name': request.payer.display_name,
            'email': email,
            'externalReference': request.payer.external_id,
            'notificationDisabled': False,
        })
        return created['id']

    def create_payment(self, credentials, request):
        self.require_positive(request.amount)
        client = self.client(credentials)
        customer_id = self.ensure_customer(client, request)

        payload = {
            'customer': customer_id,
            'billingType': 'PIX',
            'value': float(request.split.gross),
            'dueDate': next_due_date(),
            'description': request.description,
            'externalReference': request.external_reference,
        }
        split = self._split_rules(request.split)
        if split:
            payload['split'] = split
        if request.success_url:
            payload['callback'] = {'successUrl': request.success_url, 'autoRedirect': True}

        data = client.post('/payments', json=payload)
        qr_code = None
        qr_image = None
        try:
            pix = client.get(f"/payments/{data['id']}/pixQrCode")
            qr_code = pix.get('payload')
            qr_image = pix.get('encodedImage')
        except NotFoundError:
            logger.info("Asaas payment %s has no PIX QR code yet", data.get('id'))

        return PaymentResult(
            external_id=data.get('id'),
            status=classify(data.get('status'), STATUS_MAP),
            split=request.split,
            pay_url=data.get('invoiceUrl'),
            qr_code=qr_code,
            qr_code_base64=qr_image,
            raw=data,
        )

    def create_subscription(self, credentials, request):
        self.require_positive(request.amount)
        client = self.client(credentials)
        customer_id = self.ensure_customer(client, request)

        payload = {
            'customer': customer_id,
            'billingType': 'UNDEFINED',
            'value': float(request.split.gross),
            'nextDueDate': next_due_date(),
            'cycle': request.cycle or 'MONTHLY',
            'description': request.description,
            'externalReference': request.external_reference,
        }
        split = self._split_rules(request.split)
        if split:
            payload['split'] = split

        data = client.post('/subscriptions', json=payload)

        # The first charge is generated asynchronously; its invoice may not exist yet
        pay_url = None
        payment_id = None
        try:
            charges = client.get(f"/subscriptions/{data['id']}/payments")
            first = (charges.get('data') or [None])[0]
            if first:
                pay_url = first.get('invoiceUrl')
                payment_id = first.get('id')
        except NotFoundError:
            logger.info("Asaas subscription %s has no charge yet", data.get('id'))

        return SubscriptionResult(
            external_id=data.get('id'),
            split=request.split,
            pay_url=pay_url,
            payment_id=payment_id,
            raw=data,
        )

    def cancel_subscription(self, credentials, external_id):
        client = self.client(credentials)
        return client.delete(f"/subscriptions/{external_id}")

    def verify_webhook(self, raw_payload, headers, query=None):
        if not self.webhook_token:
            return True
        supplied = header(headers, 'asaas-access-token') or ''
        return hmac.compare_digest(supplied, self.webhook_token)

    def parse_webhook(self, raw_payload, headers, query=None):
        if not self.verify_webhook(raw_payload, headers):
            return None
        body = load_json(raw_payload)
        payment = body.get('payment')
        if not isinstance(payment, dict):
            return None

        status = payment.get('status')
        outcome = EVENT_MAP.get(body.get('event')) or classify(status, STATUS_MAP)
        return NormalizedEvent(
            provider_payment_id=payment.get('id'),
            provider_status=status or body.get('event'),
            external_reference=payment.get('externalReference'),
            amount_paid=to_decimal(payment.get('value')),
            paid_at=parse_timestamp(payment.get('confirmedDate') or payment.get('paymentDate')),
            outcome=outcome,
            event_type=body.get('event'),
            raw=body,
        )
