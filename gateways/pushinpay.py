"""
PushinPay adapter (PIX only, amounts in cents).
"""
import logging
from urllib.parse import parse_qsl

from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    GatewayAdapter, NormalizedEvent, PaymentResult,
    classify, load_json, to_decimal,
)
from gateways.http import ProviderClient

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'created': PENDING,
    'paid': CONFIRMED,
    'canceled': FAILED,
    'cancelled': FAILED,
    'expired': FAILED,
    'refunded': REFUNDED,
}


def _decode_body(raw_payload):
    body = load_json(raw_payload)
    if body or raw_payload in (None, b'', ''):
        return body
    # PushinPay posts form-encoded bodies on some accounts
    text = raw_payload.decode('utf-8', 'replace') if isinstance(raw_payload, (bytes, bytearray)) else str(raw_payload)
    return dict(parse_qsl(text))


class PushinPayAdapter(GatewayAdapter):
    gateway_id = 'pushinpay'
    display_name = 'PushinPay'
    description = 'PIX (Aprovação Imediata)'
    recommended = True

    def __init__(self, api_url, platform_account_id=None, timeout=15):
        self.api_url = api_url
        self.platform_account_id = platform_account_id
        self.timeout = timeout

    def client(self, credentials):
        token = self.require_credentials(credentials)
        return ProviderClient(
            self.gateway_id, self.api_url,
            headers={'Authorization': f"Bearer {token}"}, timeout=self.timeout,
        )

    def create_payment(self, credentials, request):
        self.require_positive(request.amount)
        client = self.client(credentials)

        payload = {
            'value': request.split.gross_cents,
            'webhook_url': request.notification_url,
        }
        if self.platform_account_id:
            payload['split_rules'] = [{
                'value': request.split.platform_fee_cents,
                'account_id': self.platform_account_id,
            }]
        else:
            logger.warning("PUSHINPAY_PLATFORM_ACCOUNT_ID not configured, charge created without platform split")

        data = client.post('/api/pix/cashIn', json=payload)
        logger.info("PushinPay charge %s created for %s", data.get('id'), request.external_reference)
        return PaymentResult(
            external_id=data.get('id'),
            status=classify(data.get('status'), STATUS_MAP),
            split=request.split,
            qr_code=data.get('qr_code'),
            qr_code_base64=data.get('qr_code_base64'),
            raw=data,
        )

    def create_subscription(self, credentials, request):
        return self.unsupported('create_subscription')

    def cancel_subscription(self, credentials, external_id):
        return self.unsupported('cancel_subscription')

    def verify_webhook(self, raw_payload, headers, query=None):
        return True

    def parse_webhook(self, raw_payload, headers, query=None):
        body = _decode_body(raw_payload)
        payment_id = body.get('id')
        if not payment_id:
            return None
        status = body.get('status')
        return NormalizedEvent(
            provider_payment_id=str(payment_id),
            provider_status=status,
            external_reference=body.get('external_reference'),
            amount_paid=to_decimal(body.get('value'), cents=True),
            outcome=classify(status, STATUS_MAP),
            event_type='cashin',
            raw=body,
        )
