"""
SyncPay adapter (PIX with recipient splits).
"""
import logging

from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    GatewayAdapter, NormalizedEvent, PaymentResult,
    classify, load_json, parse_timestamp, to_decimal,
)
from gateways.http import ProviderClient

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'pending': PENDING,
    'waiting_payment': PENDING,
    'paid': CONFIRMED,
    'approved': CONFIRMED,
    'completed': CONFIRMED,
    'failed': FAILED,
    'canceled': FAILED,
    'cancelled': FAILED,
    'expired': FAILED,
    'refunded': REFUNDED,
}


class SyncPayAdapter(GatewayAdapter):
    gateway_id = 'syncpay'
    display_name = 'SyncPay'
    description = 'PIX'

    def __init__(self, api_url, platform_recipient_id=None, timeout=15):
        self.api_url = api_url
        self.platform_recipient_id = platform_recipient_id
        self.timeout = timeout

    def client(self, credentials):
        api_key = self.require_credentials(credentials)
        return ProviderClient(
            self.gateway_id, self.api_url,
            headers={'Authorization': f"Bearer {api_key}"}, timeout=self.timeout,
        )

    def split_rules(self, request):
        rules = []
        if self.platform_recipient_id:
            rules.append({
                'recipient_id': self.platform_recipient_id,
                'amount': float(request.split.platform_fee),
                'fee_payer': True,
            })
        else:
            logger.warning("SYNCPAY_PLATFORM_RECIPIENT_ID not configured, charge created without platform split")
        if request.creator_account:
            rules.append({
                'recipient_id': request.creator_account,
                'amount': float(request.split.creator_net),
                'fee_payer': False,
            })
        return rules

    def create_payment(self, credentials, request):
        self.require_positive(request.amount)
        client = self.client(credentials)

        payload = {
            'amount': float(request.split.gross),
            'description': request.description,
            'external_reference': request.external_reference,
            'payer': {
                'name': request.payer.display_name,
                'email': request.payer.contact_email,
            },
            'callback_url': request.notification_url,
        }
        rules = self.split_rules(request)
        if rules:
            payload['split'] = rules

        data = client.post('/v1/pix', json=payload)
        return PaymentResult(
            external_id=data.get('id'),
            status=classify(data.get('status'), STATUS_MAP),
            split=request.split,
            pay_url=data.get('payment_url'),
            qr_code=data.get('pix_copy_paste') or data.get('pix_qr_code'),
            qr_code_base64=data.get('pix_qr_code_base64'),
            raw=data,
        )

    def create_subscription(self, credentials, request):
        return self.unsupported('create_subscription')

    def cancel_subscription(self, credentials, external_id):
        return self.unsupported('cancel_subscription')

    def verify_webhook(self, raw_payload, headers, query=None):
        return True

    def parse_webhook(self, raw_payload, headers, query=None):
        body = load_json(raw_payload)
        data = body.get('data') if isinstance(body.get('data'), dict) else body
        payment_id = data.get('id')
        if not payment_id:
            return None
        status = data.get('status')
        return NormalizedEvent(
            provider_payment_id=str(payment_id),
            provider_status=status,
            external_reference=data.get('external_reference'),
            amount_paid=to_decimal(data.get('amount')),
            paid_at=parse_timestamp(data.get('paid_at')),
            outcome=classify(status, STATUS_MAP),
            event_type=body.get('event'),
            raw=body,
        )
