"""
ParadisePag adapter (hosted PIX checkout).

Creator credentials are a JSON object {"public_key": ..., "secret_key": ...}.
"""
import json
import logging

from errors import ConfigurationError
from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    GatewayAdapter, NormalizedEvent, PaymentResult,
    classify, load_json, parse_timestamp, to_decimal,
)
from gateways.http import ProviderClient

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'pending': PENDING,
    'processing': PENDING,
    'success': CONFIRMED,
    'paid': CONFIRMED,
    'approved': CONFIRMED,
    'failed': FAILED,
    'cancelled': FAILED,
    'canceled': FAILED,
    'expired': FAILED,
    'refunded': REFUNDED,
}


class ParadisePagAdapter(GatewayAdapter):
    gateway_id = 'paradisepag'
    display_name = 'ParadisePag'
    description = 'PIX, Cartão'

    def __init__(self, api_url, frontend_url='', logo_url=None, timeout=15):
        self.api_url = api_url
        self.frontend_url = (frontend_url or '').rstrip('/')
        self.logo_url = logo_url
        self.timeout = timeout

    def parse_credentials(self, credentials):
        if isinstance(credentials, dict):
            keys = credentials
        else:
            raw = self.require_credentials(credentials)
            try:
                keys = json.loads(raw)
            except ValueError:
                keys = None
        if not isinstance(keys, dict) or not keys.get('public_key') or not keys.get('secret_key'):
            raise ConfigurationError(
                "ParadisePag credentials must contain public_key and secret_key", gateway=self.gateway_id
            )
        return keys

    def client(self, credentials):
        keys = self.parse_credentials(credentials)
        return ProviderClient(
            self.gateway_id, self.api_url,
            headers={'Public-Key': keys['public_key'], 'Secret-Key': keys['secret_key']},
            timeout=self.timeout,
        )

    def create_payment(self, credentials, request):
        self.require_positive(request.amount)
        client = self.client(credentials)

        split_rules = [{'recipient': 'platform', 'amount': float(request.split.platform_fee)}]
        if request.creator_account:
            split_rules.append({'recipient': request.creator_account, 'amount': float(request.split.creator_net)})

        payload = {
            'amount': float(request.split.gross),
            'currency': 'BRL',
            'description': request.description,
            'identifier': request.external_reference,
            'customer_name': request.payer.display_name,
            'customer_email': request.payer.contact_email,
            'ipn_url': request.notification_url,
            'success_url': request.success_url or self.frontend_url,
            'cancel_url': request.cancel_url or self.frontend_url,
            'metadata': {
                'external_reference': request.external_reference,
                'split_rules': json.dumps(split_rules),
            },
        }
        if self.logo_url:
            payload['site_logo'] = self.logo_url

        data = client.post('/initiate-payment', json=payload)
        return PaymentResult(
            external_id=data.get('transaction_id') or data.get('id'),
            status=classify(data.get('status'), STATUS_MAP),
            split=request.split,
            pay_url=data.get('payment_url') or data.get('url'),
            qr_code=data.get('copy_paste') or data.get('qr_code'),
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
        payment_id = body.get('transaction_id') or body.get('id')
        if not payment_id:
            return None
        metadata = body.get('metadata') if isinstance(body.get('metadata'), dict) else {}
        status = body.get('status')
        return NormalizedEvent(
            provider_payment_id=str(payment_id),
            provider_status=status,
            external_reference=body.get('identifier') or metadata.get('external_reference'),
            amount_paid=to_decimal(body.get('amount')),
            paid_at=parse_timestamp(body.get('paid_at')),
            outcome=classify(status, STATUS_MAP),
            event_type='ipn',
            raw=body,
        )
