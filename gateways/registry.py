"""
Gateway registry: maps gateway ids to configured adapter instances.
"""
from errors import UnsupportedGatewayError
from gateways.asaas import AsaasAdapter
from gateways.mercadopago import MercadoPagoAdapter
from gateways.paradisepag import ParadisePagAdapter
from gateways.pushinpay import PushinPayAdapter
from gateways.stripe_connect import StripeConnectAdapter
from gateways.syncpay import SyncPayAdapter


class GatewayRegistry:
    def __init__(self, adapters=()):
        self._adapters = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter):
        self._adapters[adapter.gateway_id.lower()] = adapter
        return adapter

    def get(self, gateway_id):
        adapter = self._adapters.get((gateway_id or '').strip().lower())
        if adapter is None:
            raise UnsupportedGatewayError(gateway_id)
        return adapter

    def __contains__(self, gateway_id):
        return (gateway_id or '').strip().lower() in self._adapters

    def ids(self):
        return list(self._adapters)

    def describe(self):
        """Supported gateways as shown on the creator's settings screen."""
        return [adapter.describe() for adapter in self._adapters.values()]


def build_registry(config):
    """Instantiate all six adapters from a Flask config mapping."""
    timeout = config.get('PROVIDER_TIMEOUT_SECONDS', 15)
    frontend_url = config.get('FRONTEND_URL', '')
    return GatewayRegistry([
        PushinPayAdapter(
            config['PUSHINPAY_API_URL'],
            platform_account_id=config.get('PUSHINPAY_PLATFORM_ACCOUNT_ID'),
            timeout=timeout,
        ),
        MercadoPagoAdapter(
            config['MERCADOPAGO_API_URL'],
            platform_access_token=config.get('MERCADOPAGO_ACCESS_TOKEN'),
            webhook_secret=config.get('MERCADOPAGO_WEBHOOK_SECRET'),
            frontend_url=frontend_url,
            timeout=timeout,
        ),
        AsaasAdapter(
            config['ASAAS_API_URL'],
            platform_wallet_id=config.get('ASAAS_PLATFORM_WALLET_ID'),
            webhook_token=config.get('ASAAS_WEBHOOK_TOKEN'),
            timeout=timeout,
        ),
        StripeConnectAdapter(
            secret_key=config.get('STRIPE_SECRET_KEY'),
            webhook_secret=config.get('STRIPE_WEBHOOK_SECRET'),
            currency=config.get('STRIPE_CURRENCY', 'brl'),
            frontend_url=frontend_url,
            timeout=timeout,
        ),
        SyncPayAdapter(
            config['SYNCPAY_API_URL'],
            platform_recipient_id=config.get('SYNCPAY_PLATFORM_RECIPIENT_ID'),
            timeout=timeout,
        ),
        ParadisePagAdapter(
            config['PARADISEPAG_API_URL'],
            frontend_url=frontend_url,
            logo_url=config.get('PARADISEPAG_LOGO_URL'),
            timeout=timeout,
        ),
    ])
