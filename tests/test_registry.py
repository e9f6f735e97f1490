import pytest

from errors import UnsupportedGatewayError
from gateways.registry import GatewayRegistry, build_registry
from gateways.stripe_connect import StripeConnectAdapter


def test_builds_all_six_gateways_from_config(app):
    registry = build_registry(app.config)

    assert sorted(registry.ids()) == ['asaas', 'mercadopago', 'paradisepag', 'pushinpay', 'stripe', 'syncpay']
    stripe_adapter = registry.get('stripe')
    assert isinstance(stripe_adapter, StripeConnectAdapter)
    assert stripe_adapter.webhook_secret == 'whsec_test'
    assert registry.get('pushinpay').platform_account_id == 'acc_platform'
    assert registry.get('asaas').timeout == 2


def test_lookup_is_case_insensitive(app):
    registry = build_registry(app.config)
    assert registry.get(' MercadoPago ').gateway_id == 'mercadopago'
    assert 'ASAAS' in registry
    assert 'paypal' not in registry


def test_unknown_gateway_is_rejected(app):
    registry = build_registry(app.config)
    with pytest.raises(UnsupportedGatewayError) as exc_info:
        registry.get('paypal')
    assert exc_info.value.code == 'UNSUPPORTED_GATEWAY'
    with pytest.raises(UnsupportedGatewayError):
        registry.get(None)


def test_registries_are_independent(fake_adapter):
    first = GatewayRegistry([fake_adapter])
    second = GatewayRegistry()

    assert 'fake' in first
    assert 'fake' not in second
    second.register(fake_adapter)
    assert second.get('FAKE') is fake_adapter


def test_describe_lists_display_metadata(app):
    described = {item['id']: item for item in build_registry(app.config).describe()}

    assert described['pushinpay']['recommended'] is True
    assert described['stripe']['name'] == 'Stripe'
    assert set(described['asaas']) == {'id', 'name', 'description', 'recommended'}
