"""
Payment gateway adapters
"""
from gateways.base import (
    CONFIRMED, FAILED, PENDING, REFUNDED,
    NormalizedEvent, Payer, PaymentRequest, PaymentResult, SubscriptionResult, Unsupported,
)
from gateways.registry import GatewayRegistry, build_registry

__all__ = [
    'CONFIRMED', 'FAILED', 'PENDING', 'REFUNDED',
    'NormalizedEvent', 'Payer', 'PaymentRequest', 'PaymentResult', 'SubscriptionResult',
    'Unsupported', 'GatewayRegistry', 'build_registry',
]
