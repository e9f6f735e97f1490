"""
Payment orchestration: one entry point for creating a payment link on any gateway
"""
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from errors import ConfigurationError
from gateways.base import Payer, PaymentRequest, SubscriptionResult, Unsupported
from models import db
from models.subscription import Subscription
from models.transaction import Transaction
from utils.split import Split, calculate_split

logger = logging.getLogger(__name__)


def generate_correlation_id():
    """Opaque reference sent to the provider and echoed back in webhooks."""
    return f"sub_{uuid.uuid4().hex}"


@dataclass
class CheckoutRequest:
    amount: Decimal
    title: str
    description: str
    payer: Payer
    plan_id: Optional[int] = None
    duration_days: Optional[int] = None  # None or 0 = lifetime
    recurring: bool = False
    cycle: str = 'MONTHLY'
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


@dataclass
class PaymentLinkResult:
    subscription_id: int
    transaction_id: int
    gateway: str
    external_reference: str
    split: Split
    pay_url: Optional[str] = None
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    recurring: bool = False

    def to_dict(self):
        return {
            'subscriptionId': self.subscription_id,
            'transactionId': self.transaction_id,
            'gateway': self.gateway,
            'externalReference': self.external_reference,
            'paymentUrl': self.pay_url,
            'qrCode': self.qr_code,
            'qrCodeBase64': self.qr_code_base64,
            'recurring': self.recurring,
            'split': self.split.to_dict(),
        }


class PaymentOrchestrator:
    """
    Validates the gateway choice, computes the split once, calls the adapter
    and persists the pending Subscription + Transaction in one unit of work.

    Nothing is written when the provider call fails.
    """

    def __init__(self, registry, fee_policy, api_base_url):
        self.registry = registry
        self.fee_policy = fee_policy
        self.api_base_url = api_base_url.rstrip('/')

    def notification_url(self, gateway_id):
        return f"{self.api_base_url}/api/webhooks/{gateway_id}"

    def create_payment_link(self, gateway_id, checkout, creator) -> PaymentLinkResult:
        adapter = self.registry.get(gateway_id)
        if not creator.has_gateway_configured:
            raise ConfigurationError(
                f"Creator #{creator.id} has not configured {adapter.display_name}", gateway=adapter.gateway_id
            )
        amount = Decimal(str(checkout.amount))
        if amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {checkout.amount}")

        split = calculate_split(amount, self.fee_policy)
        correlation_id = generate_correlation_id()
        request = PaymentRequest(
            amount=split.gross,
            title=checkout.title,
            description=checkout.description or checkout.title,
            payer=checkout.payer,
            split=split,
            external_reference=correlation_id,
            notification_url=self.notification_url(adapter.gateway_id),
            success_url=checkout.success_url,
            cancel_url=checkout.cancel_url,
            creator_account=creator.wallet_id,
            plan_id=checkout.plan_id,
            cycle=checkout.cycle,
        )
        credentials = creator.gateway_credentials

        result = None
        if checkout.recurring:
            result = adapter.create_subscription(credentials, request)
            if isinstance(result, Unsupported):
                logger.info("%s has no native recurring billing, creating a single-cycle payment for %s",
                            adapter.gateway_id, correlation_id)
                result = None
        if result is None:
            result = adapter.create_payment(credentials, request)

        is_subscription = isinstance(result, SubscriptionResult)
        subscription = Subscription(
            plan_id=checkout.plan_id,
            creator_id=creator.id,
            user_external_id=str(checkout.payer.external_id),
            user_username=checkout.payer.username,
            user_name=checkout.payer.name,
            user_email=checkout.payer.email,
            gateway=adapter.gateway_id,
            gateway_subscription_id=result.external_id if is_subscription else None,
            status='pending',
            duration_days=checkout.duration_days,
        )
        transaction = Transaction(
            subscription=subscription,
            gateway=adapter.gateway_id,
            gateway_payment_id=result.payment_id if is_subscription else result.external_id,
            correlation_id=correlation_id,
            gateway_status=None if is_subscription else result.raw.get('status'),
            status='pending',
            amount_gross=split.gross,
            amount_platform_fee=split.platform_fee,
            amount_creator_net=split.creator_net,
            payment_url=result.pay_url,
            qr_code=None if is_subscription else result.qr_code,
        )
        try:
            db.session.add(subscription)
            db.session.add(transaction)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Could not persist checkout %s (provider id %s) on %s",
                         correlation_id, result.external_id, adapter.gateway_id, exc_info=True)
            raise

        logger.info("Checkout %s created: subscription #%s on %s (gross %s, fee %s)",
                    correlation_id, subscription.id, adapter.gateway_id, split.gross, split.platform_fee)
        return PaymentLinkResult(
            subscription_id=subscription.id,
            transaction_id=transaction.id,
            gateway=adapter.gateway_id,
            external_reference=correlation_id,
            split=split,
            pay_url=result.pay_url,
            qr_code=None if is_subscription else result.qr_code,
            qr_code_base64=None if is_subscription else result.qr_code_base64,
            recurring=is_subscription,
        )
