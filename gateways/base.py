"""
Provider-neutral payment types shared by every gateway adapter.

Each adapter exposes the same four capabilities (create_payment,
create_subscription, cancel_subscription, parse_webhook). A provider that
lacks one returns an `Unsupported` value instead of raising, and callers
branch on it explicitly.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from errors import ConfigurationError
from utils.split import Split

CONFIRMED = 'confirmed'
FAILED = 'failed'
REFUNDED = 'refunded'
PENDING = 'pending'


@dataclass(frozen=True)
class Payer:
    external_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None

    @property
    def contact_email(self):
        """Providers insist on an e-mail; synthesize one from the messaging id."""
        return self.email or f"user_{self.external_id}@subscribers.invalid"

    @property
    def display_name(self):
        return self.name or self.username or 'Subscriber'


@dataclass
class PaymentRequest:
    amount: Decimal
    title: str
    description: str
    payer: Payer
    split: Split
    external_reference: str
    notification_url: str
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None
    creator_account: Optional[str] = None  # creator wallet / recipient / connected account
    plan_id: Optional[int] = None
    cycle: str = 'MONTHLY'


@dataclass
class PaymentResult:
    external_id: Optional[str]
    status: str
    split: Split
    pay_url: Optional[str] = None
    qr_code: Optional[str] = None
    qr_code_base64: Optional[str] = None
    raw: dict = field(default_factory=dict)


@dataclass
class SubscriptionResult:
    external_id: Optional[str]
    split: Split
    pay_url: Optional[str] = None
    payment_id: Optional[str] = None
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Unsupported:
    """Typed absence of a capability for a given provider."""
    gateway: str
    capability: str

    def __bool__(self):
        return False


@dataclass
class NormalizedEvent:
    provider_payment_id: Optional[str] = None
    provider_status: Optional[str] = None
    external_reference: Optional[str] = None
    amount_paid: Optional[Decimal] = None
    paid_at: Optional[datetime] = None
    outcome: str = PENDING
    event_type: Optional[str] = None
    gateway_subscription_id: Optional[str] = None  # recurring agreement id, when the provider assigns it late
    raw: Any = None

    @property
    def is_empty(self):
        return not self.provider_payment_id and not self.external_reference


def classify(status, status_map):
    """Map a raw provider status into confirmed/failed/refunded/pending."""
    if status is None:
        return PENDING
    key = str(status)
    return status_map.get(key, status_map.get(key.lower(), PENDING))


class GatewayAdapter:
    """Shared helpers; capabilities are declared explicitly by every adapter."""

    gateway_id = None
    display_name = None
    description = ''
    recommended = False
    signature_required = False

    def require_credentials(self, credentials):
        if credentials is None or not str(credentials).strip():
            raise ConfigurationError(
                f"{self.display_name} credentials are not configured", gateway=self.gateway_id
            )
        return str(credentials).strip()

    def require_positive(self, amount):
        if amount is None or Decimal(str(amount)) <= 0:
            raise ValueError(f"Payment amount must be positive, got {amount}")

    def unsupported(self, capability):
        return Unsupported(gateway=self.gateway_id, capability=capability)

    def enrich_event(self, event):
        """Fill in fields a thin notification omits. Most providers send everything."""
        return event

    def describe(self):
        return {
            'id': self.gateway_id,
            'name': self.display_name,
            'description': self.description,
            'recommended': self.recommended,
        }


def load_json(raw_payload):
    """Decode a webhook body into a dict; anything unparsable becomes {}."""
    if isinstance(raw_payload, dict):
        return raw_payload
    if raw_payload is None:
        return {}
    try:
        if isinstance(raw_payload, (bytes, bytearray)):
            raw_payload = raw_payload.decode('utf-8')
        data = json.loads(raw_payload)
    except (ValueError, UnicodeDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def header(headers, name):
    """Case-insensitive header lookup on any mapping."""
    if not headers:
        return None
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def to_decimal(value, cents=False):
    if value is None or value == '':
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    if cents:
        amount = amount / 100
    return amount.quantize(Decimal('0.01'))


def parse_timestamp(value):
    """ISO-8601 string, date string or epoch seconds → naive UTC datetime, else None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return _naive_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return _naive_utc(datetime.fromisoformat(text))
    except ValueError:
        return None


def _naive_utc(moment):
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment
