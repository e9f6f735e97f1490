"""
Fee split between the platform and the creator
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal('0.01')


def to_money(value) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Split:
    gross: Decimal
    platform_fee: Decimal
    creator_net: Decimal

    @property
    def gross_cents(self) -> int:
        return int(self.gross * 100)

    @property
    def platform_fee_cents(self) -> int:
        return int(self.platform_fee * 100)

    @property
    def creator_net_cents(self) -> int:
        return int(self.creator_net * 100)

    def to_dict(self):
        return {
            'gross': float(self.gross),
            'platformFee': float(self.platform_fee),
            'creatorNet': float(self.creator_net),
            'isFixedFee': True,
        }


def calculate_split(gross_amount, fee_policy) -> Split:
    """
    Split a gross amount into platform fee and creator net.

    The platform fee is always the configured fixed fee. When the gross is
    smaller than the fee the creator net is floored at zero; the fee itself is
    not reduced. The fee is rounded to cents before the net is taken so that
    fee + net equals the gross whenever the gross covers the fee.
    """
    gross = Decimal(str(gross_amount))
    if gross < 0:
        raise ValueError(f"Gross amount must not be negative: {gross_amount}")
    gross = to_money(gross)
    fee = to_money(fee_policy.current_fee())
    net = max(Decimal('0'), gross - fee)
    return Split(gross=gross, platform_fee=fee, creator_net=net)
