from decimal import Decimal

import pytest

from utils.split import Split, calculate_split, to_money


class FixedFee:
    def __init__(self, fee):
        self.fee = Decimal(fee)

    def current_fee(self):
        return self.fee


def test_fee_is_carved_out_of_gross():
    split = calculate_split(Decimal('10.00'), FixedFee('0.55'))

    assert split == Split(Decimal('10.00'), Decimal('0.55'), Decimal('9.45'))
    assert split.platform_fee + split.creator_net == split.gross


def test_gross_below_fee_floors_creator_net_without_reducing_fee():
    split = calculate_split(Decimal('0.50'), FixedFee('0.55'))

    assert split.gross == Decimal('0.50')
    assert split.platform_fee == Decimal('0.55')
    assert split.creator_net == Decimal('0.00')


def test_gross_equal_to_fee_leaves_nothing_for_creator():
    split = calculate_split('0.55', FixedFee('0.55'))
    assert split.creator_net == Decimal('0.00')


def test_zero_fee_gives_creator_everything():
    split = calculate_split('29.90', FixedFee('0'))
    assert split.platform_fee == Decimal('0.00')
    assert split.creator_net == Decimal('29.90')


def test_negative_gross_is_rejected():
    with pytest.raises(ValueError):
        calculate_split(Decimal('-1'), FixedFee('0.55'))


def test_rounding_is_half_up_to_cents():
    assert to_money('2.005') == Decimal('2.01')
    assert to_money('2.004') == Decimal('2.00')
    split = calculate_split('10.005', FixedFee('0.50'))
    assert split.gross == Decimal('10.01')
    assert split.creator_net == Decimal('9.51')


def test_float_input_does_not_leak_binary_error():
    split = calculate_split(19.9, FixedFee('0.55'))
    assert split.gross == Decimal('19.90')
    assert split.creator_net == Decimal('19.35')


def test_split_cents_and_dict():
    split = calculate_split('29.90', FixedFee('0.55'))

    assert split.gross_cents == 2990
    assert split.platform_fee_cents == 55
    assert split.creator_net_cents == 2935
    assert split.to_dict() == {'gross': 29.9, 'platformFee': 0.55, 'creatorNet': 29.35, 'isFixedFee': True}


@pytest.mark.parametrize('fee, platform_fee, creator_net', [
    ('0.555', Decimal('0.56'), Decimal('9.44')),
    ('0.554', Decimal('0.55'), Decimal('9.45')),
    ('1.005', Decimal('1.01'), Decimal('8.99')),
])
def test_sub_cent_fee_is_rounded_before_net_so_parts_add_up(fee, platform_fee, creator_net):
    split = calculate_split('10.00', FixedFee(fee))

    assert split.platform_fee == platform_fee
    assert split.creator_net == creator_net
    assert split.platform_fee + split.creator_net == split.gross
    assert split.platform_fee_cents + split.creator_net_cents == split.gross_cents
