import pytest

from washly.services.pricing import (
    FeeAdjustments, PricingCalculator, percentage_of, round_cents
)
from washly.services.pricing_settings import (
    PricingSettings,
    TAX_PERCENTAGE_SETTING_KEY,
    STRIPE_FEE_PERCENTAGE_SETTING_KEY,
    EXTRA_FEE_AMOUNT_SETTING_KEY,
    LOYALTY_POINTS_PER_UNIT_SETTING_KEY,
    LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY,
    ENABLE_COUPONS_FLAG_KEY,
)


def test_round_cents_halves_away_from_zero():
    assert round_cents(402.5) == 403
    assert round_cents(402.4) == 402
    assert round_cents(-2.5) == -3


@pytest.mark.parametrize('price, discount, expected', [
    (10000, 20, 8000),
    (10000, None, 10000),
    (10000, 0, 10000),
    (10000, 100, 0),
    (10000, 150, 0),
    (10000, -5, 10000),
    (999, 33, 669),
    (0, 20, 0),
    (-100, 20, 0),
    (float('nan'), 20, 0),
    (float('inf'), 20, 0),
    (None, 20, 0),
])
def test_calculate_discounted_price(price, discount, expected):
    assert PricingCalculator.calculate_discounted_price(price, discount) == expected


def test_discounted_price_is_bounded_and_non_increasing():
    for price in (0, 1, 99, 1234, 10000):
        previous = price
        for discount in range(0, 101):
            result = PricingCalculator.calculate_discounted_price(price, discount)
            assert 0 <= result <= price
            assert result <= previous
            previous = result


def test_fees_are_additive_against_the_same_base():
    adjustments = FeeAdjustments(tax_percentage=10, stripe_fee_percentage=5)
    assert PricingCalculator.apply_fees_to_price(8000, adjustments) == 8000 + 800 + 400
    # Not compounded: 8000 * 1.10 * 1.05 would be 9240
    assert PricingCalculator.apply_fees_to_price(8000, adjustments) != 9240


def test_fees_round_each_term():
    adjustments = FeeAdjustments(tax_percentage=5, stripe_fee_percentage=2.9, extra_fee_amount_cents=200)
    # 8050 * 5% = 402.5 -> 403, 8050 * 2.9% = 233.45 -> 233
    assert PricingCalculator.apply_fees_to_price(8050, adjustments) == 8050 + 403 + 233 + 200


def test_fees_never_reduce_price():
    adjustments = FeeAdjustments(tax_percentage=-10, stripe_fee_percentage=None, extra_fee_amount_cents=-500)
    assert PricingCalculator.apply_fees_to_price(5000, adjustments) == 5000
    assert PricingCalculator.apply_fees_to_price(5000, None) == 5000
    assert PricingCalculator.apply_fees_to_price(-100, adjustments) == 0


def test_fee_percentages_are_clamped():
    adjustments = FeeAdjustments(tax_percentage=250)
    assert PricingCalculator.apply_fees_to_price(1000, adjustments) == 2000


def test_fee_breakdown_matches_total():
    adjustments = FeeAdjustments(tax_percentage=5, stripe_fee_percentage=3, extra_fee_amount_cents=200)
    breakdown = PricingCalculator.fee_breakdown(7000, adjustments)
    assert breakdown == {'tax_cents': 350, 'stripe_fee_cents': 210, 'extra_fee_cents': 200}
    assert 7000 + sum(breakdown.values()) == PricingCalculator.apply_fees_to_price(7000, adjustments)


def test_price_after_credit_floors_net_at_zero():
    adjustments = FeeAdjustments(tax_percentage=5, extra_fee_amount_cents=200)
    assert PricingCalculator.calculate_price_after_credit(10000, 20, 3000, adjustments) == 5000 + 250 + 200
    assert PricingCalculator.calculate_price_after_credit(10000, 20, 9000, adjustments) == 200


def test_apply_coupon_and_credits_order():
    adjustments = FeeAdjustments(tax_percentage=5, extra_fee_amount_cents=200)
    # discount 10000 -> 8000, coupon 1000, credit 500, fees on the 6500 net
    assert PricingCalculator.apply_coupon_and_credits(10000, 20, 1000, 500, adjustments) == 6500 + 325 + 200
    assert PricingCalculator.net_after_coupon_and_credits(10000, 20, 6000, 6000) == 0
    assert PricingCalculator.net_after_coupon_and_credits(10000, 20, -100, None) == 8000


def test_percentage_of_ignores_invalid_percentages():
    assert percentage_of(1000, None) == 0
    assert percentage_of(1000, float('nan')) == 0
    assert percentage_of(1000, 12.5) == 125


class TestPricingSettingsParsing:

    def test_empty_rows_give_defaults(self):
        settings = PricingSettings.from_rows({})
        assert settings.tax_percentage is None
        assert settings.stripe_fee_percentage is None
        assert settings.extra_fee_amount_cents is None
        assert settings.loyalty.points_per_unit == 1
        assert settings.loyalty.points_per_credit_unit == 10
        assert settings.enable_coupons is True
        assert settings.enable_loyalty is True

    def test_comma_decimal_separator(self):
        settings = PricingSettings.from_rows({TAX_PERCENTAGE_SETTING_KEY: '7,5'})
        assert settings.tax_percentage == 7.5

    @pytest.mark.parametrize('raw', ['101', '-1', 'abc', '', 'nan'])
    def test_invalid_percentage_is_unset(self, raw):
        settings = PricingSettings.from_rows({STRIPE_FEE_PERCENTAGE_SETTING_KEY: raw})
        assert settings.stripe_fee_percentage is None

    def test_extra_fee_converted_to_minor_units(self):
        settings = PricingSettings.from_rows({EXTRA_FEE_AMOUNT_SETTING_KEY: '2.5'})
        assert settings.extra_fee_amount_cents == 250
        assert settings.fee_adjustments.extra_fee_amount_cents == 250

    @pytest.mark.parametrize('raw, cents', [('0.125', 13), ('1.005', 101), ('0,015', 2)])
    def test_extra_fee_rounds_halves_up(self, raw, cents):
        settings = PricingSettings.from_rows({EXTRA_FEE_AMOUNT_SETTING_KEY: raw})
        assert settings.extra_fee_amount_cents == cents

    def test_invalid_loyalty_rates_fall_back(self):
        settings = PricingSettings.from_rows({
            LOYALTY_POINTS_PER_UNIT_SETTING_KEY: '0',
            LOYALTY_POINTS_PER_CREDIT_UNIT_SETTING_KEY: 'x',
        })
        assert settings.loyalty.points_per_unit == 1
        assert settings.loyalty.points_per_credit_unit == 10

    def test_feature_flag(self):
        settings = PricingSettings.from_rows({ENABLE_COUPONS_FLAG_KEY: 'false'})
        assert settings.enable_coupons is False
        assert settings.enable_loyalty is True
