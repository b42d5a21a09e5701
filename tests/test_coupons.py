from unittest.mock import patch

import pytest

from washly.models import Booking, CouponRedemption, Notification, User
from washly.models.enums import BookingStatus, DiscountType
from washly.services.booking_pricing import PricingRequest, create_booking_with_pricing
from washly.services.coupons import CouponService
from washly.services.errors import CouponError, CouponErrorKind
from washly.services.loyalty import LoyaltyService


def quote(user, service, code='SAVE10', price_cents=8000, **kwargs):
    return CouponService.validate_and_calculate(
        code, user_id=user.id, service_id=service.id, price_cents=price_cents, **kwargs
    )


def new_booking(user, service):
    booking, _ = create_booking_with_pricing(PricingRequest(user_id=user.id, service_id=service.id))
    return booking


class TestCouponValidation:

    def test_amount_coupon(self, app, user, service, make_coupon):
        make_coupon()
        result = quote(user, service)
        assert result.discount_cents == 1000
        assert result.code == 'SAVE10'

    def test_code_is_normalized(self, app, user, service, make_coupon):
        make_coupon(code='save10')
        assert quote(user, service, code='  Save10 ').code == 'SAVE10'

    def test_percentage_coupon_uses_discounted_price(self, app, user, service, make_coupon):
        make_coupon(code='FIFTEEN', discount_type=DiscountType.PERCENTAGE, discount_value=15)
        assert quote(user, service, code='FIFTEEN').discount_cents == 1200

    def test_discount_is_clamped_to_price(self, app, user, service, make_coupon):
        make_coupon(code='BIG', discount_value=50000)
        make_coupon(code='ALL', discount_type=DiscountType.PERCENTAGE, discount_value=150)
        assert quote(user, service, code='BIG').discount_cents == 8000
        assert quote(user, service, code='ALL').discount_cents == 8000

    @pytest.mark.parametrize('code', ['', '   ', None])
    def test_blank_code(self, app, user, service, code):
        with pytest.raises(CouponError) as exc:
            quote(user, service, code=code)
        assert exc.value.kind == CouponErrorKind.INVALID_CODE

    def test_not_found(self, app, user, service):
        with pytest.raises(CouponError) as exc:
            quote(user, service, code='NOPE')
        assert exc.value.kind == CouponErrorKind.NOT_FOUND
        assert exc.value.status == 404

    def test_inactive(self, app, user, service, make_coupon):
        make_coupon(active=False)
        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.INACTIVE

    def test_expired(self, app, user, service, make_coupon, yesterday):
        make_coupon(valid_until=yesterday)
        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.EXPIRED

    def test_not_yet_valid(self, app, user, service, make_coupon, tomorrow):
        make_coupon(valid_from=tomorrow)
        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.NOT_YET_VALID

    def test_inside_window(self, app, user, service, make_coupon, yesterday, tomorrow):
        make_coupon(valid_from=yesterday, valid_until=tomorrow)
        assert quote(user, service).discount_cents == 1000

    def test_below_minimum_compares_discounted_price(self, app, user, service, make_coupon):
        make_coupon(min_booking_amount_cents=9000)
        with pytest.raises(CouponError) as exc:
            quote(user, service, price_cents=8000)
        assert exc.value.kind == CouponErrorKind.BELOW_MINIMUM

    def test_service_not_eligible(self, app, user, service, make_service, make_coupon):
        other = make_service(name='Interior')
        make_coupon(applies_to_all_services=False, applicable_service_ids=[other.id])
        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.SERVICE_NOT_ELIGIBLE

        assert quote(user, other).discount_cents == 1000

    def test_check_order_inactive_before_expired(self, app, user, service, make_coupon, yesterday):
        make_coupon(active=False, valid_until=yesterday)
        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.INACTIVE

    def test_global_limit(self, app, user, make_user, service, make_coupon):
        make_coupon(max_redemptions=1)
        other = make_user()
        CouponService.apply_coupon_to_booking(new_booking(other, service).id, other.id, 'SAVE10')

        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.REDEMPTION_LIMIT_REACHED

    def test_coupons_disabled(self, app, user, service, make_coupon, set_settings):
        make_coupon()
        set_settings(enable_coupons='false')
        with pytest.raises(CouponError) as exc:
            quote(user, service)
        assert exc.value.kind == CouponErrorKind.FEATURE_DISABLED
        assert exc.value.status == 403

    def test_zero_price_gives_no_discount(self, app, user, service, make_coupon):
        make_coupon()
        with pytest.raises(CouponError) as exc:
            quote(user, service, price_cents=0)
        assert exc.value.kind == CouponErrorKind.NO_DISCOUNT


class TestApplyCoupon:

    def test_apply_writes_booking_and_redemption(self, app, db, user, service, make_coupon, set_settings):
        set_settings(tax='5', extra_fee='2')
        make_coupon()
        booking = new_booking(user, service)
        assert booking.cash_amount_cents == 8600

        result = CouponService.apply_coupon_to_booking(booking.id, user.id, 'save10')

        assert result['couponDiscountCents'] == 1000
        assert result['remainingAmountCents'] == 7000
        assert result['cashAmountCents'] == 7550

        booking = db.session.get(Booking, booking.id)
        assert booking.coupon_code == 'SAVE10'
        redemption = CouponRedemption.query.filter_by(booking_id=booking.id).one()
        assert redemption.amount_cents == 1000
        assert redemption.user_id == user.id

    def test_user_limit(self, app, user, service, make_coupon):
        make_coupon(max_redemptions_per_user=2)
        bookings = [new_booking(user, service) for _ in range(3)]

        CouponService.apply_coupon_to_booking(bookings[0].id, user.id, 'SAVE10')
        CouponService.apply_coupon_to_booking(bookings[1].id, user.id, 'SAVE10')

        with pytest.raises(CouponError) as exc:
            CouponService.apply_coupon_to_booking(bookings[2].id, user.id, 'SAVE10')

        assert exc.value.kind == CouponErrorKind.USER_LIMIT_REACHED
        assert CouponRedemption.query.count() == 2
        assert Booking.query.filter_by(id=bookings[2].id).one().coupon_code is None

    def test_reapply_replaces_own_redemption(self, app, user, service, make_coupon):
        make_coupon(max_redemptions_per_user=1)
        make_coupon(code='PCT', discount_type=DiscountType.PERCENTAGE, discount_value=25)
        booking = new_booking(user, service)

        CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')
        CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')
        result = CouponService.apply_coupon_to_booking(booking.id, user.id, 'PCT')

        assert result['couponDiscountCents'] == 2000
        redemptions = CouponRedemption.query.filter_by(booking_id=booking.id).all()
        assert len(redemptions) == 1
        assert redemptions[0].amount_cents == 2000

    def test_failed_apply_keeps_previous_coupon(self, app, db, user, service, make_coupon, yesterday):
        make_coupon()
        make_coupon(code='OLD', valid_until=yesterday)
        booking = new_booking(user, service)
        CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')

        with pytest.raises(CouponError):
            CouponService.apply_coupon_to_booking(booking.id, user.id, 'OLD')

        booking = db.session.get(Booking, booking.id)
        assert booking.coupon_code == 'SAVE10'
        assert booking.coupon_discount_cents == 1000
        assert CouponRedemption.query.filter_by(booking_id=booking.id).count() == 1

    def test_other_users_booking(self, app, user, make_user, service, make_coupon):
        make_coupon()
        booking = new_booking(user, service)
        with pytest.raises(CouponError) as exc:
            CouponService.apply_coupon_to_booking(booking.id, make_user().id, 'SAVE10')
        assert exc.value.kind == CouponErrorKind.BOOKING_NOT_FOUND

    def test_paid_booking_is_rejected(self, app, db, user, service, make_coupon):
        make_coupon()
        booking = new_booking(user, service)
        booking.status = BookingStatus.PAID
        db.session.commit()

        with pytest.raises(CouponError) as exc:
            CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')
        assert exc.value.kind == CouponErrorKind.INVALID_STATE

    def test_coupon_after_loyalty_shrinks_credit(self, app, db, user, service, make_coupon, make_booking):
        make_booking(user, service, status=BookingStatus.PAID, cash_amount_cents=80000)
        make_coupon()
        booking = new_booking(user, service)
        LoyaltyService.apply_points_to_booking(booking.id, user.id, 800)

        result = CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')

        assert result['couponDiscountCents'] == 1000
        assert result['loyaltyPointsApplied'] == 700
        assert result['loyaltyCreditAppliedCents'] == 7000
        assert result['remainingAmountCents'] == 0

        db.session.expire_all()
        booking = db.session.get(Booking, booking.id)
        assert booking.coupon_discount_cents + booking.loyalty_credit_applied_cents <= booking.discounted_price_cents()
        assert db.session.get(User, user.id).loyalty_redeemed_points == 700

    def test_coupon_leaves_fitting_credit_alone(self, app, db, user, service, make_coupon, make_booking):
        make_booking(user, service, status=BookingStatus.PAID, cash_amount_cents=80000)
        make_coupon()
        booking = new_booking(user, service)
        LoyaltyService.apply_points_to_booking(booking.id, user.id, 300)

        result = CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')

        assert result['loyaltyPointsApplied'] == 300
        assert result['remainingAmountCents'] == 8000 - 1000 - 3000
        db.session.expire_all()
        assert db.session.get(User, user.id).loyalty_redeemed_points == 300

    def test_apply_notifies_customer(self, app, user, service, make_coupon):
        make_coupon()
        booking = new_booking(user, service)
        CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')

        notification = Notification.query.filter_by(booking_id=booking.id, type='coupon_applied').one()
        assert 'SAVE10' in notification.message

    def test_notification_failure_does_not_fail_apply(self, app, db, user, service, make_coupon):
        make_coupon()
        booking = new_booking(user, service)

        with patch('washly.services.notification.NotificationService.create_notification',
                   side_effect=RuntimeError('push down')):
            result = CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')

        assert result['couponDiscountCents'] == 1000
        assert db.session.get(Booking, booking.id).coupon_code == 'SAVE10'


class TestRemoveCoupon:

    def test_remove_restores_caps_and_uses_snapshot(self, app, db, user, service, make_coupon, set_settings):
        set_settings(tax='5', extra_fee='2')
        make_coupon(max_redemptions_per_user=1)
        booking = new_booking(user, service)
        CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')

        # Live settings change must not leak into the existing booking
        set_settings(tax='50')
        result = CouponService.remove_coupon_from_booking(booking.id, user.id)

        assert result['couponCode'] is None
        assert result['remainingAmountCents'] == 8000
        assert result['cashAmountCents'] == 8600
        assert CouponRedemption.query.count() == 0

        other_booking = new_booking(user, service)
        assert CouponService.apply_coupon_to_booking(other_booking.id, user.id, 'SAVE10')['couponDiscountCents'] == 1000

    def test_remove_without_coupon_is_a_no_op(self, app, user, service):
        booking = new_booking(user, service)
        result = CouponService.remove_coupon_from_booking(booking.id, user.id)
        assert result['couponCode'] is None
        assert result['remainingAmountCents'] == 8000

    def test_remove_from_paid_booking(self, app, db, user, service, make_coupon):
        make_coupon()
        booking = new_booking(user, service)
        CouponService.apply_coupon_to_booking(booking.id, user.id, 'SAVE10')
        booking = db.session.get(Booking, booking.id)
        booking.status = BookingStatus.PAID
        db.session.commit()

        with pytest.raises(CouponError) as exc:
            CouponService.remove_coupon_from_booking(booking.id, user.id)
        assert exc.value.kind == CouponErrorKind.INVALID_STATE
        assert exc.value.status == 400
        assert CouponRedemption.query.count() == 1
