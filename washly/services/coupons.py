"""
Coupon Service
Validates coupon codes, computes discounts and records redemptions
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from washly.extensions import db
from washly.models.booking import Booking
from washly.models.coupon import Coupon, CouponRedemption
from washly.services.errors import CouponError, CouponErrorKind
from washly.services.loyalty import LoyaltyService
from washly.services.notification import NotificationService
from washly.services.pricing_settings import PricingSettings
from washly.utils.audit_logging import AuditLogger

logger = logging.getLogger(__name__)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class CouponQuote:
    """A coupon that passed validation and the discount it yields"""
    coupon_id: str
    code: str
    discount_cents: int


class CouponService:
    """Service for coupon validation and redemption"""

    @staticmethod
    def find_coupon(code: str, for_update: bool = False) -> Optional[Coupon]:
        query = Coupon.query.filter_by(code=Coupon.normalize_code(code))
        if for_update:
            query = query.with_for_update()
        return query.first()

    @staticmethod
    def count_redemptions(coupon_id: str, user_id: str = None, exclude_booking_id: str = None) -> int:
        query = CouponRedemption.query.filter(CouponRedemption.coupon_id == coupon_id)
        if user_id:
            query = query.filter(CouponRedemption.user_id == user_id)
        if exclude_booking_id:
            query = query.filter(CouponRedemption.booking_id != exclude_booking_id)
        return query.count()

    @staticmethod
    def validate_and_calculate(
        code: str,
        user_id: str,
        service_id: str,
        price_cents: int,
        booking_id: str = None,
        settings: PricingSettings = None,
        for_update: bool = False,
        now: datetime = None
    ) -> CouponQuote:
        """
        Run the coupon checks in order and compute the discount.

        Args:
            code: Coupon code as typed by the customer
            user_id: Customer redeeming the coupon
            service_id: Service being booked
            price_cents: Price after the service/zone discount
            booking_id: Booking being priced; its own redemption is not counted
            settings: Pricing settings snapshot, loaded when omitted
            for_update: Lock the coupon row for the rest of the transaction

        Returns:
            CouponQuote with the clamped discount

        Raises:
            CouponError: On the first failed check
        """
        normalized = Coupon.normalize_code(code)
        if not normalized:
            raise CouponError(CouponErrorKind.INVALID_CODE, 'Coupon code is required')

        settings = settings or PricingSettings.load()
        if not settings.enable_coupons:
            raise CouponError(CouponErrorKind.FEATURE_DISABLED, 'Coupons are currently disabled')

        coupon = CouponService.find_coupon(normalized, for_update=for_update)
        if not coupon:
            raise CouponError(CouponErrorKind.NOT_FOUND, f"Coupon {normalized} not found")

        if not coupon.active:
            raise CouponError(CouponErrorKind.INACTIVE, f"Coupon {normalized} is not active")

        now = _naive_utc(now or datetime.now(timezone.utc))
        valid_from = _naive_utc(coupon.valid_from)
        valid_until = _naive_utc(coupon.valid_until)
        if valid_from and now < valid_from:
            raise CouponError(CouponErrorKind.NOT_YET_VALID, f"Coupon {normalized} is not valid yet")
        if valid_until and now > valid_until:
            raise CouponError(CouponErrorKind.EXPIRED, f"Coupon {normalized} has expired")

        minimum = coupon.min_booking_amount_cents or 0
        if price_cents < minimum:
            raise CouponError(
                CouponErrorKind.BELOW_MINIMUM,
                f"Coupon {normalized} requires a booking amount of at least {minimum}"
            )

        if not coupon.is_service_eligible(service_id):
            raise CouponError(
                CouponErrorKind.SERVICE_NOT_ELIGIBLE,
                f"Coupon {normalized} does not apply to this service"
            )

        if coupon.max_redemptions is not None:
            used = CouponService.count_redemptions(coupon.id, exclude_booking_id=booking_id)
            if used >= coupon.max_redemptions:
                raise CouponError(
                    CouponErrorKind.REDEMPTION_LIMIT_REACHED,
                    f"Coupon {normalized} has reached its redemption limit"
                )

        if coupon.max_redemptions_per_user is not None:
            used_by_user = CouponService.count_redemptions(
                coupon.id, user_id=user_id, exclude_booking_id=booking_id
            )
            if used_by_user >= coupon.max_redemptions_per_user:
                raise CouponError(
                    CouponErrorKind.USER_LIMIT_REACHED,
                    f"You have already used coupon {normalized} the maximum number of times"
                )

        discount_cents = coupon.discount.amount_off(price_cents)
        if discount_cents <= 0:
            raise CouponError(CouponErrorKind.NO_DISCOUNT, f"Coupon {normalized} gives no discount on this booking")

        return CouponQuote(coupon_id=coupon.id, code=coupon.code, discount_cents=discount_cents)

    @staticmethod
    def _get_pending_booking(booking_id: str, user_id: str) -> Booking:
        booking = Booking.query.filter_by(id=booking_id, user_id=user_id).with_for_update().first()
        if not booking:
            raise CouponError(CouponErrorKind.BOOKING_NOT_FOUND, 'Booking not found')
        if not booking.is_pending():
            raise CouponError(
                CouponErrorKind.INVALID_STATE,
                f"Coupons cannot be changed on a {booking.status.value} booking"
            )
        if booking.base_price_cents is None:
            raise CouponError(CouponErrorKind.INVALID_STATE, 'Booking has not been priced yet')
        return booking

    @staticmethod
    def _amounts(booking: Booking) -> Dict:
        return {
            'bookingId': booking.id,
            'couponCode': booking.coupon_code,
            'couponDiscountCents': booking.coupon_discount_cents or 0,
            'discountedPriceCents': booking.discounted_price_cents(),
            'loyaltyPointsApplied': booking.loyalty_points_applied or 0,
            'loyaltyCreditAppliedCents': booking.loyalty_credit_applied_cents or 0,
            'remainingAmountCents': booking.remaining_amount_cents(),
            'cashAmountCents': booking.cash_amount_cents
        }

    @staticmethod
    def apply_coupon_to_booking(booking_id: str, user_id: str, code: str) -> Dict:
        """
        Apply a coupon to a pending booking.

        The coupon fields on the booking and the redemption row are written in
        one transaction. Re-applying replaces the booking's previous redemption.
        """
        settings = PricingSettings.load()

        try:
            booking = CouponService._get_pending_booking(booking_id, user_id)
            quote = CouponService.validate_and_calculate(
                code,
                user_id=user_id,
                service_id=booking.service_id,
                price_cents=booking.discounted_price_cents(),
                booking_id=booking.id,
                settings=settings,
                for_update=True
            )

            # Old row goes first; booking_id is unique on redemptions
            if booking.coupon_redemption is not None:
                booking.coupon_redemption = None
                db.session.flush()

            booking.coupon_redemption = CouponRedemption(
                coupon_id=quote.coupon_id,
                user_id=user_id,
                amount_cents=quote.discount_cents
            )

            booking.coupon_id = quote.coupon_id
            booking.coupon_code = quote.code
            booking.coupon_discount_cents = quote.discount_cents
            released_points = LoyaltyService.reclamp_booking_credit(booking, settings)
            booking.refresh_cash_amount()

            AuditLogger.log_action(
                user_id=user_id,
                action='COUPON_APPLIED',
                entity_type='booking',
                entity_id=booking.id,
                description=f"Applied coupon {quote.code} to booking {booking.booking_reference}",
                changes={
                    'coupon_code': quote.code,
                    'coupon_discount_cents': quote.discount_cents,
                    'loyalty_points_returned': released_points
                },
                commit=False
            )

            db.session.commit()

        except CouponError as e:
            db.session.rollback()
            logger.info(f"Coupon rejected for booking {booking_id}: {e.kind.value} {e.message}")
            raise
        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Coupon {quote.code} applied to booking {booking.booking_reference}: -{quote.discount_cents}")
        NotificationService.notify_coupon_applied(booking)

        return CouponService._amounts(booking)

    @staticmethod
    def remove_coupon_from_booking(booking_id: str, user_id: str) -> Dict:
        """Clear the coupon from a pending booking and delete its redemption"""
        try:
            booking = CouponService._get_pending_booking(booking_id, user_id)

            if booking.coupon_id is None and booking.coupon_redemption is None:
                db.session.rollback()
                return CouponService._amounts(booking)

            removed_code = booking.coupon_code
            booking.coupon_redemption = None

            booking.coupon_id = None
            booking.coupon_code = None
            booking.coupon_discount_cents = None
            booking.refresh_cash_amount()

            AuditLogger.log_action(
                user_id=user_id,
                action='COUPON_REMOVED',
                entity_type='booking',
                entity_id=booking.id,
                description=f"Removed coupon {removed_code} from booking {booking.booking_reference}",
                commit=False
            )

            db.session.commit()

        except Exception:
            db.session.rollback()
            raise

        logger.info(f"Coupon {removed_code} removed from booking {booking.booking_reference}")
        NotificationService.notify_price_updated(booking)

        return CouponService._amounts(booking)
