"""
Loyalty Service
Derives loyalty balances from paid booking history and converts points to credit
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from sqlalchemy import case, func

from washly.extensions import db
from washly.models.booking import Booking
from washly.models.enums import BookingStatus
from washly.models.user import User
from washly.services.errors import PricingError, PricingErrorKind
from washly.services.notification import NotificationService
from washly.services.pricing_settings import LoyaltySettings, PricingSettings

logger = logging.getLogger(__name__)

QUALIFYING_STATUSES = (BookingStatus.PAID, BookingStatus.COMPLETED)


@dataclass(frozen=True)
class LoyaltyQuote:
    requested_points: int
    available_points: int
    points_applied: int
    credit_cents: int


NO_LOYALTY = LoyaltyQuote(requested_points=0, available_points=0, points_applied=0, credit_cents=0)


class LoyaltyService:
    """Service for loyalty balances and point redemption"""

    @staticmethod
    def points_for_cents(paid_cents: int, points_per_unit: int) -> int:
        return (max(0, paid_cents) * points_per_unit) // 100

    @staticmethod
    def credit_for_points(points: int, points_per_credit_unit: int) -> int:
        return (max(0, points) * 100) // points_per_credit_unit

    @staticmethod
    def max_points_for_price(price_cents: int, points_per_credit_unit: int) -> int:
        """Most points whose credit still fits inside the price"""
        return (max(0, price_cents) * points_per_credit_unit) // 100

    @staticmethod
    def paid_booking_totals(user_id: str) -> Tuple[int, int]:
        """(number of qualifying bookings, total paid cents)"""
        count, total = db.session.query(
            func.count(Booking.id),
            func.coalesce(func.sum(Booking.cash_amount_cents), 0)
        ).filter(
            Booking.user_id == user_id,
            Booking.status.in_(QUALIFYING_STATUSES),
            Booking.cash_amount_cents > 0
        ).one()
        return int(count or 0), int(total or 0)

    @staticmethod
    def compute_points_earned(user_id: str, loyalty: LoyaltySettings) -> int:
        _, total_paid = LoyaltyService.paid_booking_totals(user_id)
        return LoyaltyService.points_for_cents(total_paid, loyalty.points_per_unit)

    @staticmethod
    def compute_available_points(user: User, loyalty: LoyaltySettings) -> int:
        earned = LoyaltyService.compute_points_earned(user.id, loyalty)
        return max(0, earned - (user.loyalty_redeemed_points or 0))

    @staticmethod
    def compute_loyalty_summary(user_id: str, settings: PricingSettings = None) -> Dict:
        """
        Loyalty balance for a user.

        Earned points are recomputed from paid bookings on every call; only the
        redeemed counter is stored on the user.
        """
        user = db.session.get(User, user_id)
        if not user:
            raise PricingError(PricingErrorKind.USER_NOT_FOUND, 'User not found')

        settings = settings or PricingSettings.load()
        loyalty = settings.loyalty

        completed, total_paid = LoyaltyService.paid_booking_totals(user.id)
        earned = LoyaltyService.points_for_cents(total_paid, loyalty.points_per_unit)
        redeemed = user.loyalty_redeemed_points or 0
        available = max(0, earned - redeemed)

        next_free_wash_in = None
        if loyalty.free_wash_interval:
            remainder = completed % loyalty.free_wash_interval
            next_free_wash_in = loyalty.free_wash_interval - remainder

        return {
            'totalPointsEarned': earned,
            'pointsRedeemed': redeemed,
            'availablePoints': available,
            'availableCreditCents': LoyaltyService.credit_for_points(available, loyalty.points_per_credit_unit),
            'creditBalanceCents': user.loyalty_credit_cents or 0,
            'completedBookings': completed,
            'pointsPerCurrencyUnit': loyalty.points_per_unit,
            'pointsPerCreditUnit': loyalty.points_per_credit_unit,
            'freeWashInterval': loyalty.free_wash_interval,
            'nextFreeWashIn': next_free_wash_in,
            'enabled': settings.enable_loyalty
        }

    @staticmethod
    def quote_credit(
        user: User,
        requested_points: Optional[int],
        price_after_coupon_cents: int,
        settings: PricingSettings
    ) -> LoyaltyQuote:
        """
        Credit obtainable for a points request, without side effects.

        The request is clamped to the available balance and to the points the
        remaining price can absorb. Clamping is silent; only a negative request
        is an error.
        """
        if requested_points is None or requested_points == 0:
            return NO_LOYALTY
        if isinstance(requested_points, bool) or not isinstance(requested_points, int) or requested_points < 0:
            raise PricingError(
                PricingErrorKind.INVALID_LOYALTY_POINTS,
                'Loyalty points must be a non-negative integer'
            )

        if not settings.enable_loyalty:
            logger.info(f"Loyalty disabled; ignoring {requested_points} points for user {user.id}")
            return LoyaltyQuote(requested_points, 0, 0, 0)

        loyalty = settings.loyalty
        available = LoyaltyService.compute_available_points(user, loyalty)
        price_cap = LoyaltyService.max_points_for_price(price_after_coupon_cents, loyalty.points_per_credit_unit)

        points = min(requested_points, available, price_cap)
        credit = min(
            LoyaltyService.credit_for_points(points, loyalty.points_per_credit_unit),
            max(0, price_after_coupon_cents)
        )

        if points < requested_points:
            logger.info(
                f"Clamped loyalty request for user {user.id} from {requested_points} to {points} "
                f"(available {available}, price cap {price_cap})"
            )

        return LoyaltyQuote(
            requested_points=requested_points,
            available_points=available,
            points_applied=points,
            credit_cents=credit
        )

    @staticmethod
    def lock_user(user_id: str) -> Optional[User]:
        """Load the user row locked until the caller's transaction ends"""
        return User.query.filter_by(id=user_id).with_for_update().first()

    @staticmethod
    def reclamp_booking_credit(booking: Booking, settings: PricingSettings) -> int:
        """
        Shrink a booking's loyalty credit to fit the price after its coupon.

        Points that no longer fit are returned to the user inside the caller's
        transaction. Returns the number of points released.
        """
        applied = booking.loyalty_points_applied or 0
        credit = booking.loyalty_credit_applied_cents or 0
        if applied <= 0:
            return 0

        price_after_coupon = max(0, booking.discounted_price_cents() - (booking.coupon_discount_cents or 0))
        if credit <= price_after_coupon:
            return 0

        points_per_credit_unit = settings.loyalty.points_per_credit_unit
        kept = min(applied, LoyaltyService.max_points_for_price(price_after_coupon, points_per_credit_unit))
        released = applied - kept

        booking.loyalty_points_applied = kept
        booking.loyalty_credit_applied_cents = min(
            LoyaltyService.credit_for_points(kept, points_per_credit_unit),
            price_after_coupon
        )
        LoyaltyService.release_points(booking.user_id, released)

        logger.info(
            f"Reduced loyalty credit on booking {booking.booking_reference} from {credit} "
            f"to {booking.loyalty_credit_applied_cents}; returned {released} points"
        )
        return released

    @staticmethod
    def commit_points(user_id: str, points: int):
        """Add to the redeemed counter inside the caller's transaction"""
        if points <= 0:
            return
        User.query.filter(User.id == user_id).update(
            {User.loyalty_redeemed_points: User.loyalty_redeemed_points + points},
            synchronize_session=False
        )

    @staticmethod
    def release_points(user_id: str, points: int):
        """Give points back inside the caller's transaction, never below zero"""
        if points <= 0:
            return
        User.query.filter(User.id == user_id).update(
            {
                User.loyalty_redeemed_points: case(
                    (User.loyalty_redeemed_points > points, User.loyalty_redeemed_points - points),
                    else_=0
                )
            },
            synchronize_session=False
        )

    @staticmethod
    def apply_points_to_booking(booking_id: str, user_id: str, points: int) -> Dict:
        """
        Redeem loyalty points against a pending booking.

        Writes the credit onto the booking and increments the user's redeemed
        counter in one transaction. A booking takes loyalty points once.
        """
        settings = PricingSettings.load()

        try:
            booking = Booking.query.filter_by(id=booking_id, user_id=user_id).with_for_update().first()
            if not booking:
                raise PricingError(PricingErrorKind.BOOKING_NOT_FOUND, 'Booking not found')
            if not booking.is_pending():
                raise PricingError(
                    PricingErrorKind.INVALID_STATE,
                    f"Loyalty points cannot be applied to a {booking.status.value} booking"
                )
            if booking.base_price_cents is None:
                raise PricingError(PricingErrorKind.INVALID_STATE, 'Booking has not been priced yet')
            if booking.loyalty_points_applied:
                raise PricingError(
                    PricingErrorKind.LOYALTY_ALREADY_APPLIED,
                    'Loyalty points are already applied to this booking'
                )

            user = LoyaltyService.lock_user(user_id)
            if not user:
                raise PricingError(PricingErrorKind.USER_NOT_FOUND, 'User not found')

            price_after_coupon = max(0, booking.discounted_price_cents() - (booking.coupon_discount_cents or 0))
            quote = LoyaltyService.quote_credit(user, points, price_after_coupon, settings)

            if quote.points_applied > 0:
                booking.loyalty_points_applied = quote.points_applied
                booking.loyalty_credit_applied_cents = quote.credit_cents
                booking.refresh_cash_amount()
                LoyaltyService.commit_points(user_id, quote.points_applied)

            db.session.commit()

        except Exception:
            db.session.rollback()
            raise

        if quote.points_applied > 0:
            logger.info(
                f"Applied {quote.points_applied} loyalty points to booking {booking.booking_reference}: "
                f"-{quote.credit_cents}"
            )
            NotificationService.notify_price_updated(booking)

        return {
            'bookingId': booking.id,
            'requestedPoints': quote.requested_points,
            'loyaltyPointsApplied': quote.points_applied,
            'loyaltyCreditAppliedCents': quote.credit_cents,
            'remainingAmountCents': booking.remaining_amount_cents(),
            'cashAmountCents': booking.cash_amount_cents
        }
