"""
Booking Pricing Service
Composes zone pricing, discounts, coupons, loyalty credit and fees into one
breakdown, and snapshots that breakdown onto bookings
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

from washly.extensions import db
from washly.models.booking import Booking
from washly.models.coupon import CouponRedemption
from washly.models.enums import BookingStatus
from washly.models.service import Service
from washly.models.user import User
from washly.services.area_resolver import AreaResolver, BASE_PRICE
from washly.services.coupons import CouponService
from washly.services.errors import PricingError, PricingErrorKind
from washly.services.loyalty import LoyaltyService, NO_LOYALTY
from washly.services.notification import NotificationService
from washly.services.pricing import PricingCalculator
from washly.services.pricing_settings import PricingSettings
from washly.utils.audit_logging import AuditLogger

logger = logging.getLogger(__name__)

OVERRIDE_PRICE = 'OVERRIDE'


@dataclass
class PricingRequest:
    user_id: str
    service_id: str
    coupon_code: Optional[str] = None
    loyalty_points: Optional[int] = None
    booking_id: Optional[str] = None
    vehicle_count: Optional[int] = None
    service_price_cents_override: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None or self.longitude is not None


@dataclass(frozen=True)
class PricingBreakdown:
    service_id: str
    unit_price_cents: int
    vehicle_count: int
    base_price_cents: int
    discount_percentage: Optional[float]
    discounted_price_cents: int
    coupon_code: Optional[str]
    coupon_id: Optional[str]
    coupon_discount_cents: int
    loyalty_points_requested: int
    loyalty_points_applied: int
    loyalty_credit_applied_cents: int
    net_price_cents: int
    tax_percentage: Optional[float]
    stripe_fee_percentage: Optional[float]
    extra_fee_cents: Optional[int]
    tax_cents: int
    stripe_fee_cents: int
    partner_commission_percentage: Optional[float]
    final_price_cents: int
    area_id: Optional[str]
    area_name: Optional[str]
    price_source: str

    def to_dict(self) -> Dict:
        return {
            'serviceId': self.service_id,
            'unitPriceCents': self.unit_price_cents,
            'vehicleCount': self.vehicle_count,
            'basePriceCents': self.base_price_cents,
            'discountPercentage': self.discount_percentage or 0,
            'discountedPriceCents': self.discounted_price_cents,
            'couponCode': self.coupon_code,
            'couponDiscountCents': self.coupon_discount_cents,
            'loyaltyPointsRequested': self.loyalty_points_requested,
            'loyaltyPointsApplied': self.loyalty_points_applied,
            'loyaltyCreditAppliedCents': self.loyalty_credit_applied_cents,
            'netPriceCents': self.net_price_cents,
            'taxPercentage': self.tax_percentage,
            'stripeFeePercentage': self.stripe_fee_percentage,
            'extraFeeCents': self.extra_fee_cents,
            'taxCents': self.tax_cents,
            'stripeFeeCents': self.stripe_fee_cents,
            'finalPriceCents': self.final_price_cents,
            'areaId': self.area_id,
            'areaName': self.area_name,
            'priceSource': self.price_source
        }


def _validate_request(request: PricingRequest) -> int:
    vehicle_count = request.vehicle_count if request.vehicle_count is not None else 1
    if isinstance(vehicle_count, bool) or not isinstance(vehicle_count, int) or vehicle_count < 1:
        raise PricingError(PricingErrorKind.INVALID_OVERRIDE, 'Vehicle count must be an integer of at least 1')

    override = request.service_price_cents_override
    if override is not None and (isinstance(override, bool) or not isinstance(override, int) or override < 0):
        raise PricingError(PricingErrorKind.INVALID_OVERRIDE, 'Service price override must be a non-negative integer')

    if request.has_coordinates and (request.latitude is None or request.longitude is None):
        raise PricingError(PricingErrorKind.INVALID_COORDINATES, 'Latitude and longitude must be supplied together')

    return vehicle_count


def calculate_booking_pricing(
    request: PricingRequest,
    settings: PricingSettings = None,
    for_update: bool = False
) -> PricingBreakdown:
    """
    Price a booking request.

    The steps run in a fixed order: service, zone, override and vehicle count,
    service discount, coupon, loyalty credit, fees. Nothing is written; the
    same inputs against the same stored state give the same breakdown.

    Args:
        request: What is being priced and for whom
        settings: Pricing settings snapshot, loaded when omitted
        for_update: Lock the user and coupon rows when the caller is about to commit

    Raises:
        PricingError, CouponError: The first failing step aborts the whole pricing
    """
    vehicle_count = _validate_request(request)

    # Committing paths lock the user so concurrent bookings cannot spend the same points
    if for_update:
        user = LoyaltyService.lock_user(request.user_id)
    else:
        user = db.session.get(User, request.user_id)
    if not user:
        raise PricingError(PricingErrorKind.USER_NOT_FOUND, 'User not found')

    if request.booking_id:
        owned = Booking.query.filter_by(id=request.booking_id, user_id=user.id).first()
        if not owned:
            raise PricingError(PricingErrorKind.BOOKING_NOT_FOUND, 'Booking not found')

    service = db.session.get(Service, request.service_id)
    if not service or not service.active:
        raise PricingError(PricingErrorKind.SERVICE_NOT_FOUND, f"Service {request.service_id} not found")

    settings = settings or PricingSettings.load()

    # Zone override, falling back to the service's own pricing
    unit_price = service.price_cents
    discount_percentage = service.discount_percentage
    area_id = area_name = None
    price_source = BASE_PRICE

    if request.has_coordinates:
        area_pricing = AreaResolver.resolve_area_pricing(service, request.latitude, request.longitude)
        if area_pricing:
            unit_price = area_pricing.price_cents
            discount_percentage = area_pricing.discount_percentage
            area_id = area_pricing.area_id
            area_name = area_pricing.area_name
            price_source = area_pricing.source

    override = request.service_price_cents_override
    if override:
        unit_price = override
        price_source = OVERRIDE_PRICE

    base_price = unit_price * vehicle_count
    if base_price <= 0:
        raise PricingError(PricingErrorKind.NOT_PAYABLE, f"Service {service.id} has no payable price")

    discounted = PricingCalculator.calculate_discounted_price(base_price, discount_percentage)

    coupon_id = coupon_code = None
    coupon_discount = 0
    if request.coupon_code and request.coupon_code.strip():
        quote = CouponService.validate_and_calculate(
            request.coupon_code,
            user_id=user.id,
            service_id=service.id,
            price_cents=discounted,
            booking_id=request.booking_id,
            settings=settings,
            for_update=for_update
        )
        coupon_id, coupon_code, coupon_discount = quote.coupon_id, quote.code, quote.discount_cents

    loyalty = NO_LOYALTY
    if request.loyalty_points:
        loyalty = LoyaltyService.quote_credit(
            user,
            request.loyalty_points,
            max(0, discounted - coupon_discount),
            settings
        )

    net = PricingCalculator.net_after_coupon_and_credits(
        base_price, discount_percentage, coupon_discount, loyalty.credit_cents
    )
    adjustments = settings.fee_adjustments
    fees = PricingCalculator.fee_breakdown(net, adjustments)
    final = PricingCalculator.apply_fees_to_price(net, adjustments)

    return PricingBreakdown(
        service_id=service.id,
        unit_price_cents=unit_price,
        vehicle_count=vehicle_count,
        base_price_cents=base_price,
        discount_percentage=discount_percentage,
        discounted_price_cents=discounted,
        coupon_code=coupon_code,
        coupon_id=coupon_id,
        coupon_discount_cents=coupon_discount,
        loyalty_points_requested=loyalty.requested_points,
        loyalty_points_applied=loyalty.points_applied,
        loyalty_credit_applied_cents=loyalty.credit_cents,
        net_price_cents=net,
        tax_percentage=settings.tax_percentage,
        stripe_fee_percentage=settings.stripe_fee_percentage,
        extra_fee_cents=settings.extra_fee_amount_cents,
        tax_cents=fees['tax_cents'],
        stripe_fee_cents=fees['stripe_fee_cents'],
        partner_commission_percentage=settings.partner_commission_percentage,
        final_price_cents=final,
        area_id=area_id,
        area_name=area_name,
        price_source=price_source
    )


def _persist_breakdown(booking: Booking, breakdown: PricingBreakdown):
    """Write the breakdown and its fee snapshot onto a pending booking"""
    booking.area_id = breakdown.area_id
    booking.vehicle_count = breakdown.vehicle_count
    booking.service_price_cents = breakdown.unit_price_cents
    booking.base_price_cents = breakdown.base_price_cents
    booking.service_discount_percentage = breakdown.discount_percentage

    booking.tax_percentage = breakdown.tax_percentage
    booking.stripe_fee_percentage = breakdown.stripe_fee_percentage
    booking.extra_fee_cents = breakdown.extra_fee_cents
    booking.partner_commission_percentage = breakdown.partner_commission_percentage

    if breakdown.coupon_id:
        if booking.coupon_redemption is not None:
            booking.coupon_redemption = None
            db.session.flush()
        booking.coupon_redemption = CouponRedemption(
            coupon_id=breakdown.coupon_id,
            user_id=booking.user_id,
            amount_cents=breakdown.coupon_discount_cents
        )
        booking.coupon_id = breakdown.coupon_id
        booking.coupon_code = breakdown.coupon_code
        booking.coupon_discount_cents = breakdown.coupon_discount_cents

    if breakdown.loyalty_points_applied > 0:
        booking.loyalty_points_applied = breakdown.loyalty_points_applied
        booking.loyalty_credit_applied_cents = breakdown.loyalty_credit_applied_cents
        LoyaltyService.commit_points(booking.user_id, breakdown.loyalty_points_applied)

    booking.cash_amount_cents = breakdown.final_price_cents


def create_booking_with_pricing(
    request: PricingRequest,
    start_at: datetime = None,
    location_label: str = None
) -> Tuple[Booking, PricingBreakdown]:
    """
    Create a pending booking and commit its pricing in one transaction.

    Settings are read here, at commit time, so the snapshot holds the values in
    force when the booking was made.
    """
    settings = PricingSettings.load()

    try:
        breakdown = calculate_booking_pricing(request, settings=settings, for_update=True)

        booking = Booking(
            user_id=request.user_id,
            service_id=request.service_id,
            status=BookingStatus.PENDING,
            start_at=start_at,
            location_label=location_label,
            latitude=request.latitude,
            longitude=request.longitude
        )
        db.session.add(booking)

        _persist_breakdown(booking, breakdown)
        db.session.commit()

    except Exception:
        db.session.rollback()
        raise

    logger.info(
        f"Booking {booking.booking_reference} created for user {request.user_id}: "
        f"{breakdown.final_price_cents} (tax {breakdown.tax_percentage}, fee {breakdown.stripe_fee_percentage})"
    )
    NotificationService.notify_price_updated(booking)

    return booking, breakdown


def commit_booking_pricing(
    booking_id: str,
    user_id: str,
    coupon_code: str = None,
    loyalty_points: int = None,
    service_price_cents_override: int = None
) -> PricingBreakdown:
    """Price and snapshot a pending booking that was created without pricing"""
    settings = PricingSettings.load()

    try:
        booking = Booking.query.filter_by(id=booking_id, user_id=user_id).with_for_update().first()
        if not booking:
            raise PricingError(PricingErrorKind.BOOKING_NOT_FOUND, 'Booking not found')
        if not booking.is_pending():
            raise PricingError(
                PricingErrorKind.INVALID_STATE,
                f"Pricing cannot be committed on a {booking.status.value} booking"
            )
        if booking.cash_amount_cents is not None or booking.has_fee_snapshot():
            raise PricingError(PricingErrorKind.SNAPSHOT_LOCKED, 'Booking pricing is already committed')

        breakdown = calculate_booking_pricing(
            PricingRequest(
                user_id=user_id,
                service_id=booking.service_id,
                coupon_code=coupon_code,
                loyalty_points=loyalty_points,
                booking_id=booking.id,
                vehicle_count=booking.vehicle_count,
                service_price_cents_override=service_price_cents_override,
                latitude=booking.latitude,
                longitude=booking.longitude
            ),
            settings=settings,
            for_update=True
        )

        _persist_breakdown(booking, breakdown)
        db.session.commit()

    except Exception:
        db.session.rollback()
        raise

    logger.info(f"Pricing committed for booking {booking.booking_reference}: {breakdown.final_price_cents}")
    NotificationService.notify_price_updated(booking)

    return breakdown


def cancel_booking(booking_id: str, user_id: str) -> Booking:
    """
    Cancel a pending booking and return its loyalty points.

    The status change is a conditional update on PENDING; points are returned
    only when that update changed the row, so a retried cancel is a no-op.
    """
    try:
        booking = Booking.query.filter_by(id=booking_id, user_id=user_id).first()
        if not booking:
            raise PricingError(PricingErrorKind.BOOKING_NOT_FOUND, 'Booking not found')
        if booking.status == BookingStatus.CANCELLED:
            return booking
        if not booking.is_pending():
            raise PricingError(
                PricingErrorKind.INVALID_STATE,
                f"A {booking.status.value} booking cannot be cancelled"
            )

        updated = Booking.query.filter(
            Booking.id == booking_id,
            Booking.status == BookingStatus.PENDING
        ).update(
            {Booking.status: BookingStatus.CANCELLED, Booking.cancelled_at: datetime.now(timezone.utc)},
            synchronize_session=False
        )

        points = booking.loyalty_points_applied or 0
        if updated == 1:
            LoyaltyService.release_points(user_id, points)
            AuditLogger.log_action(
                user_id=user_id,
                action='BOOKING_CANCELLED',
                entity_type='booking',
                entity_id=booking_id,
                description=f"Cancelled booking {booking.booking_reference}",
                changes={'loyalty_points_returned': points},
                commit=False
            )

        db.session.commit()

    except Exception:
        db.session.rollback()
        raise

    if updated == 1 and points:
        logger.info(f"Returned {points} loyalty points from cancelled booking {booking.booking_reference}")

    return booking
