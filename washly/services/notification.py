import logging

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)


def format_money(amount_cents: int) -> str:
    currency = current_app.config.get('CURRENCY', 'AED') if has_app_context() else 'AED'
    return f"{currency} {(amount_cents or 0) / 100:.2f}"


class NotificationService:
    """Handle in-app notifications for pricing events"""

    @staticmethod
    def create_notification(
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        booking_id: str = None,
        link_url: str = None
    ):
        """Create in-app notification"""
        from washly.models import Notification
        from washly.extensions import db

        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            booking_id=booking_id,
            link_url=link_url
        )

        db.session.add(notification)
        db.session.commit()

        return notification

    @staticmethod
    def _dispatch(**kwargs):
        # Fire-and-forget: a failed notification never affects the pricing result
        from washly.extensions import db

        try:
            return NotificationService.create_notification(**kwargs)
        except Exception as e:
            db.session.rollback()
            logger.warning(f"Failed to send {kwargs.get('notification_type')} notification: {str(e)}")
            return None

    @staticmethod
    def notify_coupon_applied(booking):
        message = (
            f"Coupon {booking.coupon_code} saved you "
            f"{format_money(booking.coupon_discount_cents)} on booking {booking.booking_reference}."
        )

        return NotificationService._dispatch(
            user_id=booking.user_id,
            notification_type='coupon_applied',
            title='Coupon Applied',
            message=message,
            booking_id=booking.id,
            link_url=f'/bookings/{booking.id}'
        )

    @staticmethod
    def notify_price_updated(booking):
        amount = booking.cash_amount_cents
        if amount is None:
            amount = booking.remaining_amount_cents()

        message = (
            f"The price of booking {booking.booking_reference} is now {format_money(amount)}."
        )

        return NotificationService._dispatch(
            user_id=booking.user_id,
            notification_type='price_updated',
            title='Price Updated',
            message=message,
            booking_id=booking.id,
            link_url=f'/bookings/{booking.id}'
        )
