"""
Flask CLI Commands for Pricing Maintenance
Run with: flask pricing check-snapshots, flask pricing backfill-snapshots, etc.
"""

import click
from flask.cli import with_appcontext
from sqlalchemy import or_
from tabulate import tabulate

from washly.extensions import db
from washly.models import Booking, Settings
from washly.services.pricing_settings import PricingSettings, SETTING_DEFINITIONS
from washly.utils.audit_logging import AuditLogger

BACKFILL_BATCH_SIZE = 200


def bookings_missing_snapshot():
    """Bookings that were priced before fee snapshots existed"""
    return Booking.query.filter(
        Booking.cash_amount_cents.isnot(None),
        or_(
            Booking.tax_percentage.is_(None),
            Booking.stripe_fee_percentage.is_(None),
            Booking.extra_fee_cents.is_(None),
            Booking.partner_commission_percentage.is_(None)
        )
    ).order_by(Booking.created_at)


def snapshot_patch(booking, settings):
    """Values for the snapshot fields that are still null"""
    current = {
        'tax_percentage': settings.tax_percentage,
        'stripe_fee_percentage': settings.stripe_fee_percentage,
        'extra_fee_cents': settings.extra_fee_amount_cents,
        'partner_commission_percentage': settings.partner_commission_percentage,
    }
    return {
        field: value
        for field, value in current.items()
        if getattr(booking, field) is None and value is not None
    }


@click.group()
def pricing_commands():
    """Pricing maintenance commands"""
    pass


@pricing_commands.command('check-snapshots')
@with_appcontext
def check_snapshots_command():
    """Report priced bookings with missing fee snapshot fields"""
    bookings = bookings_missing_snapshot().all()

    if not bookings:
        click.echo('✅ Every priced booking has a fee snapshot')
        return

    table = [
        [
            booking.booking_reference,
            booking.status.value,
            booking.cash_amount_cents,
            booking.tax_percentage,
            booking.stripe_fee_percentage,
            booking.extra_fee_cents,
            booking.partner_commission_percentage
        ]
        for booking in bookings
    ]
    click.echo(tabulate(table, headers=['Reference', 'Status', 'Cash', 'Tax %', 'Fee %', 'Extra', 'Commission %']))
    click.echo(f'⚠️ {len(bookings)} bookings are missing snapshot fields')


@pricing_commands.command('backfill-snapshots')
@click.option('--dry-run', is_flag=True, help='Show what would change without writing')
@with_appcontext
def backfill_snapshots_command(dry_run):
    """Fill null fee snapshot fields from the current settings, once"""
    settings = PricingSettings.load()
    bookings = bookings_missing_snapshot().all()

    patched = 0
    try:
        for index, booking in enumerate(bookings, start=1):
            patch = snapshot_patch(booking, settings)
            if not patch:
                continue

            patched += 1
            if dry_run:
                click.echo(f'  {booking.booking_reference}: {patch}')
                continue

            for field, value in patch.items():
                setattr(booking, field, value)

            if index % BACKFILL_BATCH_SIZE == 0:
                db.session.commit()

        if dry_run:
            db.session.rollback()
            click.echo(f'🔍 {patched} bookings would be patched')
            return

        if patched:
            AuditLogger.log_action(
                user_id=None,
                action='PRICING_SNAPSHOT_BACKFILL',
                entity_type='booking',
                description=f'Backfilled fee snapshots on {patched} bookings',
                changes=settings.to_dict(),
                commit=False
            )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        click.echo(f'❌ Error backfilling snapshots: {str(e)}', err=True)
        raise

    click.echo(f'✅ Patched {patched} bookings')


@pricing_commands.command('seed-settings')
@with_appcontext
def seed_settings_command():
    """Write default pricing settings that are missing"""
    existing = Settings.find_many()

    created = 0
    try:
        for key, data_type, description, value in SETTING_DEFINITIONS:
            if key in existing:
                continue
            db.session.add(Settings(key=key, value=value, data_type=data_type, description=description))
            created += 1
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        click.echo(f'❌ Error seeding settings: {str(e)}', err=True)
        raise

    click.echo(f'✅ Seeded {created} pricing settings')


def register_commands(app):
    """Register CLI commands with the Flask app"""
    app.cli.add_command(pricing_commands, name='pricing')
