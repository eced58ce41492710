# Overview: Flask CLI command groups for bootstrap, inspection, and billing helpers.

# backend/rentals/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "rentals:create_app" (PowerShell: $env:FLASK_APP="rentals:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Idempotent: load the demo catalog (equipment, packages, add-ons).
#
# Inventory inspection:
# - python -m flask inventory snapshot --date 2026-07-04
#   Per-equipment total/booked/available for one day.
#
# Bookings:
# - python -m flask bookings list --status Pending
#   List bookings, newest first.
# - python -m flask bookings late-fee 95
#   Show the late fee for a return N minutes past schedule.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Equipment, Package, AddOn
from .services import availability_service, booking_service
from .services.lifecycle_service import calculate_late_fee_cents
from .errors import RentalError
from .time_utils import utcnow


DEMO_EQUIPMENT = [
    {"name": 'JBL 10" EON Speaker', "category": "Speaker", "quantity": 4, "day_rate_cents": 2500,
     "specs": {"watts": 1000, "audience_capacity": 50, "connection_types": ["XLR", '1/4"']}},
    {"name": 'JBL 15" EON Speaker', "category": "Speaker", "quantity": 4, "day_rate_cents": 3500,
     "specs": {"watts": 1500, "audience_capacity": 100, "connection_types": ["XLR", '1/4"']}},
    {"name": "Shure SM58 Microphone", "category": "Microphone", "quantity": 8, "day_rate_cents": 1000,
     "specs": {"type": "Dynamic", "connection_types": ["XLR"]}},
    {"name": "Yamaha MG10XU Mixer", "category": "Mixer", "quantity": 2, "day_rate_cents": 4000,
     "specs": {"channels": 10, "connection_types": ["XLR", '1/4"', "USB"]}},
    {"name": "Audio-Technica ATH-M50x Headphones", "category": "Headphones", "quantity": 6, "day_rate_cents": 1500,
     "specs": {"type": "Over-ear", "connection_types": ['1/4"', "3.5mm"]}},
    {"name": "XLR Cable 25ft", "category": "Cable", "quantity": 20, "day_rate_cents": 500,
     "specs": {"length_ft": 25, "connection_types": ["XLR"]}},
]

# Package contents by equipment name; repeats mean multiple units
DEMO_PACKAGES = [
    ("Backyard Bash", "Small backyard parties, intimate gatherings", 5000,
     ['JBL 10" EON Speaker', "Shure SM58 Microphone"]),
    ("Toast & Tunes", "Weddings, corporate events, medium gatherings", 15000,
     ['JBL 15" EON Speaker', 'JBL 15" EON Speaker', "Shure SM58 Microphone", "Shure SM58 Microphone",
      "Yamaha MG10XU Mixer"]),
    ("Pop-up DJ", "DJ sets, dance parties, nightlife events", 20000,
     ['JBL 15" EON Speaker', 'JBL 15" EON Speaker', "Yamaha MG10XU Mixer",
      "Audio-Technica ATH-M50x Headphones"]),
    ("Grand Event", "Large venues, festivals, major events", 40000,
     ['JBL 15" EON Speaker'] * 4 + ["Shure SM58 Microphone"] * 2
     + ["Yamaha MG10XU Mixer", "Audio-Technica ATH-M50x Headphones"]),
]

DEMO_ADD_ONS = [
    ("Lighting Package", "Atmosphere", 5000),
    ("Wireless Microphone", "Technical", 3000),
    ("Microphone Stand", "Technical", 1000),
    ("Speaker Stands", "Technical", 2000),
    ("Professional Delivery", "Premium", 10000),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, archived bookings included!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' to load the demo catalog.")


@system_group.command('seed')
@with_appcontext
def seed_catalog():
    """
    Load the demo catalog. Safe to run repeatedly: existing rows (matched by
    name) are left untouched.
    """
    click.echo("START Seeding demo catalog...")

    by_name = {}
    for data in DEMO_EQUIPMENT:
        equipment = db.session.query(Equipment).filter_by(name=data["name"]).first()
        if not equipment:
            equipment = Equipment(**data)
            db.session.add(equipment)
            click.echo(f"PASS Created equipment: {data['name']} (x{data['quantity']})")
        by_name[data["name"]] = equipment
    db.session.flush()

    for name, ideal_for, base_price_cents, contents in DEMO_PACKAGES:
        if db.session.query(Package).filter_by(name=name).first():
            continue
        db.session.add(Package(
            name=name,
            ideal_for=ideal_for,
            base_price_cents=base_price_cents,
            key_equipment=[by_name[item].id for item in contents],
        ))
        click.echo(f"PASS Created package: {name}")

    for name, category, price_cents in DEMO_ADD_ONS:
        if db.session.query(AddOn).filter_by(name=name).first():
            continue
        db.session.add(AddOn(name=name, category=category, price_cents=price_cents))
        click.echo(f"PASS Created add-on: {name}")

    db.session.commit()
    click.echo("PASS Seed complete.")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('snapshot')
@click.option('--date', 'day', default=None, help='ISO date (default: today, UTC)')
@with_appcontext
def inventory_snapshot_cli(day):
    """
    Show total/booked/available for every Active equipment on one day.

    Example:
        flask inventory snapshot
        flask inventory snapshot --date 2026-07-04
    """
    try:
        snapshot = availability_service.inventory_snapshot(day or utcnow())
    except RentalError as e:
        raise click.ClickException(e.message)

    if not snapshot:
        click.echo("No active equipment found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<40} {'Total':<7} {'Booked':<8} {'Available':<10} {'Flag'}")
    click.echo("="*90)
    for equipment_id, row in snapshot.items():
        flag = "OVERSOLD" if row["oversubscribed"] else ""
        click.echo(f"{equipment_id:<5} {row['name'][:39]:<40} {row['total']:<7} {row['booked']:<8} "
                   f"{row['available']:<10} {flag}")
    click.echo("="*90 + "\n")


@click.group('bookings')
def bookings_group():
    """Booking inspection and billing helpers."""


@bookings_group.command('list')
@click.option('--status', default=None, help='Filter by lifecycle status')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_bookings_cli(status, limit):
    """List bookings, newest first."""
    try:
        bookings = booking_service.list_bookings(status, limit=limit)
    except RentalError as e:
        raise click.ClickException(e.message)

    if not bookings:
        click.echo("No bookings found.")
        return

    for booking in bookings:
        customer = booking.customer.email if booking.customer else "-"
        click.echo(f"{booking.id:<6} {booking.status:<10} {booking.pickup_date:%Y-%m-%d} -> "
                   f"{booking.return_date:%Y-%m-%d}  {customer}")


@bookings_group.command('late-fee')
@click.argument('minutes_late', type=int)
def late_fee_cli(minutes_late):
    """
    Show the late fee for a return MINUTES_LATE past the scheduled time.

    Example:
        flask bookings late-fee 95
    """
    try:
        fee = calculate_late_fee_cents(minutes_late)
    except RentalError as e:
        raise click.ClickException(e.message)
    click.echo(f"Late fee for {minutes_late} minute(s): ${fee / 100:.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(bookings_group)
