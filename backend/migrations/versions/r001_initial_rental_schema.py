"""initial rental schema

Revision ID: r001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the rental schema from scratch:
- equipment / add_ons / packages: catalog (packages hold key_equipment JSON)
- maintenance_logs: append-only repair history per equipment
- customers / bookings / booking_items: active reservation store
- inspection_checklists: one post-return inspection per booking
- past_bookings / past_booking_items: denormalized archive of deleted and
  rejected bookings (no foreign keys back to the live tables)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # Catalog
    # ============================================================================
    op.create_table(
        'equipment',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('day_rate_cents', sa.Integer(), nullable=False),
        sa.Column('specs', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('quantity >= 0', name='ck_equipment_quantity_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_equipment_category', 'equipment', ['category'])
    op.create_index('ix_equipment_status_category', 'equipment', ['status', 'category'])

    op.create_table(
        'add_ons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('ideal_for', sa.String(length=255), nullable=True),
        sa.Column('base_price_cents', sa.Integer(), nullable=False),
        sa.Column('key_equipment', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'maintenance_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('equipment_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('repaired_by', sa.String(length=128), nullable=True),
        sa.Column('logged_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_maintenance_logs_equipment_id', 'maintenance_logs', ['equipment_id'])

    # ============================================================================
    # Reservation store
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('package_id', sa.Integer(), nullable=True),
        sa.Column('pickup_date', sa.DateTime(), nullable=False),
        sa.Column('return_date', sa.DateTime(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('deposit_cents', sa.Integer(), nullable=False),
        sa.Column('late_fee_cents', sa.Integer(), nullable=False),
        sa.Column('delivery_option', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('inspection_completed', sa.Boolean(), nullable=False),
        sa.Column('deposit_refunded', sa.Boolean(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('confirmed_by', sa.String(length=128), nullable=True),
        sa.Column('returned_at', sa.DateTime(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('pickup_date <= return_date', name='ck_bookings_interval_ordered'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'])
    op.create_index('ix_bookings_package_id', 'bookings', ['package_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])
    # Overlap scans: status IN (...) AND pickup_date < :end AND return_date >= :start
    op.create_index('ix_bookings_status_pickup_return', 'bookings',
                    ['status', 'pickup_date', 'return_date'])

    op.create_table(
        'booking_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('equipment_id', sa.Integer(), nullable=True),
        sa.Column('add_on_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint(
            '(equipment_id IS NOT NULL AND add_on_id IS NULL) OR '
            '(equipment_id IS NULL AND add_on_id IS NOT NULL)',
            name='ck_booking_items_equipment_xor_addon'),
        sa.CheckConstraint('quantity >= 1', name='ck_booking_items_quantity_positive'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipment.id'], ),
        sa.ForeignKeyConstraint(['add_on_id'], ['add_ons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_booking_items_booking_id', 'booking_items', ['booking_id'])
    op.create_index('ix_booking_items_equipment_booking', 'booking_items',
                    ['equipment_id', 'booking_id'])

    op.create_table(
        'inspection_checklists',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('physical_condition', sa.String(length=16), nullable=False),
        sa.Column('audio_test', sa.Boolean(), nullable=False),
        sa.Column('accessory_count', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('completed_by', sa.String(length=128), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # Archive
    # ============================================================================
    op.create_table(
        'past_bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('original_booking_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('package_id', sa.Integer(), nullable=True),
        sa.Column('package_name', sa.String(length=255), nullable=True),
        sa.Column('pickup_date', sa.DateTime(), nullable=False),
        sa.Column('return_date', sa.DateTime(), nullable=False),
        sa.Column('total_price_cents', sa.Integer(), nullable=False),
        sa.Column('deposit_cents', sa.Integer(), nullable=False),
        sa.Column('late_fee_cents', sa.Integer(), nullable=False),
        sa.Column('delivery_option', sa.String(length=32), nullable=True),
        sa.Column('inspection_completed', sa.Boolean(), nullable=False),
        sa.Column('deposit_refunded', sa.Boolean(), nullable=False),
        sa.Column('original_status', sa.String(length=16), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('action_by', sa.String(length=128), nullable=True),
        sa.Column('action_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_past_bookings_original_booking_id', 'past_bookings', ['original_booking_id'])
    op.create_index('ix_past_bookings_action_archived', 'past_bookings', ['action', 'archived_at'])

    op.create_table(
        'past_booking_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('past_booking_id', sa.Integer(), nullable=False),
        sa.Column('equipment_id', sa.Integer(), nullable=True),
        sa.Column('equipment_name', sa.String(length=255), nullable=True),
        sa.Column('add_on_id', sa.Integer(), nullable=True),
        sa.Column('add_on_name', sa.String(length=255), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['past_booking_id'], ['past_bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_past_booking_items_past_booking_id', 'past_booking_items', ['past_booking_id'])


def downgrade():
    op.drop_index('ix_past_booking_items_past_booking_id', table_name='past_booking_items')
    op.drop_table('past_booking_items')
    op.drop_index('ix_past_bookings_action_archived', table_name='past_bookings')
    op.drop_index('ix_past_bookings_original_booking_id', table_name='past_bookings')
    op.drop_table('past_bookings')
    op.drop_table('inspection_checklists')
    op.drop_index('ix_booking_items_equipment_booking', table_name='booking_items')
    op.drop_index('ix_booking_items_booking_id', table_name='booking_items')
    op.drop_table('booking_items')
    op.drop_index('ix_bookings_status_pickup_return', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_package_id', table_name='bookings')
    op.drop_index('ix_bookings_customer_id', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('customers')
    op.drop_index('ix_maintenance_logs_equipment_id', table_name='maintenance_logs')
    op.drop_table('maintenance_logs')
    op.drop_table('packages')
    op.drop_table('add_ons')
    op.drop_index('ix_equipment_status_category', table_name='equipment')
    op.drop_index('ix_equipment_category', table_name='equipment')
    op.drop_table('equipment')
