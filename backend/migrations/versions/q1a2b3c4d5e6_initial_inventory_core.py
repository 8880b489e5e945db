"""initial inventory core schema

Revision ID: q1a2b3c4d5e6
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the QR Display inventory core:
- organizations, stores, products: tenancy and product master
- stock_records: per-store, per-SKU snapshot (on hand / reserved / incoming)
- ledger_entries: append-only stock ledger, gap-free sequence per key
- incoming_orders: wholesale orders waiting to be received
- displays: QR display lifecycle
- staff_members, staff_point_transactions: staff points
- customers, purchase_intents, conversions: sample-to-purchase funnel
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'q1a2b3c4d5e6'
down_revision = None
branch_labels = None
depends_on = None


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # Tenancy and product master
    # ============================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('attribution_window_days', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_organizations_org_code', 'organizations', ['org_code'], unique=True)
    op.create_index('ix_organizations_is_active', 'organizations', ['is_active'])

    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('store_code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('contact_name', sa.String(length=120), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=32), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=False, server_default='UTC'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stores_org_id', 'stores', ['org_id'])
    op.create_index('ix_stores_store_code', 'stores', ['store_code'], unique=True)
    op.create_index('ix_stores_org_active', 'stores', ['org_id', 'is_active'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('product_type', sa.String(length=32), nullable=False, server_default='retail'),
        sa.Column('units_per_box', sa.Integer(), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_org_id', 'products', ['org_id'])
    op.create_index('ix_products_sku', 'products', ['sku'], unique=True)
    op.create_index('ix_products_org_active', 'products', ['org_id', 'is_active'])

    # ============================================================================
    # Stock ledger aggregate
    # ============================================================================
    op.create_table(
        'stock_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('quantity_on_hand', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_reserved', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quantity_incoming', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('verification_token', sa.String(length=64), nullable=True),
        sa.Column('pending_order_id', sa.Integer(), nullable=True),
        sa.Column('last_restocked', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['product_sku'], ['products.sku']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'product_sku', name='uq_stock_records_store_sku'),
        sa.CheckConstraint('quantity_on_hand >= 0', name='ck_stock_on_hand_non_negative'),
        sa.CheckConstraint('quantity_reserved >= 0', name='ck_stock_reserved_non_negative'),
        sa.CheckConstraint('quantity_incoming >= 0', name='ck_stock_incoming_non_negative'),
        sa.CheckConstraint('quantity_reserved <= quantity_on_hand', name='ck_stock_reserved_within_on_hand'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stock_records_store_id', 'stock_records', ['store_id'])
    op.create_index('ix_stock_records_product_sku', 'stock_records', ['product_sku'])
    op.create_index('ix_stock_records_verification_token', 'stock_records', ['verification_token'])

    op.create_table(
        'incoming_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('stock_record_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('quantity_ordered', sa.Integer(), nullable=False),
        sa.Column('quantity_received', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('verification_token', sa.String(length=64), nullable=False),
        sa.Column('shopify_order_number', sa.String(length=64), nullable=True),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['stock_record_id'], ['stock_records.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity_ordered > 0', name='ck_incoming_orders_qty_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_incoming_orders_stock_record_id', 'incoming_orders', ['stock_record_id'])
    op.create_index('ix_incoming_orders_store_id', 'incoming_orders', ['store_id'])
    op.create_index('ix_incoming_orders_status', 'incoming_orders', ['status'])
    op.create_index('ix_incoming_orders_verification_token', 'incoming_orders', ['verification_token'])
    op.create_index('ix_incoming_orders_store_status', 'incoming_orders', ['store_id', 'status'])

    # ============================================================================
    # Displays
    # ============================================================================
    op.create_table(
        'displays',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('display_id', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='inventory'),
        sa.Column('owner_org_id', sa.Integer(), nullable=False),
        sa.Column('assigned_org_id', sa.Integer(), nullable=True),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        sa.ForeignKeyConstraint(['owner_org_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['assigned_org_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_displays_display_id', 'displays', ['display_id'], unique=True)
    op.create_index('ix_displays_status', 'displays', ['status'])
    op.create_index('ix_displays_owner_org_id', 'displays', ['owner_org_id'])
    op.create_index('ix_displays_assigned_org_id', 'displays', ['assigned_org_id'])
    op.create_index('ix_displays_store_id', 'displays', ['store_id'])
    op.create_index('ix_displays_status_assigned', 'displays', ['status', 'assigned_org_id'])

    # ============================================================================
    # Staff and customers
    # ============================================================================
    op.create_table(
        'staff_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(length=128), nullable=False),
        sa.Column('last_name', sa.String(length=128), nullable=False),
        sa.Column('total_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('quarterly_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_quarter_reset', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sales_generated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_staff_members_store_id', 'staff_members', ['store_id'])
    op.create_index('ix_staff_members_org_id', 'staff_members', ['org_id'])
    op.create_index('ix_staff_members_store_active', 'staff_members', ['store_id', 'is_active'])

    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=True),
        sa.Column('first_name', sa.String(length=128), nullable=False),
        sa.Column('last_name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('external_customer_id', sa.String(length=64), nullable=True),
        sa.Column('sample_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('attributed_store_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['attributed_store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_org_id', 'customers', ['org_id'])
    op.create_index('ix_customers_store_id', 'customers', ['store_id'])
    op.create_index('ix_customers_external_customer_id', 'customers', ['external_customer_id'])
    op.create_index('ix_customers_attributed_store_id', 'customers', ['attributed_store_id'])
    op.create_index('ix_customers_org_phone', 'customers', ['org_id', 'phone'])

    op.create_table(
        'purchase_intents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('original_price_cents', sa.Integer(), nullable=False),
        sa.Column('discount_percent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('final_price_cents', sa.Integer(), nullable=False),
        sa.Column('verify_slug', sa.String(length=32), nullable=False),
        sa.Column('fulfilled_by_staff_id', sa.Integer(), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['fulfilled_by_staff_id'], ['staff_members.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_purchase_intents_qty_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_purchase_intents_customer_id', 'purchase_intents', ['customer_id'])
    op.create_index('ix_purchase_intents_store_id', 'purchase_intents', ['store_id'])
    op.create_index('ix_purchase_intents_status', 'purchase_intents', ['status'])
    op.create_index('ix_purchase_intents_verify_slug', 'purchase_intents', ['verify_slug'], unique=True)
    op.create_index('ix_purchase_intents_customer_status', 'purchase_intents', ['customer_id', 'status'])

    op.create_table(
        'conversions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('external_order_id', sa.String(length=64), nullable=False),
        sa.Column('order_total_cents', sa.Integer(), nullable=False),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('commission_amount_cents', sa.Integer(), nullable=False),
        sa.Column('sample_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('days_to_conversion', sa.Integer(), nullable=False),
        sa.Column('paid', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'external_order_id', name='uq_conversions_org_order'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_conversions_org_id', 'conversions', ['org_id'])
    op.create_index('ix_conversions_customer_id', 'conversions', ['customer_id'])
    op.create_index('ix_conversions_store_id', 'conversions', ['store_id'])

    op.create_table(
        'staff_point_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('staff_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('point_type', sa.String(length=32), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('quarter', sa.String(length=8), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('purchase_intent_id', sa.Integer(), nullable=True),
        sa.Column('conversion_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['staff_id'], ['staff_members.id']),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.ForeignKeyConstraint(['purchase_intent_id'], ['purchase_intents.id']),
        sa.ForeignKeyConstraint(['conversion_id'], ['conversions.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_staff_point_transactions_staff_id', 'staff_point_transactions', ['staff_id'])
    op.create_index('ix_staff_point_transactions_store_id', 'staff_point_transactions', ['store_id'])
    op.create_index('ix_staff_point_transactions_org_id', 'staff_point_transactions', ['org_id'])
    op.create_index('ix_staff_point_transactions_point_type', 'staff_point_transactions', ['point_type'])
    op.create_index('ix_staff_point_transactions_purchase_intent_id', 'staff_point_transactions',
                    ['purchase_intent_id'])
    op.create_index('ix_staff_points_staff_quarter', 'staff_point_transactions', ['staff_id', 'quarter'])

    # ============================================================================
    # ledger_entries: append-only, immutable; one gap-free sequence per key
    # ============================================================================
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=32), nullable=False),
        sa.Column('quantity_delta', sa.Integer(), nullable=False),
        sa.Column('reserved_delta', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_after', sa.Integer(), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('incoming_order_id', sa.Integer(), nullable=True),
        sa.Column('purchase_intent_id', sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['incoming_order_id'], ['incoming_orders.id']),
        sa.ForeignKeyConstraint(['purchase_intent_id'], ['purchase_intents.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'product_sku', 'sequence', name='uq_ledger_entries_key_sequence'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_ledger_entries_store_id', 'ledger_entries', ['store_id'])
    op.create_index('ix_ledger_entries_product_sku', 'ledger_entries', ['product_sku'])
    op.create_index('ix_ledger_entries_entry_type', 'ledger_entries', ['entry_type'])
    op.create_index('ix_ledger_entries_incoming_order_id', 'ledger_entries', ['incoming_order_id'])
    op.create_index('ix_ledger_entries_purchase_intent_id', 'ledger_entries', ['purchase_intent_id'])
    op.create_index('ix_ledger_entries_key_created', 'ledger_entries', ['store_id', 'product_sku', 'created_at'])


def downgrade():
    op.drop_table('ledger_entries')
    op.drop_table('staff_point_transactions')
    op.drop_table('conversions')
    op.drop_table('purchase_intents')
    op.drop_table('customers')
    op.drop_table('staff_members')
    op.drop_table('displays')
    op.drop_table('incoming_orders')
    op.drop_table('stock_records')
    op.drop_table('products')
    op.drop_table('stores')
    op.drop_table('organizations')
