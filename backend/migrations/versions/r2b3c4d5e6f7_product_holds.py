"""Add customer product holds

Revision ID: r2b3c4d5e6f7
Revises: q1a2b3c4d5e6
Create Date: 2026-10-19 00:00:00.000000

- product_holds: units reserved for one customer until expires_at
- ledger_entries.product_hold_id: links reservation, release and pick-up
  entries to their hold
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r2b3c4d5e6f7'
down_revision = 'q1a2b3c4d5e6'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'product_holds',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='active'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notified_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('picked_up_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_product_holds_qty_positive'),
        sqlite_autoincrement=True
    )

    with op.batch_alter_table('product_holds', schema=None) as batch_op:
        batch_op.create_index('ix_product_holds_store_id', ['store_id'], unique=False)
        batch_op.create_index('ix_product_holds_customer_id', ['customer_id'], unique=False)
        batch_op.create_index('ix_product_holds_store_status', ['store_id', 'status'], unique=False)
        batch_op.create_index('ix_product_holds_status_expires', ['status', 'expires_at'], unique=False)

    with op.batch_alter_table('ledger_entries', schema=None) as batch_op:
        batch_op.add_column(sa.Column('product_hold_id', sa.Integer(), nullable=True))
        batch_op.create_foreign_key('fk_ledger_entries_product_hold_id', 'product_holds',
                                    ['product_hold_id'], ['id'])
        batch_op.create_index('ix_ledger_entries_product_hold_id', ['product_hold_id'], unique=False)


def downgrade():
    with op.batch_alter_table('ledger_entries', schema=None) as batch_op:
        batch_op.drop_index('ix_ledger_entries_product_hold_id')
        batch_op.drop_constraint('fk_ledger_entries_product_hold_id', type_='foreignkey')
        batch_op.drop_column('product_hold_id')

    op.drop_table('product_holds')
