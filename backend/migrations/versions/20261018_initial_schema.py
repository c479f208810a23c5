"""Initial schema: catalog, customers + ledger, sales, receipts, sync queue

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
1. products (pricing tiers, signed stock)
2. employees
3. customers + customer_transactions (append-only ledger)
4. sales + sale_items
5. receipt_sequences (per-device receipt counters)
6. shop_settings, activity_logs, sync_queue
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='piece'),
        sa.Column('allows_fractions', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('retail_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('wholesale_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('wholesale_min_quantity', sa.Numeric(14, 3), nullable=True),
        sa.Column('promotional_price', sa.Numeric(14, 2), nullable=True),
        sa.Column('promotional_valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cost', sa.Numeric(14, 2), nullable=True),
        sa.Column('stock', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('barcode'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_active_name', 'products', ['is_active', 'name'], unique=False)

    # ==========================================================================
    # 2. EMPLOYEES
    # ==========================================================================
    op.create_table('employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='cashier'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_employees_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_employees_role', 'employees', ['role'], unique=False)
    op.create_index('ix_employees_is_active', 'employees', ['is_active'], unique=False)

    # ==========================================================================
    # 3. CUSTOMERS
    # ==========================================================================
    op.create_table('customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('balance', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total_purchases', sa.Numeric(14, 2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_active_name', 'customers', ['is_active', 'name'], unique=False)
    op.create_index('ix_customers_is_active', 'customers', ['is_active'], unique=False)

    # ==========================================================================
    # 4. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('receipt_number', sa.String(length=64), nullable=False),
        sa.Column('device_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('cashier_id', sa.Integer(), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('tax', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('amount_paid', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('advance_used', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('change_due', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['cashier_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('device_id', 'receipt_number', name='uq_sales_device_receipt'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_created', 'sales', ['created_at'], unique=False)
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'], unique=False)
    op.create_index('ix_sales_cashier_id', 'sales', ['cashier_id'], unique=False)
    op.create_index('ix_sales_payment_status', 'sales', ['payment_status'], unique=False)

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        sa.Column('price_kind', sa.String(length=16), nullable=False, server_default='retail'),
        sa.Column('discount', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'], unique=False)
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'], unique=False)

    # ==========================================================================
    # 5. CUSTOMER LEDGER
    # ==========================================================================
    op.create_table('customer_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('tx_type', sa.String(length=8), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('balance', sa.Numeric(14, 2), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id', 'sequence', name='uq_customer_txns_sequence'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customer_txns_customer_occurred', 'customer_transactions', ['customer_id', 'occurred_at'], unique=False)
    op.create_index('ix_customer_transactions_customer_id', 'customer_transactions', ['customer_id'], unique=False)
    op.create_index('ix_customer_transactions_tx_type', 'customer_transactions', ['tx_type'], unique=False)
    op.create_index('ix_customer_transactions_sale_id', 'customer_transactions', ['sale_id'], unique=False)
    op.create_index('ix_customer_transactions_occurred_at', 'customer_transactions', ['occurred_at'], unique=False)

    # ==========================================================================
    # 6. RECEIPT SEQUENCES
    # ==========================================================================
    op.create_table('receipt_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.String(length=64), nullable=False),
        sa.Column('last_number', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('device_id', name='uq_receipt_sequences_device'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_receipt_sequences_device_id', 'receipt_sequences', ['device_id'], unique=False)

    # ==========================================================================
    # 7. SETTINGS, ACTIVITY, SYNC QUEUE
    # ==========================================================================
    op.create_table('shop_settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=False, server_default='Tillbook'),
        sa.Column('company_address', sa.String(length=255), nullable=True),
        sa.Column('company_phone', sa.String(length=32), nullable=True),
        sa.Column('company_email', sa.String(length=255), nullable=True),
        sa.Column('currency', sa.String(length=8), nullable=False, server_default='XOF'),
        sa.Column('language', sa.String(length=8), nullable=False, server_default='fr'),
        sa.Column('tax_rate', sa.Numeric(6, 4), nullable=False, server_default='0'),
        sa.Column('receipt_footer', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    op.create_table('activity_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.String(length=64), nullable=False),
        sa.Column('module', sa.String(length=32), nullable=False),
        sa.Column('message', sa.String(length=255), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_activity_logs_module_occurred', 'activity_logs', ['module', 'occurred_at'], unique=False)
    op.create_index('ix_activity_logs_actor_id', 'activity_logs', ['actor_id'], unique=False)
    op.create_index('ix_activity_logs_occurred_at', 'activity_logs', ['occurred_at'], unique=False)

    op.create_table('sync_queue',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('priority', sa.String(length=8), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sync_queue_status_id', 'sync_queue', ['status', 'id'], unique=False)
    op.create_index('ix_sync_queue_entry_type', 'sync_queue', ['entry_type'], unique=False)


def downgrade():
    op.drop_table('sync_queue')
    op.drop_table('activity_logs')
    op.drop_table('shop_settings')
    op.drop_table('receipt_sequences')
    op.drop_table('customer_transactions')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_table('customers')
    op.drop_table('employees')
    op.drop_table('products')
