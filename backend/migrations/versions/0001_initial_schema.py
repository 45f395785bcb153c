"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete schema:
- users, session_tokens: staff accounts and opaque bearer sessions
- stores, user_stores: stores and per-user store grants
- categories, products: per-store catalog with live stock
- customers, sales, sale_items, payments: POS and customer debt
- shifts: cashier shifts with frozen close figures
- cash_transactions: immutable manual cash book
- shopping_carts, cart_items, online_orders, online_order_items: storefront
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable,
                     server_default=sa.text('CURRENT_TIMESTAMP'))


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=128), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        _timestamp('created_at'),
        _timestamp('last_used_at'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # stores / user_stores
    # ============================================================================
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('slug', sa.String(length=120), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('online_enabled', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('shipping_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['owner_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug', name='uq_stores_slug'),
        sa.UniqueConstraint('code', name='uq_stores_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_stores_code', 'stores', ['code'])
    op.create_index('ix_stores_slug', 'stores', ['slug'])
    op.create_index('ix_stores_owner_id', 'stores', ['owner_id'])
    op.create_index('ix_stores_is_active', 'stores', ['is_active'])

    op.create_table(
        'user_stores',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('granted_by_user_id', sa.Integer(), nullable=True),
        _timestamp('granted_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['granted_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'store_id', name='uq_user_stores_user_store'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_user_stores_user_id', 'user_stores', ['user_id'])
    op.create_index('ix_user_stores_store_id', 'user_stores', ['store_id'])

    # ============================================================================
    # categories / products
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'name', name='uq_categories_store_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_categories_store_id', 'categories', ['store_id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=True),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cost_price', sa.Integer(), nullable=True),
        sa.Column('stock_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_online', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'sku', name='uq_products_store_sku'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_products_store_id', 'products', ['store_id'])
    op.create_index('ix_products_category_id', 'products', ['category_id'])
    op.create_index('ix_products_store_barcode', 'products', ['store_id', 'barcode'])
    op.create_index('ix_products_store_active', 'products', ['store_id', 'is_active'])

    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('credit_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_store_id', 'customers', ['store_id'])
    op.create_index('ix_customers_store_active', 'customers', ['store_id', 'is_active'])
    op.create_index('ix_customers_store_phone', 'customers', ['store_id', 'phone'])

    # ============================================================================
    # shifts (before sales: sales.shift_id references it)
    # ============================================================================
    op.create_table(
        'shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('starting_cash', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('ending_cash', sa.Integer(), nullable=True),
        sa.Column('expected_cash', sa.Integer(), nullable=True),
        sa.Column('cash_difference', sa.Integer(), nullable=True),
        sa.Column('cash_sales', sa.Integer(), nullable=True),
        sa.Column('total_revenue', sa.Integer(), nullable=True),
        sa.Column('sales_count', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shifts_store_id', 'shifts', ['store_id'])
    op.create_index('ix_shifts_user_id', 'shifts', ['user_id'])
    op.create_index('ix_shifts_status', 'shifts', ['status'])
    op.create_index('ix_shifts_start_time', 'shifts', ['start_time'])
    op.create_index('ix_shifts_store_user_status', 'shifts', ['store_id', 'user_id', 'status'])
    # At most one open shift per user and store
    op.create_index(
        'uq_shifts_open_per_user', 'shifts', ['store_id', 'user_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    # ============================================================================
    # sales / sale_items / payments
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=64), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('discount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('amount_tendered', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('change_due', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('voided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['voided_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'invoice_number', name='uq_sales_store_invoice'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_store_id', 'sales', ['store_id'])
    op.create_index('ix_sales_customer_id', 'sales', ['customer_id'])
    op.create_index('ix_sales_shift_id', 'sales', ['shift_id'])
    op.create_index('ix_sales_created_by_user_id', 'sales', ['created_by_user_id'])
    op.create_index('ix_sales_transaction_date', 'sales', ['transaction_date'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_payment_method', 'sales', ['payment_method'])
    op.create_index('ix_sales_store_status_date', 'sales', ['store_id', 'status', 'transaction_date'])
    op.create_index('ix_sales_customer_date', 'sales', ['customer_id', 'transaction_date'])

    op.create_table(
        'sale_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.Integer(), nullable=True),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('voided_by_user_id', sa.Integer(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('void_reason', sa.String(length=255), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['voided_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_payments_store_id', 'payments', ['store_id'])
    op.create_index('ix_payments_customer_id', 'payments', ['customer_id'])
    op.create_index('ix_payments_sale_id', 'payments', ['sale_id'])
    op.create_index('ix_payments_payment_date', 'payments', ['payment_date'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_customer_date', 'payments', ['customer_id', 'payment_date'])

    # ============================================================================
    # cash_transactions: immutable cash book
    # ============================================================================
    op.create_table(
        'cash_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('transaction_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=False),
        sa.Column('related_invoice', sa.String(length=64), nullable=True),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('replaced_by_id', sa.Integer(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['customers.id'], ),
        sa.ForeignKeyConstraint(['replaced_by_id'], ['cash_transactions.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cash_transactions_store_id', 'cash_transactions', ['store_id'])
    op.create_index('ix_cash_transactions_customer_id', 'cash_transactions', ['customer_id'])
    op.create_index('ix_cash_transactions_transaction_type', 'cash_transactions', ['transaction_type'])
    op.create_index('ix_cash_transactions_category', 'cash_transactions', ['category'])
    op.create_index('ix_cash_transactions_transaction_date', 'cash_transactions', ['transaction_date'])
    op.create_index('ix_cash_transactions_status', 'cash_transactions', ['status'])
    op.create_index('ix_cash_txns_store_status_date', 'cash_transactions',
                    ['store_id', 'status', 'transaction_date'])

    # ============================================================================
    # storefront: carts and online orders
    # ============================================================================
    op.create_table(
        'shopping_carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('session_key', sa.String(length=128), nullable=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_id', 'session_key', name='uq_carts_store_session'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_shopping_carts_store_id', 'shopping_carts', ['store_id'])
    op.create_index('ix_shopping_carts_session_key', 'shopping_carts', ['session_key'])

    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['cart_id'], ['shopping_carts.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'product_id', name='uq_cart_items_cart_product'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_cart_items_cart_id', 'cart_items', ['cart_id'])

    op.create_table(
        'online_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('shipping_address', sa.String(length=512), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('subtotal', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shipping_fee', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['store_id'], ['stores.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='uq_online_orders_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_online_orders_store_id', 'online_orders', ['store_id'])
    op.create_index('ix_online_orders_order_number', 'online_orders', ['order_number'])
    op.create_index('ix_online_orders_status', 'online_orders', ['status'])
    op.create_index('ix_online_orders_store_status', 'online_orders', ['store_id', 'status'])

    op.create_table(
        'online_order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['online_orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_online_order_items_order_id', 'online_order_items', ['order_id'])


def downgrade():
    op.drop_table('online_order_items')
    op.drop_table('online_orders')
    op.drop_table('cart_items')
    op.drop_table('shopping_carts')
    op.drop_table('cash_transactions')
    op.drop_table('payments')
    op.drop_table('sale_items')
    op.drop_table('sales')
    op.drop_index('uq_shifts_open_per_user', table_name='shifts')
    op.drop_table('shifts')
    op.drop_table('customers')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('user_stores')
    op.drop_table('stores')
    op.drop_table('session_tokens')
    op.drop_table('users')
