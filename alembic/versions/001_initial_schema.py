"""Initial call-center schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    ]


def upgrade():
    """Create users, catalog, lead, order and ledger tables"""

    # ====================
    # USERS
    # ====================
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'user_roles',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(30), nullable=False),
        sa.Column('assigned_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )
    op.create_index('ix_user_roles_user_id', 'user_roles', ['user_id'])

    # ====================
    # PRODUCTS
    # ====================
    op.create_table(
        'products',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(50), unique=True, nullable=True),
        sa.Column('price', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('stock_quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('low_stock_threshold', sa.Integer, server_default='5', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('stock_quantity >= 0', name='ck_products_stock_non_negative'),
    )
    op.create_index('ix_products_name', 'products', ['name'])

    # ====================
    # LEADS
    # ====================
    op.create_table(
        'prediction_lists',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('uploaded_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('total_records', sa.Integer, server_default='0', nullable=False),
        sa.Column('assigned_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('uploaded_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )

    op.create_table(
        'prediction_leads',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('list_id', UUID(as_uuid=True), sa.ForeignKey('prediction_lists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=True),
        sa.Column('telephone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('product', sa.String(255), nullable=True),
        sa.Column('quantity', sa.Integer, server_default='1', nullable=False),
        sa.Column('price', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), server_default='not_contacted', nullable=False),
        sa.Column('assigned_agent_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_agent_name', sa.String(200), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_prediction_leads_status', 'prediction_leads', ['status'])
    op.create_index('ix_prediction_leads_list_agent', 'prediction_leads', ['list_id', 'assigned_agent_id'])

    op.create_table(
        'webhooks',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('product_name', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('total_leads', sa.Integer, server_default='0', nullable=False),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_webhooks_slug', 'webhooks', ['slug'], unique=True)

    op.create_table(
        'inbound_leads',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('source', sa.String(100), server_default='landing_page', nullable=False),
        sa.Column('product_name', sa.String(255), nullable=True),
        sa.Column('webhook_id', UUID(as_uuid=True), sa.ForeignKey('webhooks.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_inbound_leads_status', 'inbound_leads', ['status'])
    op.create_index('ix_inbound_leads_webhook_id', 'inbound_leads', ['webhook_id'])

    # ====================
    # ORDERS
    # ====================
    op.create_table(
        'order_sequences',
        sa.Column('name', sa.String(30), primary_key=True),
        sa.Column('current_number', sa.Integer, nullable=False),
        sa.Column('prefix', sa.String(10), server_default='ORD', nullable=False),
        sa.Column('padding', sa.Integer, server_default='5', nullable=False),
    )

    op.create_table(
        'orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('display_id', sa.String(20), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_name', sa.String(255), server_default='', nullable=False),
        sa.Column('quantity', sa.Integer, server_default='1', nullable=False),
        sa.Column('price', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('customer_name', sa.String(200), server_default='', nullable=False),
        sa.Column('customer_phone', sa.String(50), server_default='', nullable=False),
        sa.Column('customer_city', sa.String(100), nullable=True),
        sa.Column('customer_address', sa.Text, nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('assigned_agent_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_agent_name', sa.String(200), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assigned_by', sa.String(200), nullable=True),
        sa.Column('source_type', sa.String(20), server_default='manual', nullable=False),
        sa.Column('inbound_lead_id', UUID(as_uuid=True), sa.ForeignKey('inbound_leads.id', ondelete='SET NULL'), unique=True, nullable=True),
        sa.Column('source_lead_id', UUID(as_uuid=True), sa.ForeignKey('prediction_leads.id', ondelete='SET NULL'), unique=True, nullable=True),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('quantity >= 1', name='ck_orders_quantity_positive'),
        sa.CheckConstraint('price >= 0', name='ck_orders_price_non_negative'),
    )
    op.create_index('ix_orders_display_id', 'orders', ['display_id'], unique=True)
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_order_status_created', 'orders', ['status', 'created_at'])
    op.create_index('ix_order_agent_status', 'orders', ['assigned_agent_id', 'status'])

    op.create_table(
        'order_history',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=True),
        sa.Column('to_status', sa.String(20), nullable=False),
        sa.Column('changed_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('changed_by_name', sa.String(200), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_order_history_order_id', 'order_history', ['order_id'])

    op.create_table(
        'order_notes',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text, nullable=False),
        sa.Column('author_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('author_name', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_order_notes_order_id', 'order_notes', ['order_id'])

    # ====================
    # STOCK LEDGER
    # ====================
    op.create_table(
        'stock_movements',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('product_id', UUID(as_uuid=True), sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('movement_type', sa.String(30), nullable=False),
        sa.Column('change_amount', sa.Integer, nullable=False),
        sa.Column('previous_stock', sa.Integer, nullable=False),
        sa.Column('new_stock', sa.Integer, nullable=False),
        sa.Column('reason', sa.String(100), nullable=True),
        sa.Column('order_id', UUID(as_uuid=True), sa.ForeignKey('orders.id', ondelete='SET NULL'), nullable=True),
        sa.Column('supplier_name', sa.String(200), nullable=True),
        sa.Column('invoice_number', sa.String(100), nullable=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.CheckConstraint('new_stock = previous_stock + change_amount', name='ck_stock_movements_balance'),
        sa.CheckConstraint('new_stock >= 0', name='ck_stock_movements_non_negative'),
    )
    op.create_index('ix_stock_movements_movement_type', 'stock_movements', ['movement_type'])
    op.create_index('ix_stock_movements_product_created', 'stock_movements', ['product_id', 'created_at'])


def downgrade():
    """Drop all tables in reverse dependency order"""
    op.drop_table('stock_movements')
    op.drop_table('order_notes')
    op.drop_table('order_history')
    op.drop_table('orders')
    op.drop_table('order_sequences')
    op.drop_table('inbound_leads')
    op.drop_table('webhooks')
    op.drop_table('prediction_leads')
    op.drop_table('prediction_lists')
    op.drop_table('products')
    op.drop_table('user_roles')
    op.drop_table('users')
