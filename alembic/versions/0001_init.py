from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('sku', sa.String(64), nullable=False, unique=True, index=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('brand', sa.String(50), nullable=False, index=True),
        sa.Column('buy_price', sa.Numeric(12,2), nullable=False),
        sa.Column('sell_price', sa.Numeric(12,2), nullable=False),
        sa.Column('stock', sa.Integer, nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Integer, nullable=False, server_default='5'),
        sa.Column('sales_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('images', sa.JSON, nullable=True),
        sa.Column('tags', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now())
    )
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('address_street', sa.String(255), nullable=True),
        sa.Column('address_city', sa.String(100), nullable=True),
        sa.Column('address_state', sa.String(100), nullable=True),
        sa.Column('address_zip', sa.String(20), nullable=True),
        sa.Column('address_text', sa.Text, nullable=True),
        sa.Column('total_orders', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(12,2), nullable=False, server_default='0'),
        sa.Column('last_order', sa.DateTime, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True)
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False, unique=True, index=True),
        sa.Column('customer_id', sa.Integer, sa.ForeignKey('customers.id'), nullable=False, index=True),
        sa.Column('subtotal', sa.Numeric(12,2), nullable=False),
        sa.Column('courier_charge', sa.Numeric(12,2), nullable=False, server_default='0'),
        sa.Column('total_amount', sa.Numeric(12,2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(12,2), nullable=False, server_default='0'),
        sa.Column('due_amount', sa.Numeric(12,2), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('payment_status', sa.String(20), nullable=False),
        sa.Column('delivery_method', sa.String(30), nullable=False),
        sa.Column('delivery_person_name', sa.String(200), nullable=True),
        sa.Column('delivery_person_phone', sa.String(50), nullable=True),
        sa.Column('status', sa.String(30), nullable=False, index=True),
        sa.Column('brand', sa.String(50), nullable=False, index=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('pathao_consignment_id', sa.String(100), nullable=True, index=True),
        sa.Column('pathao_status', sa.String(50), nullable=True),
        sa.Column('pathao_updated_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True, index=True),
        sa.Column('updated_at', sa.DateTime, nullable=True)
    )
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True),
        # no FK: a line survives its product
        sa.Column('product_id', sa.Integer, nullable=False, index=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(12,2), nullable=False),
        sa.Column('total', sa.Numeric(12,2), nullable=False),
        sa.Column('product_title_snapshot', sa.String(200), nullable=True)
    )
    op.create_table(
        'history',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(100), nullable=True, index=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('resource', sa.String(50), nullable=False),
        sa.Column('resource_id', sa.Integer, nullable=True),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('ip', sa.String(100), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True, index=True)
    )

def downgrade():
    op.drop_table('history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('customers')
    op.drop_table('products')
