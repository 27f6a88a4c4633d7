"""Initial SmartPick schema

Revision ID: 20261017_initial
Revises:
Create Date: 2026-10-17

- users with penalty counters
- businesses owned by partners, with approval status
- products as the stock ledger (quantity >= 0)
- reservations as time-boxed holds (quantity > 0)
"""

from alembic import op
import sqlalchemy as sa

revision = '20261017_initial'
down_revision = None
branch_labels = None
depends_on = None

user_role = sa.Enum('user', 'partner', 'admin', name='user_role')
business_status = sa.Enum('pending', 'approved', 'rejected', name='business_status')
product_status = sa.Enum('available', 'sold_out', 'expired', 'paused', name='product_status')
reservation_status = sa.Enum('reserved', 'redeemed', 'cancelled', 'expired', name='reservation_status')


def upgrade():
    # ============================================================
    # users: accounts are issued elsewhere; penalty state lives here
    # ============================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('display_name', sa.String(), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('penalty_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('penalty_until', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('penalty_count >= 0', name='ck_users_penalty_count_non_negative'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # ============================================================
    # businesses
    # ============================================================
    op.create_table(
        'businesses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('business_type', sa.String(), nullable=False),
        sa.Column('address', sa.String()),
        sa.Column('phone', sa.String()),
        sa.Column('status', business_status, nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_businesses_id', 'businesses', ['id'])
    op.create_index('ix_businesses_owner_id', 'businesses', ['owner_id'])
    op.create_index('ix_businesses_business_type', 'businesses', ['business_type'])

    # ============================================================
    # products: stock ledger
    # ============================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('businesses.id'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('original_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discounted_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', product_status, nullable=False, server_default='available'),
        sa.Column('image_url', sa.String()),
        sa.Column('pickup_time_start', sa.String(5), nullable=False),
        sa.Column('pickup_time_end', sa.String(5), nullable=False),
        sa.Column('available_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('quantity >= 0', name='ck_product_quantity_non_negative'),
    )
    op.create_index('ix_products_id', 'products', ['id'])
    op.create_index('ix_products_business_id', 'products', ['business_id'])
    op.create_index('ix_products_expires_at', 'products', ['expires_at'])
    op.create_index('ix_products_catalogue', 'products', ['status', 'expires_at'])

    # ============================================================
    # reservations: time-boxed holds on product stock
    # ============================================================
    op.create_table(
        'reservations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', reservation_status, nullable=False, server_default='reserved'),
        sa.Column('verification_code', sa.String(6), nullable=False),
        sa.Column('reserved_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('quantity > 0', name='ck_reservation_quantity_positive'),
    )
    op.create_index('ix_reservations_id', 'reservations', ['id'])
    op.create_index('ix_reservations_product_id', 'reservations', ['product_id'])
    op.create_index('ix_reservations_user_id', 'reservations', ['user_id'])
    # Sweep: status = 'reserved' AND expires_at < now
    op.create_index('ix_reservations_status_expires', 'reservations', ['status', 'expires_at'])
    # Active-hold count per user
    op.create_index('ix_reservations_user_status', 'reservations', ['user_id', 'status'])


def downgrade():
    op.drop_table('reservations')
    op.drop_table('products')
    op.drop_table('businesses')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (reservation_status, product_status, business_status, user_role):
        enum_type.drop(bind, checkfirst=True)
