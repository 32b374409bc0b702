"""create_seller_billing_tables

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:12:44.518203

Creates the seller catalog tables the billing core reads from and the
billing tables it owns.

Tables:
- sellers, products, orders: metered resources (products, monthly orders)
- subscriptions: one row per seller; plan, status, grace period, Stripe refs
- usage_records: one row per seller per calendar month
- billing_events: append-only audit log, deduplicates Stripe webhook events
- plan_change_requests: upgrade/downgrade history
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create seller and billing tables."""

    op.create_table(
        'sellers',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('store_name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_sellers_id', 'sellers', ['id'])
    op.create_index('ix_sellers_email', 'sellers', ['email'], unique=True)

    op.create_table(
        'products',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('seller_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('deleted', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_products_id', 'products', ['id'])
    op.create_index('ix_products_seller_id', 'products', ['seller_id'])
    op.create_index('ix_products_deleted', 'products', ['deleted'])
    op.create_index('idx_products_seller_deleted', 'products', ['seller_id', 'deleted'])

    op.create_table(
        'orders',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('seller_id', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='pending'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_seller_id', 'orders', ['seller_id'])
    op.create_index('idx_orders_seller_created', 'orders', ['seller_id', 'created_at'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('seller_id', sa.BigInteger(), nullable=False),

        # Subscription details
        sa.Column('plan_id', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), nullable=False),

        # Billing cycle
        sa.Column('current_period_start', sa.DateTime(), nullable=False),
        sa.Column('current_period_end', sa.DateTime(), nullable=False),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default='false'),

        # Lifecycle timestamps
        sa.Column('canceled_at', sa.DateTime(), nullable=True),
        sa.Column('ended_at', sa.DateTime(), nullable=True),

        # Grace period
        sa.Column('grace_period_start', sa.DateTime(), nullable=True),
        sa.Column('grace_period_end', sa.DateTime(), nullable=True),
        sa.Column('last_payment_failed', sa.Boolean(), nullable=False, server_default='false'),

        # External platform IDs (nullable until connected)
        sa.Column('external_customer_ref', sa.String(255), nullable=True),
        sa.Column('external_subscription_ref', sa.String(255), nullable=True),
        sa.Column('external_price_ref', sa.String(255), nullable=True),

        # Standard timestamps
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),

        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
    )

    op.create_index('ix_subscriptions_id', 'subscriptions', ['id'])
    op.create_index('ix_subscriptions_seller_id', 'subscriptions', ['seller_id'], unique=True)
    op.create_index('ix_subscriptions_plan_id', 'subscriptions', ['plan_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])
    op.create_index('ix_subscriptions_external_customer_ref', 'subscriptions', ['external_customer_ref'])
    op.create_index('ix_subscriptions_external_subscription_ref', 'subscriptions', ['external_subscription_ref'], unique=True)
    op.create_index('idx_subscription_status_grace_end', 'subscriptions', ['status', 'grace_period_end'])
    op.create_index('idx_subscription_period_end', 'subscriptions', ['current_period_end'])

    # Create usage_records table (one row per seller per month)
    op.create_table(
        'usage_records',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('seller_id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=True),
        sa.Column('period_start', sa.DateTime(), nullable=False),
        sa.Column('period_end', sa.DateTime(), nullable=False),
        sa.Column('products_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('orders_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('storage_used_mb', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('products_limit', sa.Integer(), nullable=True),
        sa.Column('orders_limit', sa.Integer(), nullable=True),
        sa.Column('limit_exceeded', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('warnings_sent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('seller_id', 'period_start', name='uq_usage_seller_period'),
    )
    op.create_index('ix_usage_records_id', 'usage_records', ['id'])
    op.create_index('ix_usage_records_seller_id', 'usage_records', ['seller_id'])

    # Create billing_events table (append-only audit log)
    op.create_table(
        'billing_events',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('seller_id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('external_event_id', sa.String(255), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('external_event_id', name='uq_billing_events_external_event_id'),
    )
    op.create_index('ix_billing_events_id', 'billing_events', ['id'])
    op.create_index('ix_billing_events_seller_id', 'billing_events', ['seller_id'])
    op.create_index('ix_billing_events_event_type', 'billing_events', ['event_type'])
    op.create_index('idx_billing_events_seller_type_date', 'billing_events', ['seller_id', 'event_type', 'processed_at'])

    op.create_table(
        'plan_change_requests',
        sa.Column('id', sa.BigInteger(), nullable=False, autoincrement=True),
        sa.Column('seller_id', sa.BigInteger(), nullable=False),
        sa.Column('subscription_id', sa.BigInteger(), nullable=False),
        sa.Column('from_plan', sa.String(50), nullable=False),
        sa.Column('to_plan', sa.String(50), nullable=False),
        sa.Column('change_type', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('effective_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['seller_id'], ['sellers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_plan_change_requests_id', 'plan_change_requests', ['id'])
    op.create_index('ix_plan_change_requests_seller_id', 'plan_change_requests', ['seller_id'])


def downgrade() -> None:
    """Drop billing and seller tables."""
    op.drop_table('plan_change_requests')
    op.drop_table('billing_events')
    op.drop_table('usage_records')
    op.drop_table('subscriptions')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('sellers')
