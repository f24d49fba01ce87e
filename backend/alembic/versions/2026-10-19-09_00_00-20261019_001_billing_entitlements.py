"""Add billing entitlements table

Revision ID: 20261019_001_billing_entitlements
Revises:
Create Date: 2026-10-19 09:00:00.000000

This migration adds the subscription entitlement table:
- billing_entitlements: One row per Stripe subscription, upserted by
  external_subscription_id
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '20261019_001_billing_entitlements'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create billing_entitlements."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    existing_tables = inspector.get_table_names()

    if 'billing_entitlements' in existing_tables:
        return

    op.create_table(
        'billing_entitlements',
        # Primary key
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),

        # Ownership
        sa.Column('account_id', sa.String(length=64), nullable=False, comment='Owning account, immutable once set'),
        sa.Column('external_customer_id', sa.String(length=255), nullable=True, comment='Stripe customer ID'),
        sa.Column(
            'external_subscription_id', sa.String(length=255), nullable=False,
            comment='Stripe subscription ID, upsert conflict target'
        ),

        # Subscription state
        sa.Column(
            'status', sa.String(length=32), nullable=False,
            comment='trialing / active / past_due / canceled / unpaid / incomplete'
        ),
        sa.Column('plan_id', sa.String(length=255), nullable=True, comment='Stripe price ID of the subscribed line item'),
        sa.Column('plan_name', sa.String(length=128), nullable=False, comment='Plan display name'),
        sa.Column('period_start', sa.DateTime(timezone=True), nullable=True, comment='Current period start'),
        sa.Column('period_end', sa.DateTime(timezone=True), nullable=True, comment='Current period end'),
        sa.Column('trial_start', sa.DateTime(timezone=True), nullable=True, comment='Trial start'),
        sa.Column('trial_end', sa.DateTime(timezone=True), nullable=True, comment='Trial end'),
        sa.Column(
            'cancel_at_period_end', sa.Boolean(), server_default=sa.false(), nullable=False,
            comment='Access lapses at period end'
        ),

        # Timestamps
        sa.Column('created_time', sa.DateTime(timezone=True), nullable=False, comment='Created time'),
        sa.Column('updated_time', sa.DateTime(timezone=True), nullable=False, comment='Updated time'),

        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_subscription_id', name='uq_billing_entitlements_external_subscription_id'),
    )
    op.create_index(
        op.f('ix_billing_entitlements_account_id'), 'billing_entitlements', ['account_id'], unique=False
    )


def downgrade() -> None:
    """Drop billing_entitlements."""
    op.drop_index(op.f('ix_billing_entitlements_account_id'), table_name='billing_entitlements')
    op.drop_table('billing_entitlements')
