"""Entitlement table model.

One row per Stripe subscription ID. Rows are upserted by
``external_subscription_id`` and never deleted; ``canceled`` is terminal.
"""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from backend.common.model import Base, DateTimeMixin


class EntitlementModel(DateTimeMixin, Base):
    """Synchronized subscription record"""

    __tablename__ = 'billing_entitlements'

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)

    account_id: Mapped[str] = mapped_column(
        sa.String(64),
        index=True,
        comment='Owning account, immutable once set'
    )
    external_customer_id: Mapped[str | None] = mapped_column(
        sa.String(255),
        default=None,
        comment='Stripe customer ID'
    )
    external_subscription_id: Mapped[str] = mapped_column(
        sa.String(255),
        unique=True,
        comment='Stripe subscription ID, upsert conflict target'
    )
    status: Mapped[str] = mapped_column(
        sa.String(32),
        comment='trialing / active / past_due / canceled / unpaid / incomplete'
    )
    plan_id: Mapped[str | None] = mapped_column(
        sa.String(255),
        default=None,
        comment='Stripe price ID of the subscribed line item'
    )
    plan_name: Mapped[str] = mapped_column(sa.String(128), comment='Plan display name')
    period_start: Mapped[datetime | None] = mapped_column(default=None, comment='Current period start')
    period_end: Mapped[datetime | None] = mapped_column(default=None, comment='Current period end')
    trial_start: Mapped[datetime | None] = mapped_column(default=None, comment='Trial start')
    trial_end: Mapped[datetime | None] = mapped_column(default=None, comment='Trial end')
    cancel_at_period_end: Mapped[bool] = mapped_column(
        sa.Boolean,
        default=False,
        comment='Access lapses at period end'
    )
