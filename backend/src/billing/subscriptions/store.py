"""
Entitlement Store

Persistent table of subscription records keyed by Stripe subscription ID.
All writes identify the row by ``external_subscription_id``; the database's
INSERT ... ON CONFLICT is the only concurrency boundary, so there is no
read-modify-write and no row locking.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.src.billing.domain import Entitlement, SubscriptionStatus
from backend.src.billing.shared.exceptions import PersistenceError
from backend.utils.timezone import timezone

from .model import EntitlementModel

logger = logging.getLogger(__name__)

# Columns an upsert may overwrite; account_id is immutable once stored
UPSERT_COLUMNS = (
    'external_customer_id',
    'status',
    'plan_id',
    'plan_name',
    'period_start',
    'period_end',
    'trial_start',
    'trial_end',
    'cancel_at_period_end',
)

IMMUTABLE_COLUMNS = frozenset({'account_id', 'external_subscription_id'})


@dataclass(frozen=True)
class UpsertResult:
    """Outcome of an upsert: whether the row changed, and the account that owns it."""
    written: bool
    account_id: str


def _dialect_insert(dialect_name: str):
    if dialect_name == 'postgresql':
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == 'sqlite':
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise PersistenceError(f"Upsert not supported for dialect {dialect_name}")
    return insert


class EntitlementStore:
    """
    Reads and writes entitlement rows.

    Usage:
        store = EntitlementStore(session_factory)
        await store.upsert(entitlement)
        records = await store.list_for_account(account_id)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert(self, entitlement: Entitlement) -> UpsertResult:
        """
        Insert the record, or update the existing row for its subscription ID.

        The update only fires when at least one value differs, so replaying
        an identical snapshot leaves the row (and updated_time) untouched.

        Returns:
            UpsertResult with written=False when the stored values were already
            identical, and the account_id actually stored on the row

        Raises:
            PersistenceError: If the write fails
        """
        row = self._to_row(entitlement)
        subscription_id = entitlement.external_subscription_id
        now = timezone.now()

        try:
            async with self._session_factory() as session:
                insert = _dialect_insert(session.bind.dialect.name)
                table = EntitlementModel.__table__

                stmt = insert(EntitlementModel).values(**row, created_time=now, updated_time=now)
                changed = sa.or_(*[table.c[col].is_distinct_from(stmt.excluded[col]) for col in UPSERT_COLUMNS])
                stmt = stmt.on_conflict_do_update(
                    index_elements=['external_subscription_id'],
                    set_={**{col: stmt.excluded[col] for col in UPSERT_COLUMNS}, 'updated_time': now},
                    where=changed,
                ).returning(table.c.account_id)

                result = await session.execute(stmt)
                returned = result.first()
                if returned is None:
                    owner = await session.scalar(
                        sa.select(table.c.account_id).where(table.c.external_subscription_id == subscription_id)
                    )
                else:
                    owner = returned.account_id
                await session.commit()

        except PersistenceError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"[ENTITLEMENT] Upsert failed for {subscription_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert entitlement: {e}", subscription_id=subscription_id) from e

        if owner != entitlement.account_id:
            logger.warning(
                f"[ENTITLEMENT] {subscription_id} belongs to account {owner}, "
                f"ignoring account {entitlement.account_id} from snapshot"
            )

        if returned is None:
            logger.debug(f"[ENTITLEMENT] {subscription_id} unchanged")
            return UpsertResult(written=False, account_id=owner)

        logger.info(f"[ENTITLEMENT] Upserted {subscription_id}: status={row['status']}")
        return UpsertResult(written=True, account_id=owner)

    async def update_by_subscription_id(
        self,
        subscription_id: str,
        values: Dict,
        unless_status: Iterable[str] = (),
    ) -> int:
        """
        Update selected fields of the row for a subscription ID.

        Args:
            subscription_id: Stripe subscription ID
            values: Column -> new value; account_id and the ID itself are rejected
            unless_status: Leave the row alone if its status is one of these

        Returns:
            Number of rows updated (0 when no row exists)

        Raises:
            PersistenceError: If the write fails
        """
        forbidden = IMMUTABLE_COLUMNS.intersection(values)
        if forbidden:
            raise ValueError(f"Cannot update immutable columns: {sorted(forbidden)}")

        values = {
            key: (value.value if isinstance(value, SubscriptionStatus) else value)
            for key, value in values.items()
        }

        stmt = (
            sa.update(EntitlementModel)
            .where(EntitlementModel.external_subscription_id == subscription_id)
            .values(**values, updated_time=timezone.now())
            .execution_options(synchronize_session=False)
        )
        skip = [s.value if isinstance(s, SubscriptionStatus) else s for s in unless_status]
        if skip:
            stmt = stmt.where(EntitlementModel.status.not_in(skip))

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                return result.rowcount or 0

        except SQLAlchemyError as e:
            logger.error(f"[ENTITLEMENT] Update failed for {subscription_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update entitlement: {e}", subscription_id=subscription_id) from e

    async def get_by_subscription_id(self, subscription_id: str) -> Optional[Entitlement]:
        """Get the record for a Stripe subscription ID, or None."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    sa.select(EntitlementModel).where(EntitlementModel.external_subscription_id == subscription_id)
                )
                model = result.scalar_one_or_none()
                return self._to_entitlement(model) if model else None

        except SQLAlchemyError as e:
            logger.error(f"[ENTITLEMENT] Read failed for {subscription_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to read entitlement: {e}", subscription_id=subscription_id) from e

    async def list_for_account(self, account_id: str) -> List[Entitlement]:
        """All records for an account, latest period first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    sa.select(EntitlementModel)
                    .where(EntitlementModel.account_id == account_id)
                    .order_by(EntitlementModel.period_end.desc().nulls_last(), EntitlementModel.id.desc())
                )
                return [self._to_entitlement(m) for m in result.scalars().all()]

        except SQLAlchemyError as e:
            logger.error(f"[ENTITLEMENT] Read failed for account {account_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to list entitlements: {e}") from e

    # -------------------------------------------------------------------------
    # Helper Methods
    # -------------------------------------------------------------------------

    @staticmethod
    def _to_row(entitlement: Entitlement) -> Dict:
        return {
            'account_id': entitlement.account_id,
            'external_customer_id': entitlement.external_customer_id,
            'external_subscription_id': entitlement.external_subscription_id,
            'status': entitlement.status.value,
            'plan_id': entitlement.plan_id,
            'plan_name': entitlement.plan_name,
            'period_start': entitlement.period_start,
            'period_end': entitlement.period_end,
            'trial_start': entitlement.trial_start,
            'trial_end': entitlement.trial_end,
            'cancel_at_period_end': entitlement.cancel_at_period_end,
        }

    @staticmethod
    def _to_entitlement(model: EntitlementModel) -> Entitlement:
        return Entitlement(
            account_id=model.account_id,
            external_customer_id=model.external_customer_id,
            external_subscription_id=model.external_subscription_id,
            status=SubscriptionStatus.parse(model.status),
            plan_id=model.plan_id,
            plan_name=model.plan_name,
            period_start=timezone.to_aware(model.period_start),
            period_end=timezone.to_aware(model.period_end),
            trial_start=timezone.to_aware(model.trial_start),
            trial_end=timezone.to_aware(model.trial_end),
            cancel_at_period_end=bool(model.cancel_at_period_end),
            created_time=timezone.to_aware(model.created_time),
            updated_time=timezone.to_aware(model.updated_time),
        )
