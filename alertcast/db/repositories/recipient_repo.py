"""Recipient directory repository."""

from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from alertcast.db.repositories.base import BaseRepository
from alertcast.models.recipient import PushSubscription, Recipient, RecipientRole

if TYPE_CHECKING:
    from alertcast.services.filters import FilterPredicate


class RecipientRepository(BaseRepository[Recipient]):
    """Read access to recipients and their push subscriptions."""

    def __init__(self, session: AsyncSession):
        super().__init__(Recipient, session)

    async def list_by_role(self, role: RecipientRole, active_only: bool = True) -> Sequence[Recipient]:
        query = (
            select(Recipient)
            .where(Recipient.role == role)
            .options(selectinload(Recipient.subscriptions))
            .order_by(Recipient.full_name, Recipient.id)
        )
        if active_only:
            query = query.where(Recipient.is_active == True)
        result = await self.session.execute(query)
        return result.scalars().all()

    async def query_by_role_and_filters(
        self, role: RecipientRole, predicates: Iterable["FilterPredicate"]
    ) -> list[Recipient]:
        """Active recipients of ``role`` matching every predicate."""
        predicates = list(predicates)
        recipients = await self.list_by_role(role)
        return [r for r in recipients if all(p.matches(r) for p in predicates)]

    async def get_many(self, ids: Iterable[str]) -> dict[str, Recipient]:
        ids = list(ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(Recipient)
            .where(Recipient.id.in_(ids))
            .options(selectinload(Recipient.subscriptions))
        )
        return {r.id: r for r in result.scalars().all()}

    async def get_with_subscriptions(self, id: str) -> Optional[Recipient]:
        result = await self.session.execute(
            select(Recipient)
            .where(Recipient.id == id)
            .options(selectinload(Recipient.subscriptions))
        )
        return result.scalar_one_or_none()

    async def get_subscription_by_handle(self, handle: str) -> Optional[PushSubscription]:
        result = await self.session.execute(
            select(PushSubscription).where(PushSubscription.handle == handle)
        )
        return result.scalar_one_or_none()
