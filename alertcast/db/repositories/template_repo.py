"""Notification template repository."""

from typing import Optional, Sequence

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.db.repositories.base import BaseRepository
from alertcast.models.template import NotificationTemplate


class TemplateRepository(BaseRepository[NotificationTemplate]):
    """Notification template repository."""

    def __init__(self, session: AsyncSession):
        super().__init__(NotificationTemplate, session)

    async def get_by_code(self, code: str) -> Optional[NotificationTemplate]:
        result = await self.session.execute(
            select(NotificationTemplate).where(NotificationTemplate.code == code)
        )
        return result.scalar_one_or_none()

    def build_list_query(
        self, category: Optional[str] = None, active_only: bool = False
    ) -> Select:
        query = select(NotificationTemplate)
        if category:
            query = query.where(NotificationTemplate.category == category)
        if active_only:
            query = query.where(NotificationTemplate.is_active == True)
        return query.order_by(NotificationTemplate.category, NotificationTemplate.code)

    async def list_templates(
        self, category: Optional[str] = None, active_only: bool = False
    ) -> Sequence[NotificationTemplate]:
        result = await self.session.execute(self.build_list_query(category, active_only))
        return result.scalars().all()
