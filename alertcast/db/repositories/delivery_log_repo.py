"""Delivery log repository."""

from typing import List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.core.exceptions import StoreWriteError
from alertcast.core.logging import get_logger
from alertcast.models.delivery_log import DeliveryLog

logger = get_logger(__name__)


class DeliveryLogRepository:
    """Append-only store of delivery attempts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, log: DeliveryLog) -> DeliveryLog:
        """Persist a completed attempt in its own transaction."""
        try:
            self.session.add(log)
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error(
                "Failed to persist delivery log",
                extra={"log_id": log.id, "error": str(exc)},
            )
            raise StoreWriteError(f"Could not persist delivery log: {exc}") from exc
        return log

    async def list_logs(self, skip: int, limit: int) -> Tuple[List[DeliveryLog], int]:
        query = (
            select(DeliveryLog)
            .order_by(DeliveryLog.created_at.desc(), DeliveryLog.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(query)
        items = list(result.scalars().all())

        total_result = await self.session.execute(select(func.count()).select_from(DeliveryLog))
        total = total_result.scalar_one()

        return items, total

    async def get(self, id: str) -> Optional[DeliveryLog]:
        return await self.session.get(DeliveryLog, id)
