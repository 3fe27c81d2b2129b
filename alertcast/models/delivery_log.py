"""Delivery log model."""

from typing import Any, Dict, List, Optional
from uuid import uuid4
from datetime import datetime, timezone
import enum

from sqlalchemy import String, Integer, JSON, DateTime, Enum as SQLEnum, event
from sqlalchemy.orm import Mapped, mapped_column

from alertcast.db.base import Base, UUID


class DeliveryKind(str, enum.Enum):
    TEMPLATE = "template"
    CUSTOM = "custom"
    TEST = "test"


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"


def derive_status(target_count: int, success_count: int, fail_count: int) -> DeliveryStatus:
    """Status of a send once every recipient task has settled."""
    if target_count <= 0:
        return DeliveryStatus.PENDING
    if success_count == 0:
        return DeliveryStatus.FAILED
    if fail_count == 0 and success_count == target_count:
        return DeliveryStatus.SENT
    return DeliveryStatus.PARTIAL


class DeliveryLog(Base):
    """Immutable audit record of one send operation."""

    __tablename__ = "notification_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    kind: Mapped[DeliveryKind] = mapped_column(SQLEnum(DeliveryKind), nullable=False, index=True)
    template_code: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Rendered content
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    body: Mapped[str] = mapped_column(String(500), nullable=False)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Audience
    target_role: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    target_filters: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Outcome
    target_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fail_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    errors: Mapped[List[Dict[str, str]]] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[DeliveryStatus] = mapped_column(
        SQLEnum(DeliveryStatus), nullable=False, index=True, default=DeliveryStatus.PENDING
    )

    # Actor
    sent_by: Mapped[str] = mapped_column(String(100), nullable=False)
    sent_by_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps (immutable, no updated_at)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ImmutableRecordError(RuntimeError):
    pass


@event.listens_for(DeliveryLog, "before_update")
def _reject_update(mapper, connection, target: DeliveryLog) -> None:
    raise ImmutableRecordError(f"Delivery log {target.id} is append-only")


@event.listens_for(DeliveryLog, "before_delete")
def _reject_delete(mapper, connection, target: DeliveryLog) -> None:
    raise ImmutableRecordError(f"Delivery log {target.id} cannot be deleted")
