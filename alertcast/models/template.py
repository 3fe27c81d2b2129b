"""Notification template model."""

from typing import List
from uuid import uuid4
import enum

from sqlalchemy import String, Boolean, Integer, JSON, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from alertcast.db.base import Base, TimestampMixin, UUID


class NotificationSeverity(str, enum.Enum):
    """Template severity enumeration."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class NotificationTemplate(Base, TimestampMixin):
    """Named, parameterized notification content definition."""

    __tablename__ = "notification_templates"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True, default="general")
    severity: Mapped[NotificationSeverity] = mapped_column(
        SQLEnum(NotificationSeverity), default=NotificationSeverity.INFO
    )

    # {{placeholder}} patterns
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(String(2000), nullable=False)
    variables: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    target_roles: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
