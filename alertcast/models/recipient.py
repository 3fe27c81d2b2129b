"""Recipient and push subscription models."""

from typing import Any, Dict, List, Optional
from uuid import uuid4
from datetime import datetime, timezone
import enum

from sqlalchemy import String, Boolean, ForeignKey, JSON, DateTime, Enum as SQLEnum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alertcast.db.base import Base, TimestampMixin, UUID


class RecipientRole(str, enum.Enum):
    """Roles a recipient can hold."""

    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    POLICE = "police"
    HOSPITAL = "hospital"


class TargetRole(str, enum.Enum):
    """Audience roles an operator can target."""

    ALL = "all"
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    POLICE = "police"
    HOSPITAL = "hospital"


class SubscriptionPlatform(str, enum.Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


class Recipient(Base, TimestampMixin):
    """An addressable entity with a role and zero or more push subscriptions."""

    __tablename__ = "recipients"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    role: Mapped[RecipientRole] = mapped_column(SQLEnum(RecipientRole), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    # Role-specific fields used by audience filters (hospitalType, city, ...)
    attributes: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    subscriptions: Mapped[List["PushSubscription"]] = relationship(
        "PushSubscription",
        back_populates="recipient",
        cascade="all, delete-orphan",
    )

    @property
    def active_handles(self) -> List[str]:
        return [s.handle for s in self.subscriptions if s.is_active]


class PushSubscription(Base):
    """A device-level registration for a recipient."""

    __tablename__ = "push_subscriptions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    recipient_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("recipients.id"), nullable=False, index=True
    )
    handle: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    platform: Mapped[SubscriptionPlatform] = mapped_column(
        SQLEnum(SubscriptionPlatform), default=SubscriptionPlatform.WEB
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Outcome of the two-step bind
    identity_bound: Mapped[bool] = mapped_column(Boolean, default=False)
    tags_bound: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
    )

    recipient: Mapped["Recipient"] = relationship("Recipient", back_populates="subscriptions")
