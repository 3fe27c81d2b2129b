"""SQLAlchemy models."""

from alertcast.models.template import NotificationTemplate, NotificationSeverity
from alertcast.models.recipient import (
    Recipient,
    PushSubscription,
    RecipientRole,
    TargetRole,
    SubscriptionPlatform,
)
from alertcast.models.delivery_log import DeliveryLog, DeliveryKind, DeliveryStatus

__all__ = [
    "NotificationTemplate",
    "NotificationSeverity",
    "Recipient",
    "PushSubscription",
    "RecipientRole",
    "TargetRole",
    "SubscriptionPlatform",
    "DeliveryLog",
    "DeliveryKind",
    "DeliveryStatus",
]
