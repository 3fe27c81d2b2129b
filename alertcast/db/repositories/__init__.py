"""Database repositories."""

from alertcast.db.repositories.base import BaseRepository
from alertcast.db.repositories.delivery_log_repo import DeliveryLogRepository
from alertcast.db.repositories.recipient_repo import RecipientRepository
from alertcast.db.repositories.template_repo import TemplateRepository

__all__ = [
    "BaseRepository",
    "DeliveryLogRepository",
    "RecipientRepository",
    "TemplateRepository",
]
