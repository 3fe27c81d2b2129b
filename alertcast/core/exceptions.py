"""Notification domain errors."""

from typing import Optional


class NotificationError(Exception):
    """Base class for notification center errors."""

    code = "NOTIFICATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(NotificationError):
    """Malformed or oversized input."""

    code = "VALIDATION_ERROR"


class TemplateNotFound(NotificationError):
    code = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_code: str):
        super().__init__(f"Template '{template_code}' not found")
        self.template_code = template_code


class TemplateInactive(NotificationError):
    code = "TEMPLATE_INACTIVE"

    def __init__(self, template_code: str):
        super().__init__(f"Template '{template_code}' is not active")
        self.template_code = template_code


class MissingVariable(NotificationError):
    code = "MISSING_VARIABLE"

    def __init__(self, template_code: str, missing: list[str]):
        super().__init__(
            f"Template '{template_code}' is missing variables: {', '.join(missing)}"
        )
        self.template_code = template_code
        self.missing = missing


class EmptyAudience(NotificationError):
    code = "EMPTY_AUDIENCE"

    def __init__(self, message: str = "No recipients match the selected audience"):
        super().__init__(message)


class InvalidRecipient(NotificationError):
    code = "INVALID_RECIPIENT"

    def __init__(self, recipient_id: str, reason: str):
        super().__init__(f"Recipient '{recipient_id}' is not a valid target: {reason}")
        self.recipient_id = recipient_id
        self.reason = reason


class ProviderError(NotificationError):
    """Push provider rejected or failed a delivery call."""

    code = "PROVIDER_ERROR"

    def __init__(self, reason: str, status_code: Optional[int] = None):
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class ProviderTransientError(ProviderError):
    """Timeouts, 5xx, rate limiting. Eligible for retry."""

    code = "PROVIDER_TRANSIENT"


class ProviderPermanentError(ProviderError):
    """Invalid or expired subscription, opted out. Never retried."""

    code = "PROVIDER_PERMANENT"


class StoreWriteError(NotificationError):
    """The completed delivery log could not be persisted."""

    code = "STORE_WRITE_ERROR"


class InvalidStateTransition(NotificationError):
    code = "INVALID_STATE_TRANSITION"
