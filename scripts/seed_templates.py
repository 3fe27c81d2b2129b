"""Install the default notification template catalogue.

Existing templates (matched by code) are left untouched.
"""

import asyncio

from alertcast.core.logging import configure_logging, get_logger
from alertcast.db.session import async_session_factory
from alertcast.models.recipient import RecipientRole
from alertcast.models.template import NotificationSeverity
from alertcast.schemas.notification import TemplateCreate
from alertcast.services.template_registry import TemplateRegistry

logger = get_logger(__name__)

DEFAULT_TEMPLATES = [
    TemplateCreate(
        code="sos_created",
        name="SOS Alert Raised",
        category="emergency",
        severity=NotificationSeverity.CRITICAL,
        title="SOS Alert",
        body="An SOS alert was raised near {{location}}. Please respond immediately.",
        variables=["location"],
        target_roles=[RecipientRole.POLICE, RecipientRole.HOSPITAL, RecipientRole.ADMIN],
    ),
    TemplateCreate(
        code="sos_resolved",
        name="SOS Resolved",
        category="emergency",
        severity=NotificationSeverity.INFO,
        title="SOS Resolved",
        body="The SOS alert at {{location}} has been resolved by {{responder}}.",
        variables=["location", "responder"],
        target_roles=[RecipientRole.POLICE, RecipientRole.HOSPITAL, RecipientRole.ADMIN],
    ),
    TemplateCreate(
        code="accident_detected",
        name="Accident Detected",
        category="emergency",
        severity=NotificationSeverity.CRITICAL,
        title="Accident detected: {{deviceName}}",
        body="Device {{deviceName}} reported a possible accident at {{location}}.",
        variables=["deviceName", "location"],
        target_roles=[RecipientRole.POLICE, RecipientRole.HOSPITAL],
    ),
    TemplateCreate(
        code="device_low_battery",
        name="Device Low Battery",
        category="device",
        severity=NotificationSeverity.WARNING,
        title="Low battery on {{deviceName}}",
        body="Your device {{deviceName}} is at {{batteryLevel}}%. Please charge it soon.",
        variables=["deviceName", "batteryLevel"],
        target_roles=[RecipientRole.USER],
    ),
    TemplateCreate(
        code="device_offline",
        name="Device Offline",
        category="device",
        severity=NotificationSeverity.WARNING,
        title="{{deviceName}} is offline",
        body="We have not heard from {{deviceName}} since {{lastSeen}}.",
        variables=["deviceName", "lastSeen"],
        target_roles=[RecipientRole.USER],
    ),
    TemplateCreate(
        code="partner_approved",
        name="Partner Request Approved",
        category="account",
        severity=NotificationSeverity.INFO,
        title="Welcome aboard",
        body="Your partner request for {{organization}} has been approved.",
        variables=["organization"],
        target_roles=[RecipientRole.POLICE, RecipientRole.HOSPITAL],
    ),
    TemplateCreate(
        code="system_maintenance",
        name="Scheduled Maintenance",
        category="system",
        severity=NotificationSeverity.INFO,
        title="Scheduled maintenance",
        body="The platform will be unavailable from {{startTime}} for about {{duration}}.",
        variables=["startTime", "duration"],
        target_roles=list(RecipientRole),
    ),
]


async def seed_templates() -> int:
    created = 0
    async with async_session_factory() as session:
        registry = TemplateRegistry(session)
        for data in DEFAULT_TEMPLATES:
            if await registry.repo.get_by_code(data.code) is not None:
                logger.info("Template exists, skipping", extra={"template_code": data.code})
                continue
            await registry.create(data)
            created += 1
    return created


if __name__ == "__main__":
    configure_logging()
    count = asyncio.run(seed_templates())
    logger.info("Seeded notification templates", extra={"created_count": count})
