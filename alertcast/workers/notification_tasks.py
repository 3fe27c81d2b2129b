"""Notification tasks."""

import asyncio
from typing import Any, Dict, List, Optional

from alertcast.core.config import settings
from alertcast.core.logging import get_logger
from alertcast.db.session import async_session_factory
from alertcast.models.recipient import TargetRole
from alertcast.services.audience import TargetSpecification
from alertcast.services.notification_center import NotificationCenter, Operator
from alertcast.services.push_gateway import create_push_gateway
from alertcast.workers.celery_app import celery_app

logger = get_logger(__name__)

SYSTEM_OPERATOR = Operator(id="system", role="system", name="System")


async def _send_template(
    template_code: str,
    target_role: str,
    filters: Optional[Dict[str, Any]] = None,
    variables: Optional[Dict[str, Any]] = None,
    selected_recipient_ids: Optional[List[str]] = None,
    send_id: Optional[str] = None,
) -> dict:
    spec = TargetSpecification(
        target_role=TargetRole(target_role),
        filters=dict(filters or {}),
        selected_recipient_ids=list(selected_recipient_ids or []),
    )
    gateway = create_push_gateway(settings)
    await gateway.start()
    try:
        async with async_session_factory() as session:
            center = NotificationCenter(session, gateway)
            result = await center.send_template(
                SYSTEM_OPERATOR, template_code, spec, variables, send_id=send_id
            )
    finally:
        await gateway.close()

    return {
        "success": result.success,
        "message": result.message,
        "log_id": result.log_id,
        "status": result.status.value if result.status else None,
        "code": result.code,
    }


@celery_app.task(bind=True)
def send_template_notification(
    self,
    template_code: str,
    target_role: str,
    filters: dict = None,
    variables: dict = None,
    selected_recipient_ids: list = None,
    send_id: str = None,
) -> dict:
    """Send a template notification triggered by the system, e.g. a new SOS event.

    ``send_id``, when given, becomes the delivery log id.
    """
    logger.info(
        "Template notification task started",
        extra={"template_code": template_code, "target_role": target_role},
    )
    return asyncio.run(
        _send_template(
            template_code, target_role, filters, variables, selected_recipient_ids, send_id
        )
    )
