"""Notification center: preview, confirm and send."""

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.core.config import settings
from alertcast.core.exceptions import (
    EmptyAudience,
    InvalidStateTransition,
    NotificationError,
    StoreWriteError,
    ValidationError,
)
from alertcast.core.logging import get_logger
from alertcast.db.base import normalize_id
from alertcast.db.repositories.delivery_log_repo import DeliveryLogRepository
from alertcast.db.repositories.recipient_repo import RecipientRepository
from alertcast.models.delivery_log import DeliveryKind, DeliveryLog, DeliveryStatus, derive_status
from alertcast.models.recipient import Recipient, RecipientRole
from alertcast.models.template import NotificationTemplate
from alertcast.services.audience import AudiencePreview, AudienceResolver, TargetSpecification
from alertcast.services.filters import get_filter_options
from alertcast.services.orchestrator import (
    CancelToken,
    DeliveryOrchestrator,
    DeliveryReport,
    DeliveryTarget,
    targets_from,
)
from alertcast.services.push_gateway import PushGateway
from alertcast.services.renderer import MessageRenderer, RenderedMessage
from alertcast.services.template_registry import TemplateRegistry

logger = get_logger(__name__)


class SendState(str, enum.Enum):
    DRAFT = "draft"
    PREVIEWED = "previewed"
    SENDING = "sending"
    SENT = "sent"
    PARTIAL = "partial"
    FAILED = "failed"


_TRANSITIONS = {
    SendState.DRAFT: {SendState.PREVIEWED},
    SendState.PREVIEWED: {SendState.SENDING},
    SendState.SENDING: {SendState.SENT, SendState.PARTIAL, SendState.FAILED},
}

_FINAL_STATES = {
    DeliveryStatus.SENT: SendState.SENT,
    DeliveryStatus.PARTIAL: SendState.PARTIAL,
    DeliveryStatus.FAILED: SendState.FAILED,
}


@dataclass
class Operator:
    """The authenticated user driving the notification center."""

    id: str
    role: str
    name: Optional[str] = None


@dataclass
class SendRequest:
    kind: DeliveryKind
    id: str = field(default_factory=lambda: str(uuid4()))
    state: SendState = SendState.DRAFT
    cancel_token: CancelToken = field(default_factory=CancelToken)

    def advance(self, new_state: SendState) -> None:
        if new_state not in _TRANSITIONS.get(self.state, set()):
            raise InvalidStateTransition(
                f"Send {self.id} cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state


@dataclass
class SendResult:
    success: bool
    message: str
    log_id: Optional[str] = None
    status: Optional[DeliveryStatus] = None
    code: Optional[str] = None


# Sends currently fanning out in this process, by attempt id.
_in_flight: Dict[str, SendRequest] = {}


class NotificationCenter:
    def __init__(
        self,
        session: AsyncSession,
        gateway: PushGateway,
        orchestrator: Optional[DeliveryOrchestrator] = None,
    ):
        self.session = session
        self.registry = TemplateRegistry(session)
        self.renderer = MessageRenderer(self.registry)
        self.resolver = AudienceResolver(session)
        self.directory = RecipientRepository(session)
        self.logs = DeliveryLogRepository(session)
        self.orchestrator = orchestrator or DeliveryOrchestrator(gateway)

    # Read side

    async def list_templates(
        self, category: Optional[str] = None, active_only: bool = False
    ) -> Sequence[NotificationTemplate]:
        return await self.registry.list_templates(category, active_only)

    def get_filter_options(self, role: RecipientRole) -> List[Dict[str, Any]]:
        return get_filter_options(role)

    async def get_recipients_by_role(self, role: RecipientRole) -> Sequence[Recipient]:
        return await self.directory.list_by_role(role)

    async def preview_audience(
        self, spec: TargetSpecification, template_code: Optional[str] = None
    ) -> AudiencePreview:
        allowed_roles = None
        if template_code:
            template = await self.registry.get_by_code(template_code)
            allowed_roles = template.target_roles
        return await self.resolver.preview(spec, allowed_roles)

    async def list_logs(self, page: int, limit: int) -> Tuple[List[DeliveryLog], int]:
        return await self.logs.list_logs(skip=(page - 1) * limit, limit=limit)

    async def get_log(self, log_id: str) -> Optional[DeliveryLog]:
        log_id = normalize_id(log_id)
        if log_id is None:
            return None
        return await self.logs.get(log_id)

    @staticmethod
    def cancel(attempt_id: str) -> bool:
        """Stop scheduling the rest of an in-flight send."""
        request = _in_flight.get(normalize_id(attempt_id) or attempt_id)
        if request is None:
            return False
        request.cancel_token.cancel()
        logger.info("Send cancelled", extra={"log_id": attempt_id})
        return True

    # Sends

    async def send_template(
        self,
        operator: Operator,
        template_code: str,
        spec: TargetSpecification,
        variables: Optional[Mapping[str, Any]] = None,
        expected_count: Optional[int] = None,
        send_id: Optional[str] = None,
    ) -> SendResult:
        async def pipeline() -> SendResult:
            request = await self._new_request(DeliveryKind.TEMPLATE, send_id)
            template = await self.registry.get_by_code(template_code)
            message = self.renderer.from_template(template, variables)
            audience = await self.resolver.resolve(spec, allowed_roles=template.target_roles)
            if audience.is_empty:
                raise EmptyAudience()
            request.advance(SendState.PREVIEWED)
            return await self._deliver(
                request,
                operator,
                message,
                targets_from(audience.recipients),
                spec=spec,
                template_code=template.code,
                expected_count=expected_count,
            )

        return await self._guarded(pipeline)

    async def send_custom(
        self,
        operator: Operator,
        title: str,
        body: str,
        url: Optional[str],
        spec: TargetSpecification,
        expected_count: Optional[int] = None,
        send_id: Optional[str] = None,
    ) -> SendResult:
        async def pipeline() -> SendResult:
            request = await self._new_request(DeliveryKind.CUSTOM, send_id)
            message = self.renderer.from_custom(title, body, url)
            audience = await self.resolver.resolve(spec)
            if audience.is_empty:
                raise EmptyAudience()
            request.advance(SendState.PREVIEWED)
            return await self._deliver(
                request,
                operator,
                message,
                targets_from(audience.recipients),
                spec=spec,
                expected_count=expected_count,
            )

        return await self._guarded(pipeline)

    async def send_test(self, operator: Operator) -> SendResult:
        """Send a test message to the operator alone, ignoring any audience state."""

        async def pipeline() -> SendResult:
            request = SendRequest(DeliveryKind.TEST)
            message = self.renderer.from_custom(
                settings.test_notification_title, settings.test_notification_body
            )
            # Operators from an external identity provider may not have a UUID id.
            operator_id = normalize_id(operator.id)
            me = await self.directory.get_with_subscriptions(operator_id) if operator_id else None
            target = targets_from([me])[0] if me is not None else DeliveryTarget(operator.id)
            request.advance(SendState.PREVIEWED)
            result = await self._deliver(request, operator, message, [target])
            if not result.success and not target.handles:
                result.message = "No push subscription registered for your account"
            return result

        return await self._guarded(pipeline)

    # Internals

    async def _new_request(self, kind: DeliveryKind, send_id: Optional[str]) -> SendRequest:
        """Start a send, under the caller's id when one is given so it can be cancelled."""
        if send_id is None:
            return SendRequest(kind)
        normalized = normalize_id(send_id)
        if normalized is None:
            raise ValidationError("Send id must be a UUID")
        if normalized in _in_flight or await self.logs.get(normalized) is not None:
            raise ValidationError(f"Send id {normalized} has already been used")
        return SendRequest(kind, id=normalized)

    async def _guarded(self, pipeline: Callable[[], Awaitable[SendResult]]) -> SendResult:
        try:
            return await pipeline()
        except (StoreWriteError, InvalidStateTransition):
            raise
        except NotificationError as exc:
            logger.info("Send rejected", extra={"code": exc.code, "reason": exc.message})
            return SendResult(success=False, message=exc.message, code=exc.code)

    async def _deliver(
        self,
        request: SendRequest,
        operator: Operator,
        message: RenderedMessage,
        targets: List[DeliveryTarget],
        spec: Optional[TargetSpecification] = None,
        template_code: Optional[str] = None,
        expected_count: Optional[int] = None,
    ) -> SendResult:
        request.advance(SendState.SENDING)
        created_at = datetime.now(timezone.utc)
        _in_flight[request.id] = request
        try:
            report = await self.orchestrator.send(targets, message, request.cancel_token)
        finally:
            _in_flight.pop(request.id, None)

        status = derive_status(report.target_count, report.success_count, report.fail_count)
        request.advance(_FINAL_STATES[status])

        log = DeliveryLog(
            id=request.id,
            kind=request.kind,
            template_code=template_code,
            title=message.title,
            body=message.body,
            url=message.url,
            target_role=spec.target_role.value if spec else None,
            target_filters=dict(spec.filters) if spec and spec.filters else None,
            target_count=report.target_count,
            success_count=report.success_count,
            fail_count=report.fail_count,
            errors=report.errors,
            status=status,
            sent_by=operator.id,
            sent_by_name=operator.name,
            created_at=created_at,
            completed_at=datetime.now(timezone.utc),
        )
        await self.logs.append(log)

        logger.info(
            "Notification send completed",
            extra={
                "log_id": log.id,
                "kind": request.kind.value,
                "status": status.value,
                "target_count": report.target_count,
                "success_count": report.success_count,
                "fail_count": report.fail_count,
            },
        )
        return SendResult(
            success=status != DeliveryStatus.FAILED,
            message=_describe(status, report, expected_count),
            log_id=log.id,
            status=status,
        )


def _describe(status: DeliveryStatus, report: DeliveryReport, expected_count: Optional[int]) -> str:
    if status == DeliveryStatus.SENT:
        text = f"Notification sent to {report.success_count} recipient(s)"
    elif status == DeliveryStatus.PARTIAL:
        text = (
            f"Partial delivery: sent to {report.success_count} of {report.target_count} "
            f"recipient(s), {report.fail_count} failed"
        )
    else:
        text = f"Notification failed for all {report.target_count} recipient(s)"

    if expected_count is not None and expected_count != report.target_count:
        logger.warning(
            "Audience changed since preview",
            extra={"expected_count": expected_count, "target_count": report.target_count},
        )
        text += f" (audience changed since preview: expected {expected_count})"
    return text
