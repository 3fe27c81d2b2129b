from math import ceil
from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.api.deps import get_notification_center, get_notification_operator
from alertcast.core.exceptions import (
    InvalidRecipient,
    TemplateNotFound,
    ValidationError,
)
from alertcast.db.session import get_db
from alertcast.models.recipient import Recipient, RecipientRole
from alertcast.schemas.notification import (
    CancelResponse,
    DeliveryLogListResponse,
    DeliveryLogResponse,
    FilterOptionsResponse,
    AudienceRequest,
    PreviewRequest,
    PreviewResponse,
    RecipientListResponse,
    RecipientSummary,
    SendCustomRequest,
    SendResponse,
    SendTemplateRequest,
    TemplateCreate,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdate,
)
from alertcast.services.audience import TargetSpecification
from alertcast.services.notification_center import NotificationCenter, Operator, SendResult
from alertcast.services.template_registry import TemplateRegistry

router = APIRouter()


def _spec_from(request: AudienceRequest) -> TargetSpecification:
    return TargetSpecification(
        target_role=request.target_role,
        filters=dict(request.filters or {}),
        selected_recipient_ids=list(request.selected_recipient_ids or []),
    )


def _summarize(recipient: Recipient) -> RecipientSummary:
    attributes = recipient.attributes or {}
    extra = ", ".join(str(v) for v in attributes.values() if isinstance(v, str) and v)
    return RecipientSummary(
        id=recipient.id,
        role=recipient.role,
        full_name=recipient.full_name,
        email=recipient.email,
        phone=recipient.phone,
        extra=extra or None,
        subscription_count=len(recipient.active_handles),
    )


def _send_id(request: Union[SendTemplateRequest, SendCustomRequest]) -> Optional[str]:
    return str(request.send_id) if request.send_id else None


def _to_response(result: SendResult) -> SendResponse:
    return SendResponse(
        success=result.success,
        message=result.message,
        log_id=result.log_id,
        status=result.status,
        code=result.code,
    )


# Templates

@router.get("/templates", response_model=TemplateListResponse)
async def list_templates(
    category: Optional[str] = Query(None),
    active_only: bool = Query(False, alias="activeOnly"),
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    """List templates, optionally by category and active state."""
    templates = await center.list_templates(category, active_only)
    return {"templates": templates}


@router.post("/templates", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: TemplateCreate,
    db: AsyncSession = Depends(get_db),
    operator: Operator = Depends(get_notification_operator),
):
    try:
        return await TemplateRegistry(db).create(data)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


@router.put("/templates/{code}", response_model=TemplateResponse)
async def update_template(
    code: str,
    changes: TemplateUpdate,
    db: AsyncSession = Depends(get_db),
    operator: Operator = Depends(get_notification_operator),
):
    try:
        return await TemplateRegistry(db).update(code, changes)
    except TemplateNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


# Audience

@router.get("/filters/{role}", response_model=FilterOptionsResponse)
async def get_filter_options(
    role: RecipientRole,
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    return {"role": role, "filters": center.get_filter_options(role)}


@router.get("/users/{role}", response_model=RecipientListResponse)
async def get_recipients_by_role(
    role: RecipientRole,
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    recipients = await center.get_recipients_by_role(role)
    return {"users": [_summarize(r) for r in recipients]}


@router.post("/preview", response_model=PreviewResponse)
async def preview_audience(
    request: PreviewRequest,
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    """
    Count the recipients a send would reach right now.

    The count is advisory: sends always resolve the audience again.
    """
    try:
        preview = await center.preview_audience(_spec_from(request), request.template_code)
    except TemplateNotFound as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    except (InvalidRecipient, ValidationError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    return {"count": preview.count, "breakdown": preview.breakdown}


# Sends

@router.post("/send/template", response_model=SendResponse)
async def send_template_notification(
    request: SendTemplateRequest,
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    result = await center.send_template(
        operator,
        request.template_code,
        _spec_from(request),
        variables=request.variables,
        expected_count=request.expected_count,
        send_id=_send_id(request),
    )
    return _to_response(result)


@router.post("/send/custom", response_model=SendResponse)
async def send_custom_notification(
    request: SendCustomRequest,
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    result = await center.send_custom(
        operator,
        request.title,
        request.body,
        request.url,
        _spec_from(request),
        expected_count=request.expected_count,
        send_id=_send_id(request),
    )
    return _to_response(result)


@router.post("/send/test", response_model=SendResponse)
async def send_test_notification(
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    """Send a test notification to the calling operator's own devices."""
    result = await center.send_test(operator)
    return _to_response(result)


@router.post("/sends/{log_id}/cancel", response_model=CancelResponse)
async def cancel_send(
    log_id: str,
    operator: Operator = Depends(get_notification_operator),
):
    cancelled = NotificationCenter.cancel(log_id)
    if not cancelled:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No in-flight send with this id",
        )
    return {"log_id": log_id, "cancelled": True}


# Logs

@router.get("/logs", response_model=DeliveryLogListResponse)
async def list_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    items, total = await center.list_logs(page, limit)
    return {
        "logs": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": ceil(total / limit) if total else 0,
    }


@router.get("/logs/{log_id}", response_model=DeliveryLogResponse)
async def get_log(
    log_id: str,
    center: NotificationCenter = Depends(get_notification_center),
    operator: Operator = Depends(get_notification_operator),
):
    log = await center.get_log(log_id)
    if not log:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification log not found"
        )
    return log
