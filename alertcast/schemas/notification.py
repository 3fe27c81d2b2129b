"""Schemas for the notification center."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from alertcast.models.delivery_log import DeliveryKind, DeliveryStatus
from alertcast.models.recipient import RecipientRole, SubscriptionPlatform, TargetRole
from alertcast.models.template import NotificationSeverity


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case is accepted too."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# Templates

class TemplateBase(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(default="general", max_length=50)
    severity: NotificationSeverity = NotificationSeverity.INFO
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field(..., min_length=1, max_length=2000)
    variables: List[str] = Field(default_factory=list)
    target_roles: List[RecipientRole] = Field(default_factory=list)
    is_active: bool = True


class TemplateCreate(TemplateBase):
    code: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9_]+$")


class TemplateUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, max_length=50)
    severity: Optional[NotificationSeverity] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = Field(None, min_length=1, max_length=2000)
    variables: Optional[List[str]] = None
    target_roles: Optional[List[RecipientRole]] = None
    is_active: Optional[bool] = None


class TemplateResponse(TemplateBase):
    id: str
    code: str
    version: int
    created_at: datetime
    updated_at: datetime


class TemplateListResponse(CamelModel):
    templates: List[TemplateResponse]


# Audience

class FilterOptionResponse(CamelModel):
    field: str
    label: str
    type: str
    options: Optional[List[str]] = None


class FilterOptionsResponse(CamelModel):
    role: RecipientRole
    filters: List[FilterOptionResponse]


class RecipientSummary(CamelModel):
    id: str
    role: RecipientRole
    full_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    extra: Optional[str] = None
    subscription_count: int = 0


class RecipientListResponse(CamelModel):
    users: List[RecipientSummary]


class AudienceRequest(CamelModel):
    target_role: TargetRole
    filters: Optional[Dict[str, Any]] = None
    selected_recipient_ids: Optional[List[str]] = Field(default=None, alias="selectedUserIds")


class PreviewRequest(AudienceRequest):
    template_code: Optional[str] = None


class PreviewResponse(CamelModel):
    count: int
    breakdown: Dict[str, int]


# Sends

class SendTemplateRequest(AudienceRequest):
    template_code: str
    variables: Optional[Dict[str, Any]] = None
    expected_count: Optional[int] = Field(default=None, ge=0)
    # Caller-chosen id, known before the send finishes so it can be cancelled.
    send_id: Optional[UUID] = None


class SendCustomRequest(AudienceRequest):
    # Length limits are enforced by the renderer so they fail as a send result.
    title: str
    body: str
    url: Optional[str] = None
    expected_count: Optional[int] = Field(default=None, ge=0)
    send_id: Optional[UUID] = None


class SendResponse(CamelModel):
    success: bool
    message: str
    log_id: Optional[str] = None
    status: Optional[DeliveryStatus] = None
    code: Optional[str] = None


class CancelResponse(CamelModel):
    log_id: str
    cancelled: bool


# Logs

class DeliveryErrorEntry(CamelModel):
    recipient_id: str
    reason: str


class DeliveryLogResponse(CamelModel):
    id: str
    kind: DeliveryKind
    template_code: Optional[str] = None
    title: str
    body: str
    url: Optional[str] = None
    target_role: Optional[str] = None
    target_filters: Optional[Dict[str, Any]] = None
    target_count: int
    success_count: int
    fail_count: int
    errors: List[DeliveryErrorEntry]
    status: DeliveryStatus
    sent_by: str
    sent_by_name: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None


class DeliveryLogListResponse(CamelModel):
    logs: List[DeliveryLogResponse]
    total: int
    page: int
    limit: int
    pages: int


# Subscriptions

class SubscriptionRegisterRequest(CamelModel):
    handle: str = Field(..., min_length=1, max_length=255)
    platform: SubscriptionPlatform = SubscriptionPlatform.WEB


class SubscriptionBindResponse(CamelModel):
    subscription_id: str
    identity_bound: bool
    tags_bound: bool
