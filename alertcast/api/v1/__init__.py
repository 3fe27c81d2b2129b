"""API v1 router."""

from fastapi import APIRouter

from alertcast.api.v1 import subscriptions
from alertcast.api.v1.admin import notifications as admin_notifications

router = APIRouter()

router.include_router(
    admin_notifications.router,
    prefix="/admin/notifications",
    tags=["Admin Notifications"],
)
router.include_router(subscriptions.router, prefix="/notifications", tags=["Push Subscriptions"])
