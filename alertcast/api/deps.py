"""API dependencies for authentication and service wiring."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.core.config import settings
from alertcast.core.context import update_context
from alertcast.core.security import decode_token
from alertcast.db.session import get_db
from alertcast.services.notification_center import NotificationCenter, Operator
from alertcast.services.push_gateway import PushGateway

security = HTTPBearer(auto_error=False)

# Development mode operator for unauthenticated requests
DEV_MOCK_OPERATOR = Operator(
    id="00000000-0000-0000-0000-000000000001",
    role="superadmin",
    name="Dev SuperAdmin",
)


async def get_current_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Operator:
    """Get the operator from the bearer token.

    In debug mode with no token, returns a mock superadmin.
    """
    if settings.debug and (credentials is None or not credentials.credentials):
        logging.warning("Using DEV_MOCK_OPERATOR for unauthenticated request")
        operator = DEV_MOCK_OPERATOR
    else:
        if credentials is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        payload = decode_token(credentials.credentials)
        if not payload:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired token",
                headers={"WWW-Authenticate": "Bearer"},
            )
        operator = Operator(id=payload.sub, role=payload.role, name=payload.name)

    update_context(user_id=operator.id)
    return operator


async def get_notification_operator(
    operator: Operator = Depends(get_current_operator),
) -> Operator:
    """Only admins and superadmins may use the notification center."""
    if operator.role not in settings.operator_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return operator


def get_push_gateway(request: Request) -> PushGateway:
    return request.app.state.push_gateway


def get_notification_center(
    db: AsyncSession = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
) -> NotificationCenter:
    return NotificationCenter(db, gateway)
