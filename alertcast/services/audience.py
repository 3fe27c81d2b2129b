"""Audience resolution: target specification to concrete recipients."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.core.exceptions import InvalidRecipient
from alertcast.core.logging import get_logger
from alertcast.db.base import normalize_id
from alertcast.db.repositories.recipient_repo import RecipientRepository
from alertcast.models.recipient import Recipient, RecipientRole, TargetRole
from alertcast.services.filters import build_predicates

logger = get_logger(__name__)


@dataclass
class TargetSpecification:
    """Who a single send is aimed at. Built per request, discarded after resolution."""

    target_role: TargetRole
    filters: Dict[str, Any] = field(default_factory=dict)
    selected_recipient_ids: List[str] = field(default_factory=list)

    @property
    def is_explicit(self) -> bool:
        return bool(self.selected_recipient_ids)

    def roles(self) -> List[RecipientRole]:
        if self.target_role == TargetRole.ALL:
            return list(RecipientRole)
        return [RecipientRole(self.target_role.value)]


@dataclass
class AudiencePreview:
    count: int
    breakdown: Dict[str, int]


@dataclass
class ResolvedAudience:
    recipients: List[Recipient]

    @property
    def count(self) -> int:
        return len(self.recipients)

    @property
    def is_empty(self) -> bool:
        return not self.recipients

    def breakdown(self) -> Dict[str, int]:
        counts = Counter(_role_value(r.role) for r in self.recipients)
        return dict(counts)

    def preview(self) -> AudiencePreview:
        return AudiencePreview(count=self.count, breakdown=self.breakdown())


def _role_value(role: Any) -> str:
    return role.value if isinstance(role, RecipientRole) else str(role)


class AudienceResolver:
    """Pure reads against the recipient directory."""

    def __init__(self, session: AsyncSession):
        self.directory = RecipientRepository(session)

    async def resolve(
        self,
        spec: TargetSpecification,
        allowed_roles: Optional[Collection[str]] = None,
    ) -> ResolvedAudience:
        """Resolve ``spec``.

        ``allowed_roles`` is the sending template's target roles; explicit
        recipients outside it are rejected. Filters do not apply to explicit
        recipients.
        """
        if spec.is_explicit:
            recipients = await self._resolve_explicit(spec.selected_recipient_ids, allowed_roles)
        else:
            recipients = await self._resolve_by_roles(spec)

        logger.debug(
            "Audience resolved",
            extra={
                "target_role": spec.target_role.value,
                "explicit": spec.is_explicit,
                "count": len(recipients),
            },
        )
        return ResolvedAudience(recipients)

    async def preview(
        self,
        spec: TargetSpecification,
        allowed_roles: Optional[Collection[str]] = None,
    ) -> AudiencePreview:
        audience = await self.resolve(spec, allowed_roles)
        return audience.preview()

    async def _resolve_by_roles(self, spec: TargetSpecification) -> List[Recipient]:
        seen: set[str] = set()
        recipients: List[Recipient] = []
        for role in spec.roles():
            predicates = build_predicates(role, spec.filters)
            for recipient in await self.directory.query_by_role_and_filters(role, predicates):
                if recipient.id not in seen:
                    seen.add(recipient.id)
                    recipients.append(recipient)
        return recipients

    async def _resolve_explicit(
        self, ids: List[str], allowed_roles: Optional[Collection[str]]
    ) -> List[Recipient]:
        ordered_ids: List[str] = []
        for raw_id in ids:
            recipient_id = normalize_id(raw_id)
            if recipient_id is None:
                raise InvalidRecipient(raw_id, "not found")
            if recipient_id not in ordered_ids:
                ordered_ids.append(recipient_id)
        found = await self.directory.get_many(ordered_ids)
        allowed = {_role_value(r) for r in allowed_roles} if allowed_roles else None

        recipients = []
        for recipient_id in ordered_ids:
            recipient = found.get(recipient_id)
            if recipient is None:
                raise InvalidRecipient(recipient_id, "not found")
            if not recipient.is_active:
                raise InvalidRecipient(recipient_id, "inactive")
            role = _role_value(recipient.role)
            if allowed is not None and role not in allowed:
                raise InvalidRecipient(recipient_id, f"role '{role}' is not targeted by this template")
            recipients.append(recipient)
        return recipients
