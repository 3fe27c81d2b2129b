"""Device subscription registration and identity binding."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.core.exceptions import InvalidRecipient, ProviderError
from alertcast.core.logging import get_logger
from alertcast.db.base import normalize_id
from alertcast.db.repositories.recipient_repo import RecipientRepository
from alertcast.models.recipient import PushSubscription, Recipient, SubscriptionPlatform
from alertcast.services.push_gateway import PushGateway

logger = get_logger(__name__)


@dataclass
class BindOutcome:
    identity_bound: bool
    tags_bound: bool

    @property
    def bound(self) -> bool:
        return self.identity_bound or self.tags_bound


class SubscriptionBinder:
    """Two-step bind: identity first, then role/user tags.

    Either step may fail without affecting the other; a subscription bound by
    tags alone is still targetable by role.
    """

    def __init__(self, gateway: PushGateway):
        self.gateway = gateway

    async def bind(self, handle: str, recipient: Recipient) -> BindOutcome:
        role = recipient.role.value if hasattr(recipient.role, "value") else str(recipient.role)

        identity_bound = True
        try:
            await self.gateway.bind_identity(handle, recipient.id)
        except ProviderError as exc:
            identity_bound = False
            logger.warning(
                "Identity bind failed",
                extra={"recipient_id": recipient.id, "handle": handle, "reason": exc.reason},
            )

        tags_bound = True
        try:
            await self.gateway.add_tags(handle, {"role": role, "user_id": recipient.id})
        except ProviderError as exc:
            tags_bound = False
            logger.warning(
                "Tag bind failed",
                extra={"recipient_id": recipient.id, "handle": handle, "reason": exc.reason},
            )

        return BindOutcome(identity_bound=identity_bound, tags_bound=tags_bound)


class SubscriptionService:
    def __init__(self, session: AsyncSession, gateway: PushGateway):
        self.session = session
        self.repo = RecipientRepository(session)
        self.binder = SubscriptionBinder(gateway)

    async def register(
        self,
        recipient_id: str,
        handle: str,
        platform: SubscriptionPlatform = SubscriptionPlatform.WEB,
    ) -> tuple[PushSubscription, BindOutcome]:
        """Attach ``handle`` to the recipient and bind it at the provider.

        A handle previously owned by another recipient moves to this one.
        """
        normalized = normalize_id(recipient_id)
        recipient = await self.repo.get(normalized) if normalized else None
        if recipient is None:
            raise InvalidRecipient(recipient_id, "not found")

        subscription = await self.repo.get_subscription_by_handle(handle)
        if subscription is None:
            subscription = PushSubscription(recipient_id=recipient.id, handle=handle, platform=platform)
            self.session.add(subscription)
        else:
            subscription.recipient_id = recipient.id
            subscription.platform = platform
            subscription.is_active = True

        outcome = await self.binder.bind(handle, recipient)
        subscription.identity_bound = outcome.identity_bound
        subscription.tags_bound = outcome.tags_bound

        await self.session.commit()
        await self.session.refresh(subscription)

        logger.info(
            "Push subscription registered",
            extra={
                "recipient_id": recipient.id,
                "subscription_id": subscription.id,
                "identity_bound": outcome.identity_bound,
                "tags_bound": outcome.tags_bound,
            },
        )
        return subscription, outcome
