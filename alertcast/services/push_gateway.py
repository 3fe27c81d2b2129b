"""Push provider gateways.

The engine only sees :class:`PushGateway`. Provider sessions are opened and
closed by the application lifespan, never by the delivery code.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from uuid import uuid4

import httpx

from alertcast.core.config import Settings, settings
from alertcast.core.exceptions import ProviderPermanentError, ProviderTransientError
from alertcast.core.logging import get_logger
from alertcast.services.renderer import RenderedMessage

logger = get_logger(__name__)


class PushGateway(ABC):
    """Delivery capability: one message to one subscription handle."""

    name = "base"

    async def start(self) -> None:
        """Open provider sessions."""

    async def close(self) -> None:
        """Release provider sessions."""

    @abstractmethod
    async def deliver(self, handle: str, message: RenderedMessage) -> str:
        """Deliver ``message`` and return the provider's message id.

        Raises ProviderTransientError or ProviderPermanentError on failure.
        """

    @abstractmethod
    async def bind_identity(self, handle: str, external_id: str) -> None:
        """Associate ``handle`` with the recipient's external id."""

    @abstractmethod
    async def add_tags(self, handle: str, tags: Dict[str, str]) -> None:
        """Attach targeting tags to ``handle``."""


class LoggingPushGateway(PushGateway):
    """Accepts everything and logs it. Used in development."""

    name = "log"

    async def deliver(self, handle: str, message: RenderedMessage) -> str:
        message_id = str(uuid4())
        logger.info(
            "Push notification sent",
            extra={"handle": handle, "title": message.title, "message_id": message_id},
        )
        return message_id

    async def bind_identity(self, handle: str, external_id: str) -> None:
        logger.info("Subscription identity bound", extra={"handle": handle, "external_id": external_id})

    async def add_tags(self, handle: str, tags: Dict[str, str]) -> None:
        logger.info("Subscription tagged", extra={"handle": handle, "tags": tags})


# OneSignal reports bad handles inside a 200 response.
_NOT_SUBSCRIBED = "All included players are not subscribed"


class OneSignalPushGateway(PushGateway):
    """OneSignal REST API adapter."""

    name = "onesignal"

    def __init__(
        self,
        app_id: str,
        api_key: str,
        base_url: str = "https://onesignal.com/api/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self.client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        if not self.app_id or not self.api_key:
            raise ValueError("OneSignal app id and REST API key must be configured")
        if self.client is None:
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Basic {self.api_key}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def _request(self, method: str, path: str, payload: Dict[str, Any]) -> httpx.Response:
        if self.client is None:
            await self.start()
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.TimeoutException as exc:
            raise ProviderTransientError("timeout") from exc
        except httpx.TransportError as exc:
            raise ProviderTransientError(f"transport_error: {exc}") from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise ProviderTransientError(f"http_{response.status_code}", response.status_code)
        if response.status_code >= 400:
            raise ProviderPermanentError(_describe_error(response), response.status_code)
        return response

    async def deliver(self, handle: str, message: RenderedMessage) -> str:
        payload: Dict[str, Any] = {
            "app_id": self.app_id,
            "include_player_ids": [handle],
            "headings": {"en": message.title},
            "contents": {"en": message.body},
        }
        if message.url:
            payload["url"] = message.url

        response = await self._request("POST", "/notifications", payload)
        data = response.json()
        errors = data.get("errors")
        if isinstance(errors, dict) and errors.get("invalid_player_ids"):
            raise ProviderPermanentError("invalid_subscription", response.status_code)
        if isinstance(errors, list) and _NOT_SUBSCRIBED in errors:
            raise ProviderPermanentError("not_subscribed", response.status_code)
        if not data.get("id"):
            raise ProviderPermanentError("not_subscribed", response.status_code)
        return data["id"]

    async def bind_identity(self, handle: str, external_id: str) -> None:
        await self._request(
            "PUT",
            f"/players/{handle}",
            {"app_id": self.app_id, "external_user_id": external_id},
        )

    async def add_tags(self, handle: str, tags: Dict[str, str]) -> None:
        await self._request("PUT", f"/players/{handle}", {"app_id": self.app_id, "tags": tags})


def _describe_error(response: httpx.Response) -> str:
    try:
        errors = response.json().get("errors")
    except ValueError:
        errors = None
    if isinstance(errors, list) and errors:
        return str(errors[0])
    if isinstance(errors, dict) and errors:
        return ", ".join(sorted(errors))
    return f"http_{response.status_code}"


def create_push_gateway(config: Settings = settings) -> PushGateway:
    if config.push_provider == "onesignal":
        return OneSignalPushGateway(
            app_id=config.onesignal_app_id,
            api_key=config.onesignal_rest_api_key,
            base_url=config.onesignal_api_url,
            timeout=config.delivery_timeout_seconds,
        )
    if config.push_provider == "log":
        return LoggingPushGateway()
    raise ValueError(f"Unknown push provider: {config.push_provider}")
