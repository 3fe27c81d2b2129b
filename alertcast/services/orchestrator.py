"""Fan-out delivery of one rendered message to many recipients."""

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from alertcast.core.config import settings
from alertcast.core.exceptions import ProviderError, ProviderPermanentError, ProviderTransientError
from alertcast.core.logging import get_logger
from alertcast.services.push_gateway import PushGateway
from alertcast.services.renderer import RenderedMessage

logger = get_logger(__name__)

NO_SUBSCRIPTION = "no_subscription"
CANCELLED = "cancelled"
INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class DeliveryTarget:
    """Snapshot of a recipient taken before fan-out."""

    recipient_id: str
    handles: Tuple[str, ...] = ()


def targets_from(recipients: Iterable) -> List[DeliveryTarget]:
    return [DeliveryTarget(r.id, tuple(r.active_handles)) for r in recipients]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 2
    backoff_base: float = 0.5
    timeout: float = 10.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.delivery_max_retries,
            backoff_base=settings.delivery_backoff_base_seconds,
            timeout=settings.delivery_timeout_seconds,
        )


class CancelToken:
    """Set to stop scheduling recipients that have not started yet."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class DeliveryReport:
    target_count: int
    error_cap: int = 50
    success_count: int = 0
    fail_count: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def record_success(self) -> None:
        self.success_count += 1

    def record_failure(self, recipient_id: str, reason: str) -> None:
        self.fail_count += 1
        if len(self.errors) < self.error_cap:
            self.errors.append({"recipientId": recipient_id, "reason": reason})

    @property
    def truncated_errors(self) -> int:
        return self.fail_count - len(self.errors)


class DeliveryOrchestrator:
    """Bounded-concurrency fan-out with per-recipient failure isolation.

    A batch is attempted once. Transient provider errors are retried per
    subscription with exponential backoff; permanent errors are recorded
    immediately. Nothing raised by the gateway escapes ``send``.
    """

    def __init__(
        self,
        gateway: PushGateway,
        concurrency: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        error_cap: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.gateway = gateway
        self.concurrency = concurrency or settings.delivery_concurrency
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.error_cap = settings.delivery_error_cap if error_cap is None else error_cap
        self._sleep = sleep

    async def send(
        self,
        targets: Sequence[DeliveryTarget],
        message: RenderedMessage,
        cancel_token: Optional[CancelToken] = None,
    ) -> DeliveryReport:
        report = DeliveryReport(target_count=len(targets), error_cap=self.error_cap)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(target: DeliveryTarget) -> Tuple[str, Optional[str]]:
            async with semaphore:
                if cancel_token is not None and cancel_token.cancelled:
                    return target.recipient_id, CANCELLED
                return target.recipient_id, await self._deliver_to_recipient(target, message)

        logger.info(
            "Delivery batch started",
            extra={"target_count": len(targets), "concurrency": self.concurrency},
        )
        results = await asyncio.gather(*(run(t) for t in targets))

        for recipient_id, failure in results:
            if failure is None:
                report.record_success()
            else:
                report.record_failure(recipient_id, failure)

        logger.info(
            "Delivery batch settled",
            extra={
                "target_count": report.target_count,
                "success_count": report.success_count,
                "fail_count": report.fail_count,
            },
        )
        return report

    async def _deliver_to_recipient(
        self, target: DeliveryTarget, message: RenderedMessage
    ) -> Optional[str]:
        """Return None on success, else the failure reason.

        The recipient succeeds if any of its subscriptions accepts the message.
        """
        if not target.handles:
            return NO_SUBSCRIPTION

        delivered = False
        last_reason = None
        for handle in target.handles:
            try:
                await self._deliver_with_retry(handle, message)
                delivered = True
            except ProviderError as exc:
                last_reason = exc.reason
                logger.warning(
                    "Delivery failed",
                    extra={
                        "recipient_id": target.recipient_id,
                        "handle": handle,
                        "reason": exc.reason,
                        "permanent": isinstance(exc, ProviderPermanentError),
                    },
                )
            except Exception:
                last_reason = INTERNAL_ERROR
                logger.exception(
                    "Unexpected gateway error",
                    extra={"recipient_id": target.recipient_id, "handle": handle},
                )
        return None if delivered else last_reason

    async def _deliver_with_retry(self, handle: str, message: RenderedMessage) -> str:
        policy = self.retry_policy

        def log_retry(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception()
            logger.debug(
                "Retrying transient delivery failure",
                extra={
                    "handle": handle,
                    "attempt": retry_state.attempt_number,
                    "delay": retry_state.next_action.sleep,
                    "reason": getattr(error, "reason", str(error)),
                },
            )

        retrying = AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(policy.max_retries + 1),
            wait=wait_exponential(multiplier=policy.backoff_base),
            retry=retry_if_exception_type(ProviderTransientError),
            before_sleep=log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                message_id = await self._deliver_once(handle, message)
        return message_id

    async def _deliver_once(self, handle: str, message: RenderedMessage) -> str:
        try:
            return await asyncio.wait_for(
                self.gateway.deliver(handle, message), timeout=self.retry_policy.timeout
            )
        except asyncio.TimeoutError as exc:
            raise ProviderTransientError("timeout") from exc
