from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set

from loguru import logger

from secretsanta.services.assignment import Pair
from secretsanta.services.templates import Message, render_assignment
from secretsanta.services.transport import Transport

Renderer = Callable[[str, str], Message]


class DeliveryResult(str, enum.Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


class DeliveryStatus(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"
    DISABLED = "disabled"
    PENDING = "pending"


def determine_status(results: Mapping[str, DeliveryResult]) -> DeliveryStatus:
    if not results:
        return DeliveryStatus.DISABLED

    values = list(results.values())
    if DeliveryResult.PENDING in values:
        return DeliveryStatus.PENDING
    if all(value == DeliveryResult.DELIVERED for value in values):
        return DeliveryStatus.SUCCESS
    if all(value == DeliveryResult.FAILED for value in values):
        return DeliveryStatus.FAILED
    return DeliveryStatus.PARTIAL


def failure_messages(results: Mapping[str, DeliveryResult]) -> List[str]:
    return [
        f"Failed to deliver notification to: {recipient}"
        for recipient, result in results.items()
        if result == DeliveryResult.FAILED
    ]


@dataclass(frozen=True)
class DeliveryReport:
    status: DeliveryStatus
    results: Dict[str, DeliveryResult] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls, results: Mapping[str, DeliveryResult]) -> "DeliveryReport":
        return cls(DeliveryStatus.SUCCESS, dict(results), [])

    @classmethod
    def failed(cls, results: Mapping[str, DeliveryResult], errors: Sequence[str]) -> "DeliveryReport":
        return cls(DeliveryStatus.FAILED, dict(results), list(errors))

    @classmethod
    def partial(cls, results: Mapping[str, DeliveryResult], errors: Sequence[str]) -> "DeliveryReport":
        return cls(DeliveryStatus.PARTIAL, dict(results), list(errors))

    @classmethod
    def pending(cls, results: Mapping[str, DeliveryResult]) -> "DeliveryReport":
        return cls(DeliveryStatus.PENDING, dict(results), [])

    @classmethod
    def disabled(cls) -> "DeliveryReport":
        return cls(DeliveryStatus.DISABLED, {}, [])

    @classmethod
    def from_results(cls, results: Mapping[str, DeliveryResult]) -> "DeliveryReport":
        status = determine_status(results)
        if status == DeliveryStatus.SUCCESS:
            return cls.success(results)
        if status == DeliveryStatus.FAILED:
            return cls.failed(results, failure_messages(results))
        if status == DeliveryStatus.PARTIAL:
            return cls.partial(results, failure_messages(results))
        if status == DeliveryStatus.PENDING:
            return cls.pending(results)
        return cls.disabled()

    @property
    def is_successful(self) -> bool:
        return self.status == DeliveryStatus.SUCCESS

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.status == DeliveryStatus.FAILED


def display_name(identifier: str, names: Optional[Mapping[str, str]]) -> str:
    if names and names.get(identifier):
        return names[identifier]
    return identifier


class DeliveryEngine:
    """Sends one notification per pair, to the giver, with per-pair retry.

    Every pair runs as its own task and writes only the result entry keyed by
    its giver, so tasks never contend for the same key.
    """

    def __init__(
        self,
        transport: Transport,
        renderer: Renderer = render_assignment,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        if retry_attempts < 1:
            raise ValueError("retry_attempts must be at least 1")
        self.transport = transport
        self.renderer = renderer
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay
        self._background: Set[asyncio.Task] = set()

    async def send_one(
        self,
        pair: Pair,
        names: Optional[Mapping[str, str]],
        results: Dict[str, DeliveryResult],
    ) -> DeliveryResult:
        giver = pair.giver
        results[giver] = DeliveryResult.PENDING
        log = logger.bind(recipient=giver)

        try:
            message = self.renderer(display_name(giver, names), display_name(pair.receiver, names))
        except Exception as exc:
            log.error("Failed to render notification: {error}", error=str(exc))
            results[giver] = DeliveryResult.FAILED
            return DeliveryResult.FAILED

        for attempt in range(1, self.retry_attempts + 1):
            try:
                await self.transport.send(giver, message)
            except Exception as exc:
                log.warning(
                    "Delivery attempt {attempt}/{total} failed: {error}",
                    attempt=attempt,
                    total=self.retry_attempts,
                    error=str(exc),
                )
                if attempt < self.retry_attempts and self.retry_delay > 0:
                    await asyncio.sleep(self.retry_delay)
                continue

            results[giver] = DeliveryResult.DELIVERED
            log.debug("Notification delivered on attempt {attempt}", attempt=attempt)
            return DeliveryResult.DELIVERED

        results[giver] = DeliveryResult.FAILED
        log.error("Giving up after {total} attempts", total=self.retry_attempts)
        return DeliveryResult.FAILED

    async def send_all(
        self,
        pairs: Sequence[Pair],
        names: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, DeliveryResult]:
        results: Dict[str, DeliveryResult] = {}
        if not pairs:
            logger.debug("No pairs to notify")
            return results

        logger.info("Delivering {count} notifications", count=len(pairs))
        await asyncio.gather(*(self.send_one(pair, names, results) for pair in pairs))
        _log_results(results)
        return results

    def start_background(self, pairs: Sequence[Pair], names: Optional[Mapping[str, str]] = None) -> None:
        """Schedule ``send_all`` on a detached task; the outcome is only logged."""
        task = asyncio.create_task(self._run_background(list(pairs), dict(names or {})))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_background(self) -> None:
        """Shutdown hook: let in-flight background deliveries finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _run_background(self, pairs: List[Pair], names: Dict[str, str]) -> None:
        try:
            await self.send_all(pairs, names)
        except Exception:
            logger.exception("Background notification delivery failed")
            return
        logger.info("Background notification delivery completed")


def _log_results(results: Mapping[str, DeliveryResult]) -> None:
    delivered = sum(1 for result in results.values() if result == DeliveryResult.DELIVERED)
    failed = [recipient for recipient, result in results.items() if result == DeliveryResult.FAILED]
    logger.info(
        "Notification delivery completed: {delivered} delivered, {failed} failed out of {total}",
        delivered=delivered,
        failed=len(failed),
        total=len(results),
    )
    if failed:
        logger.warning("Failed notification deliveries: {failed}", failed=", ".join(failed))
