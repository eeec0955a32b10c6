from __future__ import annotations

import enum
from typing import Mapping, Optional, Sequence, Union

from loguru import logger

from secretsanta.services.assignment import Pair
from secretsanta.services.delivery import (
    DeliveryEngine,
    DeliveryReport,
    DeliveryResult,
)

_ALIASES = {
    "sync": "synchronous",
    "synchronous": "synchronous",
    "async": "asynchronous",
    "asynchronous": "asynchronous",
}


class DeliveryMode(str, enum.Enum):
    SYNCHRONOUS = "synchronous"
    ASYNCHRONOUS = "asynchronous"

    @classmethod
    def from_config(cls, value: Optional[str]) -> "DeliveryMode":
        normalized = (value or "").strip().lower()
        if not normalized:
            logger.debug("No delivery mode configured, using synchronous delivery")
            return cls.SYNCHRONOUS
        if normalized not in _ALIASES:
            logger.warning("Unknown delivery mode {mode!r}, defaulting to synchronous delivery", mode=value)
            return cls.SYNCHRONOUS
        return cls(_ALIASES[normalized])


def is_supported_mode(value: Optional[str]) -> bool:
    normalized = (value or "").strip().lower()
    return not normalized or normalized in _ALIASES


class SynchronousDelivery:
    """Waits for every notification to finish and reports the final outcome."""

    name = "synchronous"

    def __init__(self, engine: DeliveryEngine) -> None:
        self.engine = engine

    async def deliver(self, pairs: Sequence[Pair], names: Optional[Mapping[str, str]] = None) -> DeliveryReport:
        logger.info("Starting synchronous delivery for {count} pairs", count=len(pairs))
        try:
            results = await self.engine.send_all(pairs, names)
        except Exception as exc:
            logger.exception("Synchronous delivery failed")
            return DeliveryReport.failed(
                {pair.giver: DeliveryResult.FAILED for pair in pairs},
                [f"Notification delivery failed: {exc}"],
            )
        return DeliveryReport.from_results(results)


class AsynchronousDelivery:
    """Starts delivery in the background and returns at once.

    The returned report is always PENDING and is never updated; the final
    outcome is only visible in the logs.
    """

    name = "asynchronous"

    def __init__(self, engine: DeliveryEngine) -> None:
        self.engine = engine

    async def deliver(self, pairs: Sequence[Pair], names: Optional[Mapping[str, str]] = None) -> DeliveryReport:
        logger.info("Starting asynchronous delivery for {count} pairs", count=len(pairs))
        if not pairs:
            return DeliveryReport.disabled()
        self.engine.start_background(pairs, names)
        return DeliveryReport.pending({pair.giver: DeliveryResult.PENDING for pair in pairs})


DeliveryStrategy = Union[SynchronousDelivery, AsynchronousDelivery]


def select_strategy(mode: Union[DeliveryMode, str, None], engine: DeliveryEngine) -> DeliveryStrategy:
    if not isinstance(mode, DeliveryMode):
        mode = DeliveryMode.from_config(mode)
    if mode == DeliveryMode.ASYNCHRONOUS:
        return AsynchronousDelivery(engine)
    return SynchronousDelivery(engine)
