from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger

from secretsanta.services.assignment import Pair, assign
from secretsanta.services.delivery import (
    DeliveryEngine,
    DeliveryReport,
    DeliveryResult,
    DeliveryStatus,
)
from secretsanta.services.graph import validate_constraints
from secretsanta.services.strategy import select_strategy

SUMMARY_BY_STATUS: Dict[DeliveryStatus, str] = {
    DeliveryStatus.SUCCESS: "All notifications delivered successfully.",
    DeliveryStatus.FAILED: "Notification delivery failed.",
    DeliveryStatus.PARTIAL: "Some notifications failed to deliver.",
    DeliveryStatus.DISABLED: "Notification delivery was disabled.",
    DeliveryStatus.PENDING: "Notification delivery in progress.",
}


@dataclass(frozen=True)
class GenerationRequest:
    participants: List[str]
    exclusions: Dict[str, List[str]] = field(default_factory=dict)
    forced_pairs: Dict[str, str] = field(default_factory=dict)
    display_names: Dict[str, str] = field(default_factory=dict)
    delivery_enabled: bool = False
    delivery_mode: Optional[str] = None


@dataclass(frozen=True)
class GenerationResponse:
    pairs: List[Pair]
    delivery_status: DeliveryStatus
    delivery_results: Dict[str, DeliveryResult] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    timestamp: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.timezone.utc)
    )

    @classmethod
    def without_delivery(cls, pairs: List[Pair], errors: List[str]) -> "GenerationResponse":
        return cls(pairs=pairs, delivery_status=DeliveryStatus.DISABLED, errors=errors)

    @classmethod
    def with_delivery(
        cls, pairs: List[Pair], report: DeliveryReport, errors: List[str]
    ) -> "GenerationResponse":
        return cls(
            pairs=pairs,
            delivery_status=report.status,
            delivery_results=dict(report.results),
            errors=errors + list(report.errors),
        )

    @classmethod
    def failed(cls, errors: List[str]) -> "GenerationResponse":
        return cls(pairs=[], delivery_status=DeliveryStatus.FAILED, errors=errors)

    @property
    def is_success(self) -> bool:
        return bool(self.pairs) and self.delivery_status in {
            DeliveryStatus.SUCCESS,
            DeliveryStatus.DISABLED,
        }

    @property
    def has_errors(self) -> bool:
        return bool(self.errors) or self.delivery_status == DeliveryStatus.FAILED

    @property
    def summary(self) -> str:
        return f"Generated {len(self.pairs)} Secret Santa pairs. {SUMMARY_BY_STATUS[self.delivery_status]}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "pairs": [pair.as_dict() for pair in self.pairs],
            "emailStatus": self.delivery_status.value.upper(),
            "emailResults": {
                recipient: result.value.upper() for recipient, result in self.delivery_results.items()
            },
            "errors": list(self.errors),
            "timestamp": self.timestamp.isoformat(),
            "summary": self.summary,
        }


def _pick(payload: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return default


def parse_request(payload: Mapping[str, Any]) -> GenerationRequest:
    """Build a request from either the camelCase wire shape or snake_case keys."""
    participants = _pick(payload, "emails", "participants", default=[])
    if not isinstance(participants, list) or not all(isinstance(p, str) for p in participants):
        raise ValueError("participants must be a list of identifiers")

    exclusions = _pick(payload, "exclusions", default={})
    forced_pairs = _pick(payload, "cheats", "forced_pairs", "forcedPairs", default={})
    display_names = _pick(payload, "mappings", "display_names", "displayNames", default={})
    for name, value in (("exclusions", exclusions), ("forced pairs", forced_pairs), ("display names", display_names)):
        if not isinstance(value, dict):
            raise ValueError(f"{name} must be an object")

    for giver, receivers in exclusions.items():
        if receivers is not None and (
            not isinstance(receivers, list) or not all(isinstance(r, str) for r in receivers)
        ):
            raise ValueError(f"exclusions for {giver!r} must be a list of identifiers")
    for name, mapping in (("forced pair", forced_pairs), ("display name", display_names)):
        for key, value in mapping.items():
            if not isinstance(value, str):
                raise ValueError(f"{name} for {key!r} must be a string")

    return GenerationRequest(
        participants=list(participants),
        exclusions={giver: list(receivers or []) for giver, receivers in exclusions.items()},
        forced_pairs=dict(forced_pairs),
        display_names=dict(display_names),
        delivery_enabled=bool(
            _pick(payload, "emailSendingEnabled", "delivery_enabled", "deliveryEnabled", default=False)
        ),
        delivery_mode=_pick(payload, "deliveryMode", "delivery_mode"),
    )


def _pairing_errors(assigned: int, total: int, budget_exhausted: bool) -> List[str]:
    errors = []
    if budget_exhausted:
        errors.append("Cycle search budget exhausted before a gift cycle was found.")
    errors.append(
        f"No complete gift cycle exists; assigned {assigned} of {total} participants."
    )
    return errors


async def generate(
    request: GenerationRequest,
    engine: DeliveryEngine,
    default_mode: Optional[str] = "sync",
    max_steps: Optional[int] = None,
) -> GenerationResponse:
    log = logger.bind(participants=len(request.participants))
    log.info("Processing Secret Santa request")

    if not request.participants:
        log.warning("Empty participant list, nothing to assign")
        return GenerationResponse.without_delivery([], ["No participants supplied."])

    try:
        errors = validate_constraints(
            request.participants, request.exclusions, request.forced_pairs
        )
        outcome = assign(
            request.participants,
            exclusions=request.exclusions,
            forced_pairs=request.forced_pairs,
            max_steps=max_steps,
        )
        if not outcome.complete:
            total = len(dict.fromkeys(request.participants))
            errors.extend(_pairing_errors(len(outcome.pairs), total, outcome.budget_exhausted))

        if not request.delivery_enabled:
            log.info("Notification delivery disabled, returning pairs only")
            response = GenerationResponse.without_delivery(outcome.pairs, errors)
        else:
            strategy = select_strategy(request.delivery_mode or default_mode, engine)
            log.bind(strategy=strategy.name).info(
                "Delivering notifications for {count} pairs", count=len(outcome.pairs)
            )
            report = await strategy.deliver(outcome.pairs, request.display_names)
            response = GenerationResponse.with_delivery(outcome.pairs, report, errors)
    except Exception as exc:
        log.exception("Secret Santa generation failed")
        return GenerationResponse.failed([f"Secret Santa generation failed: {exc}"])

    log.info("Secret Santa request completed: {summary}", summary=response.summary)
    return response
