from secretsanta.services.assignment import (
    AssignmentError,
    Pair,
    PairingOutcome,
    SearchBudgetExceeded,
    assign,
)
from secretsanta.services.delivery import (
    DeliveryEngine,
    DeliveryReport,
    DeliveryResult,
    DeliveryStatus,
    determine_status,
)
from secretsanta.services.game_flow import GenerationRequest, GenerationResponse, generate, parse_request
from secretsanta.services.strategy import DeliveryMode, select_strategy

__all__ = [
    "AssignmentError",
    "Pair",
    "PairingOutcome",
    "SearchBudgetExceeded",
    "assign",
    "DeliveryEngine",
    "DeliveryReport",
    "DeliveryResult",
    "DeliveryStatus",
    "determine_status",
    "GenerationRequest",
    "GenerationResponse",
    "generate",
    "parse_request",
    "DeliveryMode",
    "select_strategy",
]
