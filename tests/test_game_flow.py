import asyncio
import datetime

import pytest

from conftest import StubTransport
from secretsanta.services import game_flow
from secretsanta.services.assignment import Pair
from secretsanta.services.delivery import DeliveryEngine, DeliveryResult, DeliveryStatus
from secretsanta.services.game_flow import GenerationRequest, generate, parse_request


def run(request, engine, **kwargs):
    async def scenario():
        response = await generate(request, engine, **kwargs)
        await engine.wait_background()
        return response

    return asyncio.run(scenario())


def test_generation_without_delivery(engine, transport):
    request = GenerationRequest(participants=["alice", "bob", "carol"], exclusions={"alice": ["bob"]})
    response = run(request, engine)

    assert response.pairs == [Pair("alice", "carol"), Pair("carol", "bob"), Pair("bob", "alice")]
    assert response.delivery_status == DeliveryStatus.DISABLED
    assert response.delivery_results == {}
    assert response.errors == []
    assert response.is_success
    assert transport.attempts == {}
    assert response.timestamp.tzinfo == datetime.timezone.utc


def test_generation_with_synchronous_delivery(transport):
    transport.failures = {"bob": 10}
    engine = DeliveryEngine(transport, retry_attempts=2, retry_delay=0)
    request = GenerationRequest(
        participants=["alice", "bob", "carol"],
        display_names={"alice": "Alice"},
        delivery_enabled=True,
    )
    response = run(request, engine)

    assert response.delivery_status == DeliveryStatus.PARTIAL
    assert response.delivery_results["bob"] == DeliveryResult.FAILED
    assert response.errors == ["Failed to deliver notification to: bob"]
    assert response.has_errors
    assert not response.is_success
    assert response.summary == "Generated 3 Secret Santa pairs. Some notifications failed to deliver."


def test_request_mode_overrides_default(engine):
    request = GenerationRequest(participants=["a", "b", "c"], delivery_enabled=True, delivery_mode="async")
    response = run(request, engine, default_mode="sync")

    assert response.delivery_status == DeliveryStatus.PENDING
    assert set(response.delivery_results.values()) == {DeliveryResult.PENDING}


def test_default_mode_used_when_request_has_none(engine):
    request = GenerationRequest(participants=["a", "b", "c"], delivery_enabled=True)
    response = run(request, engine, default_mode="async")
    assert response.delivery_status == DeliveryStatus.PENDING


def test_empty_participant_list_is_not_an_error(engine):
    response = run(GenerationRequest(participants=[]), engine)
    assert response.pairs == []
    assert response.delivery_status == DeliveryStatus.DISABLED
    assert response.errors == ["No participants supplied."]


def test_fallback_and_constraint_warnings_are_reported(engine):
    request = GenerationRequest(
        participants=["a", "b", "c"],
        exclusions={"a": ["c"], "b": ["c", "a"]},
        forced_pairs={"b": "a"},
    )
    response = run(request, engine)

    assert "Forced pair b -> a is also excluded; the forced pair takes precedence." in response.errors
    assert response.errors[-1] == "No complete gift cycle exists; assigned 2 of 3 participants."
    assert response.pairs == [Pair("a", "b"), Pair("b", "a")]


def test_budget_exhaustion_is_reported(engine):
    participants = [str(i) for i in range(7)]
    request = GenerationRequest(participants=participants, exclusions={p: ["0"] for p in participants[1:]})
    response = run(request, engine, max_steps=3)

    assert "Cycle search budget exhausted before a gift cycle was found." in response.errors


def test_unexpected_error_produces_failed_response(engine, monkeypatch):
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(game_flow, "assign", explode)
    response = run(GenerationRequest(participants=["a", "b"]), engine)

    assert response.pairs == []
    assert response.delivery_status == DeliveryStatus.FAILED
    assert response.errors == ["Secret Santa generation failed: boom"]


def test_parse_request_wire_shape():
    request = parse_request(
        {
            "emails": ["a@x.com", "b@x.com", "c@x.com"],
            "exclusions": {"a@x.com": ["b@x.com"]},
            "cheats": {"c@x.com": "a@x.com"},
            "mappings": {"a@x.com": "Anna"},
            "emailSendingEnabled": True,
            "deliveryMode": "async",
        }
    )

    assert request.participants == ["a@x.com", "b@x.com", "c@x.com"]
    assert request.exclusions == {"a@x.com": ["b@x.com"]}
    assert request.forced_pairs == {"c@x.com": "a@x.com"}
    assert request.display_names == {"a@x.com": "Anna"}
    assert request.delivery_enabled
    assert request.delivery_mode == "async"


def test_parse_request_snake_case_and_defaults():
    request = parse_request({"participants": ["a", "b"], "exclusions": {"a": None}})
    assert request.exclusions == {"a": []}
    assert request.forced_pairs == {}
    assert not request.delivery_enabled
    assert request.delivery_mode is None


@pytest.mark.parametrize(
    "payload",
    [
        {"emails": "a,b"},
        {"emails": ["a", 3]},
        {"emails": ["a"], "cheats": ["a", "b"]},
        {"emails": ["alice", "bob", "carol"], "exclusions": {"alice": "bob"}},
        {"emails": ["a", "b"], "exclusions": {"a": ["b", 7]}},
        {"emails": ["a", "b"], "cheats": {"a": ["b"]}},
        {"emails": ["a", "b"], "mappings": {"a": {"name": "Alice"}}},
    ],
)
def test_parse_request_rejects_bad_shapes(payload):
    with pytest.raises(ValueError):
        parse_request(payload)


def test_response_as_dict():
    request = GenerationRequest(participants=["a", "b"])
    response = run(request, DeliveryEngine(StubTransport(), retry_delay=0))
    data = response.as_dict()

    assert data["pairs"] == [{"from": "a", "to": "b"}, {"from": "b", "to": "a"}]
    assert data["emailStatus"] == "DISABLED"
    assert data["errors"] == []
    assert data["summary"] == "Generated 2 Secret Santa pairs. Notification delivery was disabled."
