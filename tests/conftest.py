import asyncio
from typing import Dict, List, Optional

import pytest

from secretsanta.services.delivery import DeliveryEngine
from secretsanta.services.templates import Message
from secretsanta.services.transport import TransportError


class StubTransport:
    """Records every send; fails the first ``failures[destination]`` attempts."""

    def __init__(self, failures: Optional[Dict[str, int]] = None, delay: float = 0.0) -> None:
        self.failures = dict(failures or {})
        self.delay = delay
        self.attempts: Dict[str, int] = {}
        self.sent: List[tuple] = []
        self.closed = False

    async def send(self, destination: str, message: Message) -> None:
        self.attempts[destination] = self.attempts.get(destination, 0) + 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.attempts[destination] <= self.failures.get(destination, 0):
            raise TransportError(f"attempt {self.attempts[destination]} to {destination} failed")
        self.sent.append((destination, message))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def engine(transport: StubTransport) -> DeliveryEngine:
    return DeliveryEngine(transport, retry_attempts=3, retry_delay=0)
