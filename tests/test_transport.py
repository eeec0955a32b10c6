import asyncio

import pytest
from aiogram.exceptions import TelegramBadRequest
from aiogram.methods import SendMessage

from secretsanta.services.templates import render_assignment
from secretsanta.services.transport import LogTransport, TelegramTransport, TransportError


class FakeBot:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def send_message(self, chat_id, text, parse_mode=None):
        self.calls.append((chat_id, text, parse_mode))
        if self.error:
            raise self.error


def test_telegram_transport_sends_html_to_numeric_chat():
    bot = FakeBot()
    message = render_assignment("Alice", "Bob")

    asyncio.run(TelegramTransport(bot).send("-100123", message))

    chat_id, text, parse_mode = bot.calls[0]
    assert chat_id == -100123
    assert text == message.html
    assert parse_mode == "HTML"


def test_telegram_transport_keeps_username_destinations():
    bot = FakeBot()
    asyncio.run(TelegramTransport(bot).send("@santa_channel", render_assignment("a", "b")))
    assert bot.calls[0][0] == "@santa_channel"


def test_telegram_errors_become_transport_errors():
    error = TelegramBadRequest(method=SendMessage(chat_id=1, text="x"), message="chat not found")
    transport = TelegramTransport(FakeBot(error=error))

    with pytest.raises(TransportError, match="chat not found"):
        asyncio.run(transport.send("1", render_assignment("a", "b")))


def test_log_transport_counts_messages():
    transport = LogTransport()
    asyncio.run(transport.send("a", render_assignment("a", "b")))
    asyncio.run(transport.close())
    assert transport.sent == 1
