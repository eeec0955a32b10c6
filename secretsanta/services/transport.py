from __future__ import annotations

from typing import Protocol, Union

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from loguru import logger

from secretsanta.core.config import Settings
from secretsanta.services.templates import Message


class TransportError(RuntimeError):
    pass


class Transport(Protocol):
    async def send(self, destination: str, message: Message) -> None:
        ...

    async def close(self) -> None:
        ...


def _chat_id(destination: str) -> Union[int, str]:
    try:
        return int(destination)
    except ValueError:
        return destination


class TelegramTransport:
    """Delivers messages as Telegram DMs; participant identifiers are chat ids."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    @classmethod
    def from_token(cls, token: str) -> "TelegramTransport":
        return cls(Bot(token=token, default=DefaultBotProperties(parse_mode=ParseMode.HTML)))

    async def send(self, destination: str, message: Message) -> None:
        try:
            await self.bot.send_message(_chat_id(destination), message.html, parse_mode=ParseMode.HTML)
        except TelegramAPIError as exc:
            raise TransportError(f"Telegram API error: {exc}") from exc

    async def close(self) -> None:
        await self.bot.session.close()


class LogTransport:
    """Dry-run transport: writes every message to the log instead of sending it."""

    def __init__(self) -> None:
        self.sent = 0

    async def send(self, destination: str, message: Message) -> None:
        self.sent += 1
        logger.bind(destination=destination, subject=message.subject).info(
            "Dry run, not sending: {text}", text=message.text
        )

    async def close(self) -> None:
        return None


def build_transport(settings: Settings, dry_run: bool = False) -> Transport:
    if dry_run or not settings.bot_token:
        logger.info("Using log transport, messages will not be sent")
        return LogTransport()
    return TelegramTransport.from_token(settings.bot_token)
