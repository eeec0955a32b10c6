import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    bot_token: Optional[str]
    log_level: str
    log_path: str
    delivery_mode: str
    retry_attempts: int
    retry_delay: float
    search_max_steps: Optional[int]
    message_subject: str


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be a whole number, got {raw!r}.") from None


def _read_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}.") from None


def load_settings() -> Settings:
    bot_token = os.getenv("BOT_TOKEN") or None
    log_level = os.getenv("LOG_LEVEL", "INFO")
    log_path = os.getenv("LOG_PATH", "logs/secret_santa.log")
    delivery_mode = os.getenv("DELIVERY_MODE", "sync")
    retry_attempts = _read_int("DELIVERY_RETRY_ATTEMPTS", 3)
    retry_delay = _read_float("DELIVERY_RETRY_DELAY", 1.0)
    search_max_steps = _read_int("SEARCH_MAX_STEPS", 200_000)
    message_subject = os.getenv("MESSAGE_SUBJECT", "Secret Santa")

    if retry_attempts < 1:
        raise ValueError("DELIVERY_RETRY_ATTEMPTS must be at least 1.")
    if retry_delay < 0:
        raise ValueError("DELIVERY_RETRY_DELAY cannot be negative.")
    if search_max_steps < 0:
        raise ValueError("SEARCH_MAX_STEPS cannot be negative. Use 0 for an unbounded search.")

    return Settings(
        bot_token=bot_token,
        log_level=log_level,
        log_path=log_path,
        delivery_mode=delivery_mode,
        retry_attempts=retry_attempts,
        retry_delay=retry_delay,
        search_max_steps=search_max_steps or None,
        message_subject=message_subject,
    )
