import pytest

from secretsanta.core.config import load_settings
from secretsanta.services.transport import LogTransport, TelegramTransport, build_transport

ENV_VARS = [
    "BOT_TOKEN",
    "LOG_LEVEL",
    "LOG_PATH",
    "DELIVERY_MODE",
    "DELIVERY_RETRY_ATTEMPTS",
    "DELIVERY_RETRY_DELAY",
    "SEARCH_MAX_STEPS",
    "MESSAGE_SUBJECT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.bot_token is None
    assert settings.delivery_mode == "sync"
    assert settings.retry_attempts == 3
    assert settings.retry_delay == 1.0
    assert settings.search_max_steps == 200_000
    assert settings.message_subject == "Secret Santa"


def test_overrides(monkeypatch):
    monkeypatch.setenv("DELIVERY_MODE", "async")
    monkeypatch.setenv("DELIVERY_RETRY_ATTEMPTS", "5")
    monkeypatch.setenv("DELIVERY_RETRY_DELAY", "0.25")
    monkeypatch.setenv("SEARCH_MAX_STEPS", "0")

    settings = load_settings()
    assert settings.delivery_mode == "async"
    assert settings.retry_attempts == 5
    assert settings.retry_delay == 0.25
    assert settings.search_max_steps is None


@pytest.mark.parametrize(
    "name, value",
    [
        ("DELIVERY_RETRY_ATTEMPTS", "0"),
        ("DELIVERY_RETRY_ATTEMPTS", "three"),
        ("DELIVERY_RETRY_DELAY", "-1"),
        ("SEARCH_MAX_STEPS", "-5"),
    ],
)
def test_invalid_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        load_settings()


def test_build_transport_without_token_is_dry_run():
    assert isinstance(build_transport(load_settings()), LogTransport)


def test_build_transport_with_token(monkeypatch):
    monkeypatch.setenv("BOT_TOKEN", "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11")
    settings = load_settings()

    assert isinstance(build_transport(settings), TelegramTransport)
    assert isinstance(build_transport(settings, dry_run=True), LogTransport)


def test_setup_logging_writes_file(tmp_path):
    from loguru import logger

    from secretsanta.core.logging import setup_logging

    log_path = tmp_path / "santa.log"
    setup_logging("INFO", str(log_path))
    try:
        logger.bind(recipient="alice").debug("hello from the test")
        logger.complete()
    finally:
        logger.remove()

    content = log_path.read_text(encoding="utf-8")
    assert "hello from the test" in content
    assert "alice" in content
