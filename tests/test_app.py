from __future__ import annotations

import asyncio
import logging
import sys

import pytest

import app
import client
from core.errors import DeliveryError


class _FailingOrchestrator:
    def __init__(self) -> None:
        self.calls = 0

    async def send_outstanding(self) -> None:
        self.calls += 1
        raise DeliveryError("Bot API error 403: bot was blocked")


def test_failed_pass_is_logged_and_not_raised(caplog) -> None:
    orchestrator = _FailingOrchestrator()

    with caplog.at_level(logging.ERROR, logger="app"):
        asyncio.run(app._run_pass(orchestrator))
        asyncio.run(app._run_pass(orchestrator))

    assert orchestrator.calls == 2
    failures = [r for r in caplog.records if r.getMessage() == "Breaking news pass failed"]
    assert len(failures) == 2
    assert failures[0].exc_info[0] is DeliveryError


def test_formatter_masks_secrets_in_message_and_traceback() -> None:
    formatter = app._RedactingFormatter(["123:SECRET", "SECRET"])
    try:
        raise RuntimeError("POST https://api.telegram.org/bot123:SECRET/sendMessage failed")
    except RuntimeError:
        record = logging.LogRecord(
            "app", logging.ERROR, __file__, 1, "token %s", ("123:SECRET",), sys.exc_info()
        )

    text = formatter.format(record)

    assert "SECRET" not in text
    assert "token ***" in text
    assert "bot***/sendMessage" in text


def test_bot_token_is_redacted_without_configured_patterns(monkeypatch) -> None:
    monkeypatch.setenv("BOT_API", "123:SECRET")
    monkeypatch.delenv("API_HASH", raising=False)
    monkeypatch.setenv("EXTRA_SECRET", "hunter2")

    assert app._redaction_values({}) == ["123:SECRET"]
    assert app._redaction_values({"redact": {"patterns": ["EXTRA_SECRET"]}}) == ["123:SECRET", "hunter2"]
    assert app._redaction_values({"redact": {"enabled": False, "patterns": ["EXTRA_SECRET"]}}) == [
        "123:SECRET"
    ]


def test_telethon_session_requires_api_credentials(monkeypatch) -> None:
    monkeypatch.setattr(client, "load_dotenv", lambda: None)
    monkeypatch.delenv("API_ID", raising=False)
    monkeypatch.setenv("API_HASH", "hash")

    with pytest.raises(RuntimeError, match="API_ID"):
        asyncio.run(client.connect_bot("123:SECRET"))

    monkeypatch.setenv("API_ID", "not-a-number")
    with pytest.raises(RuntimeError, match="numeric"):
        asyncio.run(client.connect_bot("123:SECRET"))
