"""Tests for the CLI wiring in pollsync/cli.py."""

import pytest
from click.testing import CliRunner

import pollsync.cli as cli
from config.config_loader import AppConfig, GoogleConfig, PollsConfig, SheetLayout, TelegramConfig
from pollsync.adapters.console import ConsoleTransport
from pollsync.adapters.telegram import TelegramTransport
from pollsync.engine import ConversationEngine
from pollsync.models import TextMessage
from pollsync.votes import PollRegistry
from tests.conftest import FakeStore, RecordingTransport


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig(
        sheet=SheetLayout(),
        google=GoogleConfig(),
        telegram=TelegramConfig(token_env="TEST_BOT_TOKEN"),
        polls=PollsConfig(),
    )


def test_build_transport_console(app_config):
    assert isinstance(cli._build_transport(app_config, use_console=True), ConsoleTransport)


def test_build_transport_requires_token(app_config):
    with pytest.raises(RuntimeError, match="TEST_BOT_TOKEN"):
        cli._build_transport(app_config, use_console=False)


def test_build_transport_telegram(app_config, monkeypatch):
    monkeypatch.setenv("TEST_BOT_TOKEN", "123:abc")
    app_config.has_transport = True
    assert isinstance(cli._build_transport(app_config, use_console=False), TelegramTransport)


def test_build_store_requires_spreadsheet_id(app_config):
    with pytest.raises(RuntimeError, match="SPREADSHEET_ID"):
        cli._build_store(app_config)


def test_report_health_returns_failures():
    failed = cli._report_health({"sheet": (False, "403 Forbidden\ndetails"), "telegram": (True, "")})
    assert failed == ["sheet"]


def _engine(store, transport) -> ConversationEngine:
    return ConversationEngine(store, SheetLayout(), PollRegistry(), transport)


async def test_serve_check_only_success():
    store, transport = FakeStore(), RecordingTransport()
    code = await cli._serve(store, transport, _engine(store, transport), skip_health_check=False, check_only=True)
    assert code == 0
    assert transport.closed is True


async def test_serve_check_only_failure():
    store, transport = FakeStore(), RecordingTransport()
    store.fail_reads = True
    code = await cli._serve(store, transport, _engine(store, transport), skip_health_check=False, check_only=True)
    assert code == 1


async def test_serve_runs_bot_when_check_skipped():
    store = FakeStore()
    transport = RecordingTransport()
    transport.queued = [TextMessage(conversation_id="c1", text="/help")]
    code = await cli._serve(store, transport, _engine(store, transport), skip_health_check=True, check_only=False)
    assert code == 0
    assert len(transport.delivered) == 1
    assert transport.closed is True


def test_main_check_only(monkeypatch):
    monkeypatch.setattr(cli, "_build_store", lambda config: FakeStore())
    result = CliRunner().invoke(cli.main, ["--console", "--check-only"])
    assert result.exit_code == 0, result.output
    assert "OK" in result.output


def test_main_reports_store_error(monkeypatch):
    def fail(config):
        raise RuntimeError("SPREADSHEET_ID is not set. Check your .env.")

    monkeypatch.setattr(cli, "_build_store", fail)
    result = CliRunner().invoke(cli.main, ["--console", "--check-only"])
    assert result.exit_code == 1
