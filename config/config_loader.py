"""Load settings.yaml into typed dataclasses. Reports missing secrets at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class SheetLayout:
    sheet_name: str = "Sheet1"
    first_data_row: int = 7          # first identity row
    first_data_column: str = "F"     # first date column
    identity_column: str = "B"       # column holding nicknames
    label_row: int = 1
    cost_row: int = 2
    headcount_row: int = 3
    scan_end_column: str = "ZZ"
    exclude_column_pattern: str | None = None
    write_value: int | float | str = 0


@dataclass
class GoogleConfig:
    spreadsheet_id_env: str = "SPREADSHEET_ID"
    credentials_path_env: str = "GOOGLE_SERVICE_ACCOUNT_JSON_PATH"
    service_account_email_env: str = "GOOGLE_SERVICE_ACCOUNT_EMAIL"
    private_key_env: str = "GOOGLE_PRIVATE_KEY"
    credential_files: list[str] = field(default_factory=list)


@dataclass
class TelegramConfig:
    token_env: str = "TELEGRAM_BOT_TOKEN"
    poll_timeout_sec: int = 30
    request_timeout_sec: int = 40
    api_base_url: str = "https://api.telegram.org"


@dataclass
class PollsConfig:
    capacity: int = 256
    ttl_sec: float | None = None


@dataclass
class AppConfig:
    sheet: SheetLayout
    google: GoogleConfig
    telegram: TelegramConfig
    polls: PollsConfig
    has_store: bool = False
    has_transport: bool = False


def _env_present(name: str) -> bool:
    return bool(os.environ.get(name, "").strip())


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing secrets but does not raise. Callers check has_store and
    has_transport before building the live adapters.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    sheet_raw = raw.get("sheet", {})
    sheet = SheetLayout(
        sheet_name=str(sheet_raw.get("sheet_name", "Sheet1")),
        first_data_row=int(sheet_raw.get("first_data_row", 7)),
        first_data_column=str(sheet_raw.get("first_data_column", "F")).upper(),
        identity_column=str(sheet_raw.get("identity_column", "B")).upper(),
        label_row=int(sheet_raw.get("label_row", 1)),
        cost_row=int(sheet_raw.get("cost_row", 2)),
        headcount_row=int(sheet_raw.get("headcount_row", 3)),
        scan_end_column=str(sheet_raw.get("scan_end_column", "ZZ")).upper(),
        exclude_column_pattern=sheet_raw.get("exclude_column_pattern"),
        write_value=sheet_raw.get("write_value", 0),
    )

    google_raw = raw.get("google", {})
    google = GoogleConfig(
        spreadsheet_id_env=google_raw.get("spreadsheet_id_env", "SPREADSHEET_ID"),
        credentials_path_env=google_raw.get("credentials_path_env", "GOOGLE_SERVICE_ACCOUNT_JSON_PATH"),
        service_account_email_env=google_raw.get("service_account_email_env", "GOOGLE_SERVICE_ACCOUNT_EMAIL"),
        private_key_env=google_raw.get("private_key_env", "GOOGLE_PRIVATE_KEY"),
        credential_files=list(google_raw.get("credential_files", [])),
    )

    telegram_raw = raw.get("telegram", {})
    telegram = TelegramConfig(
        token_env=telegram_raw.get("token_env", "TELEGRAM_BOT_TOKEN"),
        poll_timeout_sec=int(telegram_raw.get("poll_timeout_sec", 30)),
        request_timeout_sec=int(telegram_raw.get("request_timeout_sec", 40)),
        api_base_url=str(telegram_raw.get("api_base_url", "https://api.telegram.org")),
    )

    polls_raw = raw.get("polls", {})
    ttl = polls_raw.get("ttl_sec")
    polls = PollsConfig(
        capacity=int(polls_raw.get("capacity", 256)),
        ttl_sec=float(ttl) if ttl is not None else None,
    )
    if polls.capacity <= 0:
        raise ValueError(f"polls.capacity must be > 0, got {polls.capacity}")

    has_store = _env_present(google.spreadsheet_id_env)
    if has_store:
        logger.info("Sheet configured via %s", google.spreadsheet_id_env)
    else:
        logger.info("Sheet store unavailable: set %s in .env", google.spreadsheet_id_env)

    has_transport = _env_present(telegram.token_env)
    if has_transport:
        logger.info("Telegram transport available")
    else:
        logger.info("Telegram transport skipped (no token): set %s in .env", telegram.token_env)

    return AppConfig(
        sheet=sheet,
        google=google,
        telegram=telegram,
        polls=polls,
        has_store=has_store,
        has_transport=has_transport,
    )
