"""Google Sheets store using google-api-python-client with service-account auth."""

import asyncio
import json
import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build

from config.config_loader import GoogleConfig
from pollsync.adapters.base import TabularStore
from pollsync.errors import StoreUnavailable
from pollsync.models import CellUpdate

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def _is_service_account_file(path: Path) -> bool:
    try:
        content = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return False
    return content.get("type") == "service_account" and bool(content.get("private_key"))


def load_credentials(config: GoogleConfig, search_dir: Path | None = None) -> service_account.Credentials:
    """Resolve service-account credentials.

    Order: JSON file named by env, then a known file name in search_dir,
    then email + private key env vars.

    Raises:
        FileNotFoundError: The env-named JSON file does not exist.
        RuntimeError: No credential source is configured.
        ValueError: The private key env var is malformed.
    """
    json_path = os.environ.get(config.credentials_path_env, "").strip()
    if json_path:
        if not Path(json_path).exists():
            raise FileNotFoundError(f"Service account JSON file not found: {json_path}")
        logger.info("Using service account file from %s", config.credentials_path_env)
        return service_account.Credentials.from_service_account_file(json_path, scopes=SCOPES)

    base = search_dir if search_dir is not None else Path.cwd()
    for name in config.credential_files:
        candidate = base / name
        if candidate.exists() and _is_service_account_file(candidate):
            logger.info("Using service account file %s", candidate)
            return service_account.Credentials.from_service_account_file(str(candidate), scopes=SCOPES)

    email = os.environ.get(config.service_account_email_env, "").strip()
    key = os.environ.get(config.private_key_env, "").replace("\\n", "\n")
    if not email or not key.strip():
        raise RuntimeError(
            "Missing Google Service Account credentials. Provide one of:\n"
            f"  - {config.credentials_path_env} pointing to a JSON key file\n"
            "  - a service account JSON file in the working directory\n"
            f"  - both {config.service_account_email_env} and {config.private_key_env}"
        )
    if "BEGIN PRIVATE KEY" not in key or "END PRIVATE KEY" not in key:
        raise ValueError(
            "Invalid private key format. The private key should include "
            "BEGIN PRIVATE KEY and END PRIVATE KEY markers."
        )
    return service_account.Credentials.from_service_account_info(
        {"client_email": email, "private_key": key, "token_uri": TOKEN_URI},
        scopes=SCOPES,
    )


class GoogleSheetsStore(TabularStore):
    """TabularStore over the Sheets v4 values API. Blocking calls run in a worker thread."""

    def __init__(self, spreadsheet_id: str, credentials: Any = None, service: Any = None) -> None:
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id is required")
        self.spreadsheet_id = spreadsheet_id
        self.service = service or build(
            "sheets", "v4", credentials=credentials, cache_discovery=False
        )

    @staticmethod
    def _qualified(sheet: str, a1_range: str) -> str:
        return f"'{sheet}'!{a1_range}"

    def _get(self, rng: str) -> list[list[Any]]:
        result = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=rng,
        ).execute()
        return result.get("values", [])

    def _batch_update(self, data: list[dict[str, Any]]) -> None:
        self.service.spreadsheets().values().batchUpdate(
            spreadsheetId=self.spreadsheet_id,
            body={"valueInputOption": "RAW", "data": data},
        ).execute()

    def _metadata(self) -> dict[str, Any]:
        return self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields="spreadsheetId,properties.title",
        ).execute()

    async def read_range(self, sheet: str, a1_range: str) -> list[list[Any]]:
        rng = self._qualified(sheet, a1_range)
        try:
            values = await asyncio.to_thread(self._get, rng)
        except Exception as exc:
            raise StoreUnavailable(f"reading {rng}", str(exc)) from exc
        logger.debug("Read %s: %d row(s)", rng, len(values))
        return values

    async def batch_write(self, sheet: str, updates: Sequence[CellUpdate]) -> None:
        if not updates:
            return
        data = [
            {"range": self._qualified(sheet, u.cell), "values": [[u.value]]}
            for u in updates
        ]
        try:
            await asyncio.to_thread(self._batch_update, data)
        except Exception as exc:
            raise StoreUnavailable(f"writing {len(data)} cell(s)", str(exc)) from exc
        logger.debug("Wrote %d cell(s) to '%s'", len(data), sheet)

    async def ping(self) -> None:
        try:
            meta = await asyncio.to_thread(self._metadata)
        except Exception as exc:
            raise StoreUnavailable("connecting to spreadsheet", str(exc)) from exc
        logger.debug("Spreadsheet reachable: %s", meta.get("properties", {}).get("title"))
