"""Telegram Bot API transport over aiohttp long polling."""

import asyncio
import logging
import os
from collections.abc import AsyncIterator, Sequence
from typing import Any

import aiohttp

from config.config_loader import TelegramConfig
from pollsync.adapters.base import ChatTransport
from pollsync.errors import TransportError
from pollsync.models import Event, ForwardedPoll, PollVoteChanged, TextMessage

logger = logging.getLogger(__name__)

_MAX_MESSAGE_LEN = 4096
_RETRY_DELAY_SEC = 5.0


def _username(user: dict[str, Any] | None) -> str | None:
    if not user or not user.get("username"):
        return None
    return f"@{user['username']}"


def translate_update(update: dict[str, Any]) -> Event | None:
    """Map one Bot API update to an engine event, or None if it is not ours to handle."""
    message = update.get("message")
    if message is not None:
        chat_id = str(message["chat"]["id"])
        if "poll" in message:
            # Only forwarded polls open the poll dialog; the bot's own sendPoll echo is ignored
            if "forward_origin" not in message and "forward_date" not in message:
                return None
            return ForwardedPoll(conversation_id=chat_id, poll_id=str(message["poll"]["id"]))
        if "text" in message:
            return TextMessage(
                conversation_id=chat_id,
                text=message["text"],
                sender=_username(message.get("from")),
            )
        return None

    answer = update.get("poll_answer")
    if answer is not None:
        user = answer.get("user")
        voter = _username(user)
        if voter is None:
            logger.debug("Poll answer without username ignored (poll %s)", answer.get("poll_id"))
            return None
        return PollVoteChanged(
            conversation_id=str(user["id"]),
            poll_id=str(answer["poll_id"]),
            voter=voter,
            option_ids=tuple(int(i) for i in answer.get("option_ids", [])),
        )
    return None


def _chunks(text: str, size: int = _MAX_MESSAGE_LEN) -> list[str]:
    return [text[i:i + size] for i in range(0, len(text), size)] or [""]


class TelegramTransport(ChatTransport):
    """ChatTransport backed by the Telegram Bot API."""

    def __init__(
        self,
        config: TelegramConfig,
        token: str | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        token = token or os.environ.get(config.token_env, "").strip()
        if not token:
            raise TransportError("init", f"Missing bot token: {config.token_env}")
        self._config = config
        self._base_url = f"{config.api_base_url.rstrip('/')}/bot{token}"
        self._session = session
        self._offset: int | None = None
        self._closed = False

    def name(self) -> str:
        return "telegram"

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout_sec)
            )
        return self._session

    async def _call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        try:
            async with self._client().post(f"{self._base_url}/{method}", json=payload or {}) as resp:
                status = resp.status
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            raise TransportError(method, f"Request failed: {exc}") from exc

        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise TransportError(method, description or f"HTTP {status}")
        return data["result"]

    async def events(self) -> AsyncIterator[Event]:
        while not self._closed:
            payload: dict[str, Any] = {
                "timeout": self._config.poll_timeout_sec,
                "allowed_updates": ["message", "poll_answer"],
            }
            if self._offset is not None:
                payload["offset"] = self._offset
            try:
                updates = await self._call("getUpdates", payload)
            except TransportError as exc:
                if self._closed:
                    break
                logger.warning("Polling failed, retrying in %.0fs: %s", _RETRY_DELAY_SEC, exc)
                await asyncio.sleep(_RETRY_DELAY_SEC)
                continue

            for update in updates:
                self._offset = int(update["update_id"]) + 1
                event = translate_update(update)
                if event is not None:
                    yield event

    async def deliver(self, conversation_id: str, text: str) -> None:
        for chunk in _chunks(text):
            await self._call("sendMessage", {"chat_id": conversation_id, "text": chunk})

    async def create_poll(self, conversation_id: str, question: str, options: Sequence[str]) -> str:
        result = await self._call(
            "sendPoll",
            {
                "chat_id": conversation_id,
                "question": question,
                "options": [{"text": option} for option in options],
                "is_anonymous": False,
            },
        )
        poll = result.get("poll") if isinstance(result, dict) else None
        if not poll or "id" not in poll:
            raise TransportError("sendPoll", "Response carries no poll id")
        return str(poll["id"])

    async def ping(self) -> None:
        me = await self._call("getMe")
        logger.debug("Telegram bot: @%s", me.get("username"))

    async def close(self) -> None:
        self._closed = True
        if self._session is not None and not self._session.closed:
            await self._session.close()
