from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from yield_tracker.http import HttpClient

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramError(RuntimeError):
    pass


class TelegramClient:
    """Thin wrapper over the Telegram Bot HTTP API."""

    def __init__(self, http: HttpClient, token: str | None, api_base: str = TELEGRAM_API_BASE):
        self.http = http
        self.token = token
        self.api_base = api_base.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.token)

    async def _call(self, method: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        if not self.token:
            raise TelegramError("TELEGRAM_BOT_TOKEN is not configured")
        url = f"{self.api_base}/bot{self.token}/{method}"
        try:
            resp = await self.http.post(url, json=payload or {})
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise TelegramError(f"{method} failed with status {e.response.status_code}: {e.response.text}") from e
        except httpx.HTTPError as e:
            raise TelegramError(f"{method} failed: {e}") from e
        except ValueError as e:
            raise TelegramError(f"{method} returned a non-JSON body: {resp.text[:200]!r}") from e
        if not isinstance(data, dict):
            raise TelegramError(f"{method} returned unexpected payload {type(data).__name__}")
        if not data.get("ok"):
            raise TelegramError(f"{method} rejected: {data.get('description')}")
        return data.get("result")

    async def send_message(self, chat_id: int, text: str, reply_markup: Optional[Dict[str, Any]] = None) -> Any:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text, "parse_mode": "Markdown"}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self._call("sendMessage", payload)

    async def edit_message_text(self, chat_id: int, message_id: int, text: str) -> Any:
        return await self._call(
            "editMessageText",
            {"chat_id": chat_id, "message_id": message_id, "text": text, "parse_mode": "Markdown"},
        )

    async def answer_callback_query(self, callback_query_id: str) -> Any:
        return await self._call("answerCallbackQuery", {"callback_query_id": callback_query_id})

    async def get_me(self) -> Dict[str, Any]:
        return await self._call("getMe")

    async def set_webhook(self, url: str) -> bool:
        result = await self._call("setWebhook", {"url": url})
        logger.info(f"Telegram webhook set to {url}")
        return bool(result)
