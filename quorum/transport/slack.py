"""Slack Web API conversation transport.

Posts persona messages with ``chat.postMessage`` (the persona name is
used as the display username) and reads threads back with
``conversations.replies``. Slack API errors raise RuntimeError.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import aiohttp

from quorum.collaborators import ConversationTransport
from quorum.schemas.config import SlackConfig
from quorum.schemas.discussion import Persona, ThreadMessage

logger = logging.getLogger(__name__)

# conversations.replies page size (Slack recommends no more than 200)
_PAGE_SIZE = 200


class SlackTransport(ConversationTransport):
    """ConversationTransport over the Slack Web API."""

    def __init__(self, config: SlackConfig | None = None, token: str | None = None) -> None:
        self._config = config or SlackConfig()
        self._token = token if token is not None else os.environ.get(self._config.token_env, "")
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout),
                headers={"Authorization": f"Bearer {self._token}"},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, method: str) -> str:
        return f"{self._config.api_base.rstrip('/')}/{method}"

    @staticmethod
    async def _read(response: Any, method: str) -> dict[str, Any]:
        if response.status != 200:
            text = await response.text()
            raise RuntimeError(f"Slack {method} returned HTTP {response.status}: {text[:200]}")
        payload = await response.json()
        if not payload.get("ok"):
            raise RuntimeError(f"Slack {method} failed: {payload.get('error', 'unknown_error')}")
        return payload

    async def post_message(
        self,
        channel: str,
        text: str,
        persona: Persona,
        thread_id: str | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "channel": channel,
            "text": text,
            "username": persona.name,
        }
        if thread_id:
            body["thread_ts"] = thread_id

        session = self._get_session()
        async with session.post(self._url("chat.postMessage"), json=body) as response:
            payload = await self._read(response, "chat.postMessage")

        ts = str(payload.get("ts", ""))
        logger.debug("Posted as %s to %s (thread=%s, ts=%s)", persona.name, channel, thread_id, ts)
        return ts

    async def get_thread_history(
        self, channel: str, thread_id: str, limit: int,
    ) -> list[ThreadMessage]:
        """Read a thread, keeping the opener plus the latest replies.

        ``conversations.replies`` returns oldest first and pages with a
        cursor, so every page is read before the window is cut.
        """
        session = self._get_session()
        raw_messages: list[dict[str, Any]] = []
        cursor = ""
        while True:
            params = {"channel": channel, "ts": thread_id, "limit": str(_PAGE_SIZE)}
            if cursor:
                params["cursor"] = cursor
            async with session.get(self._url("conversations.replies"), params=params) as response:
                payload = await self._read(response, "conversations.replies")
            raw_messages.extend(payload.get("messages", []))
            cursor = (payload.get("response_metadata") or {}).get("next_cursor", "")
            if not cursor:
                break

        if limit <= 0:
            raw_messages = []
        elif len(raw_messages) > limit:
            tail = raw_messages[len(raw_messages) - (limit - 1):] if limit > 1 else []
            raw_messages = raw_messages[:1] + tail

        messages = []
        for raw in raw_messages:
            author = (
                raw.get("username")
                or (raw.get("bot_profile") or {}).get("name")
                or raw.get("user")
                or ""
            )
            messages.append(
                ThreadMessage(
                    timestamp=str(raw.get("ts", "")),
                    channel=channel,
                    text=raw.get("text", ""),
                    author=author,
                )
            )
        return messages
