"""Outbound messages through the Bot Framework Connector REST API."""

import time
from collections.abc import Sequence
from typing import Any, Optional, Protocol
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from finebot.common.config import Settings
from finebot.common.errors import MessagingError
from finebot.common.logging import logger
from finebot.common.metrics import messages_sent_total
from finebot.services.payments.models import ConversationAddress

TOKEN_URL = "https://login.microsoftonline.com/botframework.com/oauth2/v2.0/token"
TOKEN_SCOPE = "https://api.botframework.com/.default"
TOKEN_EXPIRY_MARGIN_S = 60.0


def activities_url(address: ConversationAddress) -> str:
    """Conversation activities endpoint under the channel's service URL."""

    parts = urlsplit(address.service_url)
    path = f"{parts.path.rstrip('/')}/v3/conversations/{quote(address.conversation_id, safe='')}/activities"
    return urlunsplit(parts._replace(path=path))


class Messenger(Protocol):
    async def send(
        self,
        address: ConversationAddress,
        text: str,
        *,
        choices: Optional[Sequence[str]] = None,
        reply_to_id: Optional[str] = None,
    ) -> Any:
        ...


class BotConnectorClient:
    """Sends proactive and reply messages to a conversation address.

    With no app id/password configured, messages go out unauthenticated, which
    is what the Bot Framework Emulator expects for local runs.
    """

    def __init__(
        self,
        app_id: str = "",
        app_password: str = "",
        bot_id: str = "paybot",
        bot_name: str = "paybot",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        service_name: str = "paybot",
    ):
        self._app_id = app_id
        self._app_password = app_password
        self._bot_id = bot_id
        self._bot_name = bot_name
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._service_name = service_name
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "BotConnectorClient":
        return cls(
            app_id=app_settings.microsoft_app_id,
            app_password=app_settings.microsoft_app_password,
            bot_id=app_settings.bot_id,
            bot_name=app_settings.bot_name,
            timeout=app_settings.messaging_timeout_seconds,
            service_name=app_settings.service_name,
        )

    @property
    def uses_auth(self) -> bool:
        return bool(self._app_id and self._app_password)

    async def _auth_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if not self.uses_auth:
            return headers
        if not self._token or time.monotonic() >= self._token_expires_at:
            try:
                resp = await self._client.post(
                    TOKEN_URL,
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self._app_id,
                        "client_secret": self._app_password,
                        "scope": TOKEN_SCOPE,
                    },
                )
            except httpx.HTTPError as exc:
                raise MessagingError(f"bot token request failed: {exc}") from exc
            if resp.status_code >= 400:
                raise MessagingError(f"bot token request failed: HTTP {resp.status_code}", resp.status_code)
            try:
                body = resp.json()
                self._token = body["access_token"]
                expires_in = float(body.get("expires_in", 0))
            except (ValueError, KeyError, TypeError) as exc:
                raise MessagingError("bot token returned an unreadable body", resp.status_code) from exc
            self._token_expires_at = time.monotonic() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN_S)
        headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def build_activity(
        self,
        address: ConversationAddress,
        text: str,
        choices: Optional[Sequence[str]] = None,
        reply_to_id: Optional[str] = None,
    ) -> dict[str, Any]:
        activity: dict[str, Any] = {
            "type": "message",
            "channelId": address.channel_id,
            "from": {"id": self._bot_id, "name": self._bot_name},
            "recipient": {"id": address.user_id, "name": address.user_id},
            "conversation": {"id": address.conversation_id},
            "text": text,
        }
        if choices:
            activity["suggestedActions"] = {
                "to": [address.user_id],
                "actions": [{"type": "imBack", "title": choice, "value": choice} for choice in choices],
            }
        if reply_to_id:
            activity["replyToId"] = reply_to_id
        return activity

    async def send(
        self,
        address: ConversationAddress,
        text: str,
        *,
        choices: Optional[Sequence[str]] = None,
        reply_to_id: Optional[str] = None,
    ) -> dict[str, Any]:
        """Post one message activity into the addressed conversation."""

        url = activities_url(address)
        activity = self.build_activity(address, text, choices, reply_to_id)
        try:
            headers = await self._auth_headers()
            try:
                resp = await self._client.post(url, json=activity, headers=headers)
            except httpx.HTTPError as exc:
                raise MessagingError(f"bot connector request failed: {exc}") from exc
            if resp.status_code >= 400:
                raise MessagingError(
                    f"bot connector rejected message: HTTP {resp.status_code}: {resp.text[:200]}",
                    resp.status_code,
                )
        except MessagingError:
            messages_sent_total.labels(service=self._service_name, outcome="error").inc()
            raise
        messages_sent_total.labels(service=self._service_name, outcome="sent").inc()
        logger.info("message_sent channel=%s conversation_id=%s", address.channel_id, address.conversation_id)
        try:
            return resp.json()
        except ValueError:
            return {}

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
