"""Bot Connector client over a mocked transport."""

import json

import httpx
import pytest

from finebot.common.errors import MessagingError
from finebot.services.bot.connector import TOKEN_URL, BotConnectorClient


def make_client(handler, **kwargs):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BotConnectorClient(http_client=http_client, **kwargs)


@pytest.mark.asyncio
async def test_send_posts_activity_to_conversation(address):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "reply-1"})

    result = await make_client(handler).send(address, "Thanks for your payment!")

    assert result == {"id": "reply-1"}
    request = seen[0]
    assert str(request.url) == "http://svc/x/v3/conversations/c1/activities?y=1"
    assert "authorization" not in request.headers
    assert json.loads(request.content) == {
        "type": "message",
        "channelId": "test",
        "from": {"id": "paybot", "name": "paybot"},
        "recipient": {"id": "u1", "name": "u1"},
        "conversation": {"id": "c1"},
        "text": "Thanks for your payment!",
    }


@pytest.mark.asyncio
async def test_send_with_choices_adds_suggested_actions(address):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(201, json={})

    await make_client(handler).send(address, "What would you like to do?", choices=["Pay fine", "Cancel"])

    assert seen[0]["suggestedActions"] == {
        "to": ["u1"],
        "actions": [
            {"type": "imBack", "title": "Pay fine", "value": "Pay fine"},
            {"type": "imBack", "title": "Cancel", "value": "Cancel"},
        ],
    }


@pytest.mark.asyncio
async def test_send_authenticates_when_app_credentials_set(address):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, json={"access_token": "bf-token", "expires_in": 3600})
        return httpx.Response(200, json={"id": "reply-1"})

    client = make_client(handler, app_id="app", app_password="secret")
    await client.send(address, "one")
    await client.send(address, "two")

    assert [str(request.url) for request in seen].count(TOKEN_URL) == 1
    assert seen[1].headers["authorization"] == "Bearer bf-token"


@pytest.mark.asyncio
async def test_rejected_message_raises_messaging_error(address):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, text="forbidden")

    with pytest.raises(MessagingError) as excinfo:
        await make_client(handler).send(address, "hello")

    assert excinfo.value.status_code == 403


@pytest.mark.asyncio
async def test_unreachable_service_raises_messaging_error(address):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(MessagingError):
        await make_client(handler).send(address, "hello")


@pytest.mark.asyncio
async def test_unreadable_token_reply_raises_messaging_error(address):
    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            return httpx.Response(200, text="<html>login</html>")
        return httpx.Response(200, json={"id": "reply-1"})

    with pytest.raises(MessagingError):
        await make_client(handler, app_id="app", app_password="secret").send(address, "hello")
