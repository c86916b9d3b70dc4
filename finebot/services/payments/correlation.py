"""Conversation correlation carried through the approval redirect.

The approval callback is an unauthenticated GET that only carries query
parameters, and nothing is stored server-side. The return URL handed to the
provider therefore embeds everything needed to find the conversation again.
The bot service URL has a scheme and possibly its own query string, so it gets
an extra percent-encoding pass of its own and travels as one opaque value.
"""

import re
from collections.abc import Mapping
from urllib.parse import quote, unquote, urlencode

from pydantic import ValidationError

from finebot.common.errors import MalformedEncodingError, MissingFieldError
from finebot.services.payments.models import ConversationAddress, CorrelationToken

ADDRESS_ID = "addressId"
CONVERSATION_ID = "conversationId"
USER_ID = "userId"
CHANNEL_ID = "channelId"
BOT_SERVICE_URL = "botServiceUrl"

REQUIRED_FIELDS = (CONVERSATION_ID, USER_ID, CHANNEL_ID, BOT_SERVICE_URL)

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def encode(address: ConversationAddress, address_id: str) -> dict[str, str]:
    """Flatten an address into the query parameters of the return URL."""

    return {
        ADDRESS_ID: address_id,
        CONVERSATION_ID: address.conversation_id,
        USER_ID: address.user_id,
        CHANNEL_ID: address.channel_id,
        BOT_SERVICE_URL: quote(address.service_url, safe=""),
    }


def build_return_url(
    base_host: str,
    base_port: int,
    path: str,
    address: ConversationAddress,
    address_id: str,
    scheme: str = "http",
) -> str:
    """Compose the URL the provider sends the user's browser back to after approval."""

    query = urlencode(encode(address, address_id))
    return f"{scheme}://{base_host}:{base_port}/{path.lstrip('/')}?{query}"


def _decode_service_url(raw: str) -> str:
    if _BAD_ESCAPE.search(raw):
        raise MalformedEncodingError(f"invalid percent escape in {BOT_SERVICE_URL}", BOT_SERVICE_URL)
    try:
        service_url = unquote(raw, errors="strict")
    except UnicodeDecodeError as exc:
        raise MalformedEncodingError(f"{BOT_SERVICE_URL} is not valid UTF-8", BOT_SERVICE_URL) from exc
    return service_url


def decode(params: Mapping[str, str]) -> CorrelationToken:
    """Rebuild the correlation token from callback query parameters.

    `params` are the query values as an HTTP framework hands them over, i.e.
    already decoded once. Raises `MissingFieldError` or `MalformedEncodingError`;
    never returns a partially populated address.
    """

    for field in REQUIRED_FIELDS:
        if not params.get(field):
            raise MissingFieldError(field)

    try:
        address = ConversationAddress(
            channel_id=params[CHANNEL_ID],
            user_id=params[USER_ID],
            conversation_id=params[CONVERSATION_ID],
            service_url=_decode_service_url(params[BOT_SERVICE_URL]),
        )
    except ValidationError as exc:
        raise MalformedEncodingError(f"{BOT_SERVICE_URL} is not an absolute http(s) URL", BOT_SERVICE_URL) from exc
    return CorrelationToken(address_id=params.get(ADDRESS_ID) or "", address=address)
