"""Post a fake channel message to a running pay bot.

Useful for driving the fine dialog locally without a channel or the emulator.
Replies from the bot go to `--service-url`, so point it at something that
accepts `POST /v3/conversations/{id}/activities` if you want to see them.
"""

import argparse
import asyncio
from uuid import uuid4

import httpx


async def post(base_url: str, activity: dict) -> int:
    """Send one activity and return the HTTP status code."""

    async with httpx.AsyncClient(timeout=10.0) as client:
        resp = await client.post(f"{base_url}/api/messages", json=activity)
    return resp.status_code


def main() -> None:
    """Parse CLI args and post one message activity."""

    parser = argparse.ArgumentParser(description="Post a message activity to the pay bot.")
    parser.add_argument("text", help="Message text, e.g. 'hi' or 'Pay fine'")
    parser.add_argument("--base-url", default="http://localhost:3978")
    parser.add_argument("--service-url", default="http://localhost:9000")
    parser.add_argument("--channel-id", default="emulator")
    parser.add_argument("--conversation-id", default="local-conversation")
    parser.add_argument("--user-id", default="local-user")
    args = parser.parse_args()

    activity = {
        "type": "message",
        "id": str(uuid4()),
        "channelId": args.channel_id,
        "serviceUrl": args.service_url,
        "from": {"id": args.user_id, "name": args.user_id},
        "conversation": {"id": args.conversation_id},
        "recipient": {"id": "paybot", "name": "paybot"},
        "text": args.text,
    }
    status_code = asyncio.run(post(args.base_url, activity))
    print(f"status={status_code}")


if __name__ == "__main__":
    main()
