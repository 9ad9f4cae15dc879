"""Bidirectional frame relay between a browser websocket and the voice API.

Pure plumbing: frames are forwarded verbatim in both directions and each side
is closed when the other one goes away. Audio encoding is the two endpoints'
business, not ours.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urlencode

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from websockets.asyncio.client import connect
from websockets.exceptions import WebSocketException

logger = logging.getLogger(__name__)


def upstream_url(base_url: str, voice_agent_id: str) -> str:
    return f"{base_url}?{urlencode({'agent_id': voice_agent_id})}"


async def _client_to_upstream(client: WebSocket, upstream: Any) -> None:
    while True:
        message = await client.receive()
        if message["type"] == "websocket.disconnect":
            return
        if message.get("bytes") is not None:
            await upstream.send(message["bytes"])
        elif message.get("text") is not None:
            await upstream.send(message["text"])


async def _upstream_to_client(upstream: Any, client: WebSocket) -> None:
    async for message in upstream:
        if isinstance(message, bytes):
            await client.send_bytes(message)
        else:
            await client.send_text(message)


async def relay(
    client: WebSocket,
    url: str,
    api_key: str,
    connector: Callable[..., Any] = connect,
) -> None:
    """Pump frames until either side closes. The client socket must already be accepted."""
    try:
        async with connector(url, additional_headers={"xi-api-key": api_key}) as upstream:
            tasks = {
                asyncio.create_task(_client_to_upstream(client, upstream)),
                asyncio.create_task(_upstream_to_client(upstream, client)),
            }
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, (WebSocketDisconnect, WebSocketException)):
                    logger.error("voice relay side failed: %r", exc)
    except (OSError, WebSocketException) as exc:
        logger.error("voice upstream unavailable: %s", exc)
        if client.application_state == WebSocketState.CONNECTED:
            await client.close(code=1011, reason="Voice service unavailable")
        return

    if client.application_state == WebSocketState.CONNECTED:
        await client.close()
