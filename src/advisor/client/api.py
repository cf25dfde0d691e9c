"""HTTP client for the advisor proxy."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from .conversation import Conversation, Message
from .decoder import iter_deltas
from .errors import (
    TransportError,
    VisualGenerationError,
    error_for_status,
)

logger = logging.getLogger(__name__)

ADVISOR_PATH = "/api/ai-advisor"


class AdvisorClient:
    """Send turns to the advisor proxy and fold streamed replies.

    One turn may be in flight per :class:`Conversation`; the conversation's
    turn state enforces it. Visual generation is an independent request and
    may run while a reply is streaming.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def __aenter__(self) -> "AdvisorClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send(self, conversation: Conversation, content: str) -> Optional[Message]:
        """Append ``content`` as a user turn and stream the assistant reply.

        Deltas are folded into ``conversation`` as they arrive. On failure the
        text already received stays in place and the error is raised; the
        turn is closed in every case, including cancellation.
        """

        conversation.begin_turn(content)
        try:
            await self._stream_reply(conversation)
        finally:
            reply = conversation.end_turn()
        return reply

    async def _stream_reply(self, conversation: Conversation) -> None:
        body = {"messages": conversation.history_payload()}
        try:
            async with self._client.stream("POST", ADVISOR_PATH, json=body) as response:
                if not response.is_success:
                    await response.aread()
                    raise error_for_status(
                        response.status_code, _error_message(response)
                    )
                async for delta in iter_deltas(response.aiter_bytes()):
                    conversation.fold_delta(delta)
        except httpx.HTTPError as exc:
            logger.error("Chat error: %s", exc)
            raise TransportError(str(exc)) from exc

    async def generate_visual(
        self, conversation: Conversation, profile: Mapping[str, Any]
    ) -> Message:
        """Request the strategy card for ``profile`` and append it."""

        body = {"action": "generate_visual", "profile": dict(profile)}
        try:
            response = await self._client.post(ADVISOR_PATH, json=body)
        except httpx.HTTPError as exc:
            logger.error("Visual generation error: %s", exc)
            raise TransportError(str(exc)) from exc

        if not response.is_success:
            message = _error_message(response)
            if response.status_code in (429, 402):
                raise error_for_status(response.status_code, message)
            raise VisualGenerationError(message)

        try:
            image = response.json().get("image")
        except (ValueError, AttributeError) as exc:
            raise VisualGenerationError() from exc
        if not isinstance(image, str) or not image:
            raise VisualGenerationError()
        return conversation.append_visual(image)


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return None


__all__ = ["ADVISOR_PATH", "AdvisorClient"]
