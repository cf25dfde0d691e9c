"""Client for the upstream generative-AI completions gateway."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Mapping, Optional, Sequence

import httpx
from fastapi import status

from .config import Settings
from .prompts import build_visual_prompt
from .schemas.advisor import ChatRequest

logger = logging.getLogger(__name__)

RATE_LIMITED_MESSAGE = "Limite de requêtes atteinte, veuillez réessayer plus tard."
PAYMENT_REQUIRED_MESSAGE = (
    "Paiement requis, veuillez ajouter des crédits à votre espace Lovable AI."
)
CHAT_FAILURE_MESSAGE = "Erreur du service IA"
VISUAL_FAILURE_MESSAGE = "Erreur lors de la génération de l'image"
NO_IMAGE_MESSAGE = "Aucune image générée"


class GatewayError(Exception):
    """Failure talking to the gateway, already mapped to a client-safe status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail


def map_upstream_failure(status_code: int, fallback: str) -> GatewayError:
    """Translate a non-success upstream status into the domain error."""

    if status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return GatewayError(status.HTTP_429_TOO_MANY_REQUESTS, RATE_LIMITED_MESSAGE)
    if status_code == status.HTTP_402_PAYMENT_REQUIRED:
        return GatewayError(status.HTTP_402_PAYMENT_REQUIRED, PAYMENT_REQUIRED_MESSAGE)
    return GatewayError(status.HTTP_500_INTERNAL_SERVER_ERROR, fallback)


class GatewayClient:
    """Forward advisor conversations and visual requests to the gateway."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._client_lock = asyncio.Lock()

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client

        async with self._client_lock:
            if self._client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                self._client = httpx.AsyncClient(
                    timeout=timeout,
                    limits=limits,
                    http2=self._transport is None,
                    transport=self._transport,
                )
        return self._client

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.gateway_api_key.get_secret_value()}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    @property
    def _completions_url(self) -> str:
        return f"{str(self._settings.gateway_base_url).rstrip('/')}/chat/completions"

    async def open_chat_stream(self, request: ChatRequest) -> httpx.Response:
        """Start a streamed completion and return the open upstream response.

        The caller owns the returned response and must close it, which
        :meth:`relay` does once the body is exhausted or abandoned.
        """

        payload = request.to_upstream_payload(
            self._settings.chat_model, self._settings.system_prompt
        )
        client = await self._get_http_client()
        upstream_request = client.build_request(
            "POST",
            self._completions_url,
            headers=self._headers,
            json=payload,
        )
        try:
            response = await client.send(upstream_request, stream=True)
        except httpx.HTTPError as exc:
            logger.error("AI gateway unreachable: %s", exc)
            raise GatewayError(
                status.HTTP_500_INTERNAL_SERVER_ERROR, CHAT_FAILURE_MESSAGE
            ) from exc

        if not response.is_success:
            try:
                body = await response.aread()
            except httpx.HTTPError as exc:
                logger.error(
                    "AI gateway error body unreadable (%s): %s",
                    response.status_code,
                    exc,
                )
                body = b""
            finally:
                await response.aclose()
            if response.status_code not in (
                status.HTTP_429_TOO_MANY_REQUESTS,
                status.HTTP_402_PAYMENT_REQUIRED,
            ):
                logger.error(
                    "AI gateway error: %s %s",
                    response.status_code,
                    _describe_body(body),
                )
            raise map_upstream_failure(response.status_code, CHAT_FAILURE_MESSAGE)

        return response

    @staticmethod
    async def relay(response: httpx.Response) -> AsyncIterator[bytes]:
        """Yield the upstream body untouched, closing it when done."""

        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            # Headers are already sent; the client sees a truncated stream.
            logger.error("AI gateway stream interrupted: %s", exc)
        finally:
            await response.aclose()

    async def generate_visual(self, profile: Mapping[str, Any]) -> str:
        """Request a strategy summary card and return its image reference."""

        logger.info("Generating investment visual for profile: %s", dict(profile))
        payload = {
            "model": self._settings.image_model,
            "messages": [
                {"role": "user", "content": build_visual_prompt(profile)},
            ],
            "modalities": ["image", "text"],
        }
        headers = dict(self._headers)
        headers["Accept"] = "application/json"

        client = await self._get_http_client()
        try:
            response = await client.post(
                self._completions_url, headers=headers, json=payload
            )
        except httpx.HTTPError as exc:
            logger.error("Image generation error: %s", exc)
            raise GatewayError(
                status.HTTP_500_INTERNAL_SERVER_ERROR, VISUAL_FAILURE_MESSAGE
            ) from exc

        if not response.is_success:
            logger.error(
                "Image generation error: %s %s",
                response.status_code,
                _describe_body(response.content),
            )
            raise map_upstream_failure(response.status_code, VISUAL_FAILURE_MESSAGE)

        try:
            body = response.json()
        except ValueError as exc:
            logger.error("Image generation returned invalid JSON: %s", exc)
            raise GatewayError(
                status.HTTP_500_INTERNAL_SERVER_ERROR, VISUAL_FAILURE_MESSAGE
            ) from exc

        image = self._extract_image(body)
        if image is None:
            logger.error("No image in response: %s", body)
            raise GatewayError(status.HTTP_500_INTERNAL_SERVER_ERROR, NO_IMAGE_MESSAGE)

        logger.info("Image generated successfully")
        return image

    @staticmethod
    def _extract_image(payload: Any) -> Optional[str]:
        """Return ``choices[0].message.images[0].image_url.url`` if present."""

        if not isinstance(payload, Mapping):
            return None
        choices = payload.get("choices")
        if not isinstance(choices, Sequence) or not choices:
            return None
        first = choices[0]
        message = first.get("message") if isinstance(first, Mapping) else None
        if not isinstance(message, Mapping):
            return None
        images = message.get("images")
        if not isinstance(images, Sequence) or not images:
            return None
        image = images[0]
        image_url = image.get("image_url") if isinstance(image, Mapping) else None
        if not isinstance(image_url, Mapping):
            return None
        url = image_url.get("url")
        if isinstance(url, str) and url:
            return url
        return None

    async def aclose(self) -> None:
        async with self._client_lock:
            client, self._client = self._client, None
        if client is not None:
            await client.aclose()


def _describe_body(raw: bytes) -> str:
    if not raw:
        return "<empty body>"
    return raw.decode("utf-8", errors="replace")


__all__ = [
    "CHAT_FAILURE_MESSAGE",
    "GatewayClient",
    "GatewayError",
    "NO_IMAGE_MESSAGE",
    "PAYMENT_REQUIRED_MESSAGE",
    "RATE_LIMITED_MESSAGE",
    "VISUAL_FAILURE_MESSAGE",
    "map_upstream_failure",
]
