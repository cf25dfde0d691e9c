"""Advisor proxy route: streamed chat and strategy visual generation."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse

from ..gateway import GatewayClient, GatewayError
from ..schemas.advisor import (
    AdvisorRequest,
    ChatRequest,
    ErrorResponse,
    VisualRequest,
    VisualResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["advisor"])

STREAM_MEDIA_TYPE = "text/event-stream"


def get_gateway_client(request: Request) -> GatewayClient:
    return request.app.state.gateway_client


def _error_response(exc: GatewayError) -> JSONResponse:
    return JSONResponse(
        ErrorResponse(error=exc.detail).model_dump(), status_code=exc.status_code
    )


@router.options("/ai-advisor", include_in_schema=False)
async def advisor_preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK)


@router.post(
    "/ai-advisor",
    response_model=None,
    responses={
        200: {
            "model": VisualResponse,
            "description": "Strategy visual, or the relayed chat stream.",
            "content": {STREAM_MEDIA_TYPE: {}},
        },
        402: {"model": ErrorResponse, "description": "Gateway credits exhausted."},
        429: {"model": ErrorResponse, "description": "Gateway rate limit reached."},
        500: {"model": ErrorResponse, "description": "Gateway or proxy failure."},
    },
)
async def advisor(
    payload: AdvisorRequest,
    gateway: GatewayClient = Depends(get_gateway_client),
) -> Response:
    """Relay a chat stream or return a generated strategy visual."""

    body = payload.root
    if isinstance(body, VisualRequest):
        return await _generate_visual(body, gateway)
    return await _stream_chat(body, gateway)


async def _stream_chat(body: ChatRequest, gateway: GatewayClient) -> Response:
    try:
        upstream = await gateway.open_chat_stream(body)
    except GatewayError as exc:
        return _error_response(exc)

    return StreamingResponse(
        gateway.relay(upstream),
        media_type=STREAM_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache"},
    )


async def _generate_visual(body: VisualRequest, gateway: GatewayClient) -> Response:
    try:
        image = await gateway.generate_visual(body.profile)
    except GatewayError as exc:
        return _error_response(exc)
    return JSONResponse(VisualResponse(image=image).model_dump())


__all__ = ["STREAM_MEDIA_TYPE", "get_gateway_client", "router"]
