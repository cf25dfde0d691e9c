"""Pydantic models for advisor proxy requests and responses."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, RootModel, Tag

VISUAL_ACTION = "generate_visual"


class ChatMessage(BaseModel):
    """Represents a single conversation message sent by the client."""

    role: Literal["user", "assistant"]
    content: str
    image: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    def to_upstream(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    """Conversation to continue with a streamed assistant reply."""

    action: Optional[str] = None
    messages: List[ChatMessage]

    model_config = ConfigDict(extra="ignore")

    def to_upstream_payload(self, model: str, system_prompt: str) -> Dict[str, Any]:
        """Serialize the conversation for the gateway, persona first."""

        return {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                *(message.to_upstream() for message in self.messages),
            ],
            "stream": True,
        }


class VisualRequest(BaseModel):
    """Request for a single generated strategy summary image."""

    action: Literal["generate_visual"]
    profile: Dict[str, Any] = {}

    model_config = ConfigDict(extra="ignore")


def _request_kind(value: Any) -> str:
    if isinstance(value, dict):
        action = value.get("action")
    else:
        action = getattr(value, "action", None)
    return "visual" if action == VISUAL_ACTION else "chat"


class AdvisorRequest(RootModel):
    """Incoming proxy body, discriminated by its ``action`` field."""

    root: Annotated[
        Union[
            Annotated[ChatRequest, Tag("chat")],
            Annotated[VisualRequest, Tag("visual")],
        ],
        Discriminator(_request_kind),
    ]


class VisualResponse(BaseModel):
    image: str


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "AdvisorRequest",
    "ChatMessage",
    "ChatRequest",
    "ErrorResponse",
    "VISUAL_ACTION",
    "VisualRequest",
    "VisualResponse",
]
