"""Append-only conversation log folded from streamed assistant deltas."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Iterator, Literal, Optional, Sequence

from .errors import TurnInProgressError

Role = Literal["user", "assistant"]

GREETING = (
    "Bonjour ! Je suis votre conseiller IA personnel. Comment puis-je vous aider "
    "avec votre stratégie d'investissement aujourd'hui ?"
)
VISUAL_CAPTION = "Voici votre plaque récapitulative personnalisée :"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    image: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.image is not None:
            payload["image"] = self.image
        return payload


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"
    STREAMING = "streaming"


Listener = Callable[["Conversation"], None]


class Conversation:
    """Ordered messages plus the state of the single in-flight assistant turn.

    Only the assistant message opened by the current turn is ever replaced,
    and it is addressed by index so each fold costs O(1) regardless of the
    conversation length. Messages appended while a turn streams (a generated
    visual, for instance) do not affect which message the turn writes to.
    """

    def __init__(self, messages: Sequence[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)
        self._state = TurnState.IDLE
        self._open_index: Optional[int] = None
        self._reply = ""
        self._listeners: list[Listener] = []

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(tuple(self._messages))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every change; returns an unsubscribe hook."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def history_payload(self) -> list[dict[str, Any]]:
        return [message.to_payload() for message in self._messages]

    def begin_turn(self, content: str) -> Message:
        """Append the user's message and wait for the assistant reply."""

        if self._state is not TurnState.IDLE:
            raise TurnInProgressError()
        message = Message(role="user", content=content)
        self._messages.append(message)
        self._state = TurnState.AWAITING_REPLY
        self._reply = ""
        self._notify()
        return message

    def fold_delta(self, delta: str) -> Message:
        """Extend the open assistant message, creating it on the first delta."""

        if self._state is TurnState.IDLE:
            raise RuntimeError("no assistant turn in progress")
        self._reply += delta
        if self._state is TurnState.AWAITING_REPLY or self._open_index is None:
            message = Message(role="assistant", content=self._reply)
            self._messages.append(message)
            self._open_index = len(self._messages) - 1
            self._state = TurnState.STREAMING
        else:
            message = replace(self._messages[self._open_index], content=self._reply)
            self._messages[self._open_index] = message
        self._notify()
        return message

    def end_turn(self) -> Optional[Message]:
        """Close the current turn; its reply becomes immutable."""

        reply = None
        if self._open_index is not None:
            reply = self._messages[self._open_index]
        was_active = self._state is not TurnState.IDLE
        self._state = TurnState.IDLE
        self._open_index = None
        self._reply = ""
        if was_active:
            self._notify()
        return reply

    def append_visual(self, image: str, caption: str = VISUAL_CAPTION) -> Message:
        message = Message(role="assistant", content=caption, image=image)
        self._messages.append(message)
        self._notify()
        return message

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


__all__ = [
    "Conversation",
    "GREETING",
    "Message",
    "Role",
    "TurnState",
    "VISUAL_CAPTION",
]
