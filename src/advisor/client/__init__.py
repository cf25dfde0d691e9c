"""
Advisor client package.

Turns the proxy's Server-Sent-Events reply into a live conversation:

    HTTP chunks ──▶ StreamDecoder ──▶ text deltas ──▶ Conversation ──▶ listeners

The decoder buffers partial lines and partial JSON across chunk boundaries;
the conversation folds each delta into the open assistant message.
"""

from .api import AdvisorClient
from .conversation import Conversation, Message, TurnState
from .decoder import StreamDecoder, iter_deltas
from .errors import (
    AdvisorError,
    IncompleteFrameError,
    QuotaExhaustedError,
    RateLimitedError,
    StreamDecodeError,
    TransportError,
    TurnInProgressError,
    UpstreamFailureError,
    VisualGenerationError,
)

__all__ = [
    "AdvisorClient",
    "AdvisorError",
    "Conversation",
    "IncompleteFrameError",
    "Message",
    "QuotaExhaustedError",
    "RateLimitedError",
    "StreamDecodeError",
    "StreamDecoder",
    "TransportError",
    "TurnInProgressError",
    "TurnState",
    "UpstreamFailureError",
    "VisualGenerationError",
    "iter_deltas",
]
