"""Client-side failures, each carrying the notification shown to the user."""

from __future__ import annotations


class AdvisorError(Exception):
    """Base class for failures surfaced to the user as a notification."""

    title = "Erreur"
    description = (
        "Une erreur est survenue lors de la communication avec le conseiller."
    )

    def __init__(self, message: str | None = None):
        super().__init__(message or self.description)


class TransportError(AdvisorError):
    """The network or the byte stream failed mid-turn."""


class StreamDecodeError(TransportError):
    """The response body was not valid UTF-8."""


class IncompleteFrameError(TransportError):
    """The stream ended while a data frame was still incomplete."""

    def __init__(self, fragment: str):
        super().__init__(f"stream ended inside a data frame: {fragment[:80]!r}")
        self.fragment = fragment


class RateLimitedError(AdvisorError):
    title = "Limite atteinte"
    description = "Trop de requêtes, veuillez réessayer plus tard."


class QuotaExhaustedError(AdvisorError):
    title = "Crédits insuffisants"
    description = "Veuillez ajouter des crédits à votre compte."


class UpstreamFailureError(AdvisorError):
    """Any other non-success answer from the advisor proxy."""


class VisualGenerationError(UpstreamFailureError):
    description = "Impossible de générer la plaque visuelle."


class TurnInProgressError(AdvisorError):
    description = "Une réponse est déjà en cours, veuillez patienter."


def error_for_status(status_code: int, message: str | None = None) -> AdvisorError:
    """Map a proxy HTTP status to the matching client error."""

    if status_code == 429:
        return RateLimitedError(message)
    if status_code == 402:
        return QuotaExhaustedError(message)
    return UpstreamFailureError(message)


__all__ = [
    "AdvisorError",
    "IncompleteFrameError",
    "QuotaExhaustedError",
    "RateLimitedError",
    "StreamDecodeError",
    "TransportError",
    "TurnInProgressError",
    "UpstreamFailureError",
    "VisualGenerationError",
    "error_for_status",
]
