"""
Error taxonomy for the ingestion and retrieval pipeline.

Every error carries a plain-language ``user_message`` so a failure that reaches
a live conversation can be answered with a reply instead of a raw error.
"""

from __future__ import annotations

from typing import Optional

GENERIC_APOLOGY = "Something went wrong. Please try again or contact support."


class MemobotError(Exception):
    user_message = GENERIC_APOLOGY

    def __init__(self, message: str = "", user_message: Optional[str] = None) -> None:
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class AuthenticationFailure(MemobotError):
    """Bad or missing webhook signature. Rejected before any processing."""

    user_message = "Request could not be authenticated."


class ValidationFailure(MemobotError):
    """Malformed payload or missing required field."""

    user_message = "Sorry, I couldn't understand that message."


class TransientDependencyFailure(MemobotError):
    """Embedding, transcription, storage or provider call failed or timed out."""

    user_message = GENERIC_APOLOGY


class StateConflict(MemobotError):
    """Operation not allowed in the current state (e.g. editing a sent reminder)."""

    user_message = "That action isn't allowed right now."


class NotFound(MemobotError):
    """Missing, or owned by someone else. The two are indistinguishable to callers."""

    user_message = "I couldn't find that."
