"""Session key derivation from an inbound message."""

from __future__ import annotations

from typing import NamedTuple

from memobot.schemas.messages import InboundMessage


class SessionKey(NamedTuple):
    channel: str
    external_user_id: str

    def __str__(self) -> str:
        return f"{self.channel}:{self.external_user_id}"


def build_session_key(msg: InboundMessage) -> SessionKey:
    """One ordering chain per (channel, external user id)."""
    return SessionKey(msg.channel.value, msg.external_user_id)
