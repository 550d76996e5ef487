"""
Account linking between external messaging identities and memobot accounts.

A signed-in user asks for a 6-digit code and sends ``LINK <code>`` from
Telegram or WhatsApp. The chat channel needs no link: its external user id is
the account id itself.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from memobot.core.errors import NotFound, ValidationFailure
from memobot.models.user import LinkCode, PlatformLink, User
from memobot.schemas.messages import Channel
from memobot.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)

LINK_CODE_TTL = timedelta(minutes=10)
LINK_COMMAND_RE = re.compile(r"^LINK\s+(\d{6})$", re.IGNORECASE)


def parse_link_command(text: Optional[str]) -> Optional[str]:
    """Return the code from a ``LINK 123456`` message, or None."""
    match = LINK_COMMAND_RE.match((text or "").strip())
    return match.group(1) if match else None


class Linker:
    def __init__(self, db: Session) -> None:
        self.db = db

    def resolve_user_id(self, channel: Channel, external_user_id: str) -> Optional[UUID]:
        if channel == Channel.CHAT:
            try:
                return UUID(external_user_id)
            except ValueError:
                return None
        link = self._get_link(channel, external_user_id)
        return link.user_id if link else None

    def is_account_linked(self, channel: Channel, external_user_id: str) -> bool:
        return self.resolve_user_id(channel, external_user_id) is not None

    def _get_link(self, channel: Channel, external_user_id: str) -> Optional[PlatformLink]:
        return (
            self.db.query(PlatformLink)
            .filter(
                PlatformLink.channel == channel.value,
                PlatformLink.external_user_id == external_user_id,
            )
            .first()
        )

    def generate_link_code(self, user_id: UUID) -> LinkCode:
        if self.db.get(User, user_id) is None:
            raise NotFound(f"User {user_id} not found")
        code = LinkCode(
            user_id=user_id,
            code=f"{secrets.randbelow(1_000_000):06d}",
            expires_at=utcnow() + LINK_CODE_TTL,
        )
        self.db.add(code)
        self.db.commit()
        self.db.refresh(code)
        return code

    def redeem_link_code(
        self,
        channel: Channel,
        external_user_id: str,
        code: str,
        delivery_address: Optional[str] = None,
    ) -> PlatformLink:
        now = utcnow()
        candidates = (
            self.db.query(LinkCode)
            .filter(LinkCode.code == code, LinkCode.used_at.is_(None))
            .order_by(LinkCode.created_at.desc())
            .all()
        )
        link_code = next(
            (c for c in candidates if as_utc(c.expires_at) > now), None
        )
        if link_code is None:
            raise ValidationFailure(
                "Invalid or expired link code",
                user_message=(
                    "That link code is invalid or has expired. "
                    "Generate a new one from your dashboard and try again."
                ),
            )
        link = self._get_link(channel, external_user_id)
        if link is None:
            link = PlatformLink(
                user_id=link_code.user_id,
                channel=channel.value,
                external_user_id=external_user_id,
            )
            self.db.add(link)
        else:
            link.user_id = link_code.user_id
        link.delivery_address = delivery_address or external_user_id
        link_code.used_at = now
        self.db.commit()
        self.db.refresh(link)
        logger.info("Linked %s user %s to account %s", channel.value, external_user_id, link.user_id)
        return link

    def unlink(self, user_id: UUID, channel: Channel) -> bool:
        links = (
            self.db.query(PlatformLink)
            .filter(PlatformLink.user_id == user_id, PlatformLink.channel == channel.value)
            .all()
        )
        for link in links:
            self.db.delete(link)
        self.db.commit()
        return bool(links)

    def delivery_address(self, user_id: UUID, channel: Channel) -> Optional[str]:
        link = (
            self.db.query(PlatformLink)
            .filter(PlatformLink.user_id == user_id, PlatformLink.channel == channel.value)
            .order_by(PlatformLink.created_at.desc())
            .first()
        )
        if link is None:
            return None
        return link.delivery_address or link.external_user_id
