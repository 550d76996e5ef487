"""
Command to send an outbound message to a chat platform.

Resolves the adapter by channel, sends via the platform API (retrying once as
plain text if the provider rejects the markup) and persists the event on
success.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from memobot.adapters.base import FormattingRejected
from memobot.core.registry import AdapterRegistry
from memobot.schemas.messages import OutboundMessage, OutboundSendResult
from memobot.services.conversation_event_service import ConversationEventService

logger = logging.getLogger(__name__)


class SendOutboundCommand:
    """
    Command to send an outbound message to the specified channel.
    Resolves adapter by channel, sends, persists on success.
    """

    def __init__(self, db: Session, registry: AdapterRegistry) -> None:
        self.db = db
        self.registry = registry
        self.events = ConversationEventService(db)

    async def execute(self, body: OutboundMessage) -> OutboundSendResult:
        """
        Send the outbound message via the channel adapter and persist the event.

        Args:
            body: Normalized outbound message (channel, recipient, content, etc.).

        Returns:
            OutboundSendResult: success flag plus the platform message id, or the
                provider error when the send failed.
        """
        adapter = self.registry.get(body.channel)
        if adapter is None:
            logger.warning("No adapter for channel %s; reply dropped", body.channel.value)
            return OutboundSendResult(
                success=False,
                error=f"Channel {body.channel.value} is not enabled or not supported",
            )
        try:
            result = await adapter.send(body)
        except FormattingRejected:
            logger.info("Formatted send rejected on %s; retrying as plain text", body.channel.value)
            body = body.model_copy(update={"parse_mode": None})
            result = await adapter.send(body)
        if not result.success:
            logger.warning("Send on %s failed: %s", body.channel.value, result.error)
            return result
        self.events.record_outbound(
            body, platform_message_id=result.platform_message_id
        )
        return result
