from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from memobot.adapters.buttons import DEFAULT_BUTTONS
from memobot.assistants.orchestrator import Orchestrator, OrchestratorResult
from memobot.collaborators.attachments import HttpAttachmentStore
from memobot.collaborators.embedding import OpenAIEmbedder
from memobot.collaborators.transcription import OpenAITranscriber
from memobot.commands.outbound.send_outbound_command import SendOutboundCommand
from memobot.config import Settings, get_settings
from memobot.core.errors import (
    GENERIC_APOLOGY,
    NotFound,
    StateConflict,
    TransientDependencyFailure,
    ValidationFailure,
)
from memobot.core.linker import Linker, parse_link_command
from memobot.core.registry import AdapterRegistry
from memobot.schemas.messages import (
    Channel,
    InboundMessage,
    OutboundMessage,
    QuickReplyButton,
)
from memobot.services.conversation_event_service import ConversationEventService
from memobot.services.conversation_state_service import ConversationStateService
from memobot.services.inbound_media_service import InboundMediaService
from memobot.utils.db.db_session_helper import db_session
from memobot.workers.llm import build_llm_runner_from_env

logger = logging.getLogger(__name__)

WELCOME_MESSAGE = (
    "Hello and welcome to MemoBot! To connect your {channel} account, open your "
    "MemoBot dashboard, generate a link code and send it here as: LINK 123456"
)
LINKED_MESSAGE = (
    "Your {channel} account is now linked. Send me anything you'd like to remember, "
    "or ask me about something you saved."
)

SessionScope = Callable[[], AbstractContextManager[Session]]


@dataclass
class RouterOutcome:
    outbound: OutboundMessage
    result: Optional[OrchestratorResult] = None


class Router:
    """Runs one inbound message through linking, media, state and the orchestrator."""

    def __init__(
        self,
        registry: AdapterRegistry,
        orchestrator: Orchestrator,
        media: Optional[InboundMediaService] = None,
        settings: Optional[Settings] = None,
        session_scope: SessionScope = db_session,
    ) -> None:
        self._registry = registry
        self._orchestrator = orchestrator
        self._settings = settings or get_settings()
        self._media = media or InboundMediaService(settings=self._settings)
        self._session_scope = session_scope

    def _reply(
        self,
        msg: InboundMessage,
        text: str,
        buttons: Optional[List[QuickReplyButton]] = None,
    ) -> OutboundMessage:
        return OutboundMessage(
            channel=msg.channel,
            external_user_id=msg.reply_address,
            text=text,
            reply_to_message_id=msg.external_message_id,
            buttons=list(buttons or []),
            parse_mode="Markdown" if msg.channel == Channel.TELEGRAM else None,
        )

    async def process(self, msg: InboundMessage) -> RouterOutcome:
        """Produce the reply for ``msg``. Never raises for pipeline failures."""
        with self._session_scope() as db:
            ConversationEventService(db).record_inbound(msg)
            linker = Linker(db)

            code = parse_link_command(msg.text)
            if code and msg.channel != Channel.CHAT:
                try:
                    linker.redeem_link_code(
                        msg.channel, msg.external_user_id, code, msg.reply_address
                    )
                    text = LINKED_MESSAGE.format(channel=msg.channel.value.title())
                except ValidationFailure as e:
                    text = e.user_message
                return RouterOutcome(self._reply(msg, text))

            user_id = linker.resolve_user_id(msg.channel, msg.external_user_id)
            if user_id is None:
                return RouterOutcome(
                    self._reply(
                        msg, WELCOME_MESSAGE.format(channel=msg.channel.value.title())
                    )
                )

            try:
                resolved = await self._media.resolve(
                    msg, user_id, self._registry.get(msg.channel)
                )
                states = ConversationStateService(db, self._settings)
                state = states.get_or_create(
                    user_id, msg.channel.value, msg.external_user_id
                )
                result = await self._orchestrator.process(db, user_id, state, resolved)
                states.append_exchange(state, resolved.text, result.reply)
            except (StateConflict, NotFound, ValidationFailure) as e:
                logger.info("Message %s rejected: %s", msg.external_message_id, e)
                db.rollback()
                return RouterOutcome(self._reply(msg, e.user_message, DEFAULT_BUTTONS))
            except TransientDependencyFailure as e:
                logger.warning(
                    "Dependency failure on message %s: %s", msg.external_message_id, e
                )
                db.rollback()
                return RouterOutcome(self._reply(msg, e.user_message))
            except Exception:
                logger.exception("Failed to process message %s", msg.external_message_id)
                db.rollback()
                return RouterOutcome(self._reply(msg, GENERIC_APOLOGY))

            return RouterOutcome(
                self._reply(msg, result.reply, result.suggested_buttons), result
            )

    async def reply_only(self, msg: InboundMessage, text: str) -> None:
        """Send a reply without running the pipeline (rate limiting)."""
        with self._session_scope() as db:
            await SendOutboundCommand(db, self._registry).execute(self._reply(msg, text))

    async def handle(self, msg: InboundMessage) -> RouterOutcome:
        """Process, then deliver the reply on messaging channels."""
        outcome = await self.process(msg)
        if msg.channel != Channel.CHAT:
            with self._session_scope() as db:
                await SendOutboundCommand(db, self._registry).execute(outcome.outbound)
        return outcome


def build_router_from_env(registry: AdapterRegistry) -> Router:
    settings = get_settings()
    embedder = OpenAIEmbedder(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        timeout=settings.provider_call_timeout_seconds,
    )
    attachments = None
    if settings.attachment_service_url:
        attachments = HttpAttachmentStore(
            settings.attachment_service_url,
            token=settings.attachment_service_token,
            timeout=settings.provider_call_timeout_seconds,
        )
    transcriber = None
    if settings.openai_api_key:
        transcriber = OpenAITranscriber(
            settings.openai_api_key,
            model=settings.transcription_model,
            timeout=settings.provider_call_timeout_seconds,
        )
    orchestrator = Orchestrator(
        build_llm_runner_from_env(), embedder, attachments=attachments, settings=settings
    )
    media = InboundMediaService(transcriber, attachments, settings=settings)
    return Router(registry, orchestrator, media=media, settings=settings)
