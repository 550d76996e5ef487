from __future__ import annotations

import asyncio
import re
from datetime import datetime, timedelta
from typing import Any, List, Literal, Optional, Sequence

import httpx
import openai
from pydantic import BaseModel, Field
from pydantic_ai import Agent
from pydantic_ai.exceptions import AgentRunError
from pydantic_ai.messages import ModelRequest, ModelResponse, TextPart, UserPromptPart
from pydantic_ai.models.openai import OpenAIChatModel
from pydantic_ai.providers.litellm import LiteLLMProvider

from memobot.config import get_settings
from memobot.constants.prompts import (
    AnswerPrompt,
    EnrichmentPrompt,
    IntentPrompt,
    ReminderPrompt,
)
from memobot.core.errors import TransientDependencyFailure
from memobot.models.category import DEFAULT_CATEGORY_NAME
from memobot.infra.logging_config import get_logger
from memobot.utils.time import utcnow

logger = get_logger("llm")

Intent = Literal["recall", "create", "save", "remind", "cancel", "chat"]


class IntentDecision(BaseModel):
    intent: Intent
    query: Optional[str] = None


class MemoryDraft(BaseModel):
    title: str
    summary: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    occurred_at: Optional[datetime] = None
    category: Optional[str] = None


class ReminderRequest(BaseModel):
    remind_at: Optional[datetime] = None
    title: Optional[str] = None


def add_the_date_and_time() -> str:
    """Return the current date and time. Use when the user asks for today's date or what day it is."""
    return f"The date and time is {utcnow().isoformat()}."


def _history_to_message_list(history: Sequence[dict[str, str]]) -> List[Any]:
    """Convert list of {role, content} to pydantic_ai ModelMessage list for message_history."""
    out: List[Any] = []
    for item in history:
        role = item.get("role", "user")
        content = (item.get("content") or "").strip()
        if not content:
            continue
        if role == "user":
            out.append(ModelRequest(parts=[UserPromptPart(content=content)]))
        elif role == "assistant":
            out.append(ModelResponse(parts=[TextPart(content=content)]))
    return out


def format_memories_for_prompt(memories: Sequence[dict[str, Any]]) -> str:
    if not memories:
        return "No stored memories matched."
    lines = []
    for i, memory in enumerate(memories, start=1):
        title = memory.get("title") or "Untitled"
        when = memory.get("created_at") or ""
        body = memory.get("summary") or memory.get("content") or ""
        lines.append(f"{i}. {title} ({when}): {body}")
    return "\n".join(lines)


# Keyword fallback used when no model is configured or the model call fails.
_CANCEL_WORDS = {"cancel", "stop", "never mind", "nevermind", "forget it"}
_SAVE_WORDS = {"save", "save it", "done", "that's all", "thats all", "finish"}
_CREATE_PREFIX = re.compile(
    r"^(please\s+)?(remember( that)?|note( that)?|save( that)?|new memory|"
    r"create (a )?(new )?memory|i want to create a new memory)\b[:,]?\s*",
    re.IGNORECASE,
)
_REMIND_PATTERN = re.compile(r"\bremind(er)?\b", re.IGNORECASE)
_QUESTION_PATTERN = re.compile(
    r"(\?$|^(what|when|where|who|which|how|did|do|does|is|are|was|were|find|search|show)\b)",
    re.IGNORECASE,
)


def strip_create_prefix(text: str) -> str:
    return _CREATE_PREFIX.sub("", text.strip(), count=1).strip()


def classify_intent_heuristic(text: str, in_create_mode: bool = False) -> IntentDecision:
    cleaned = (text or "").strip()
    lowered = cleaned.lower().rstrip(".!")
    if lowered in _CANCEL_WORDS:
        return IntentDecision(intent="cancel")
    if lowered in _SAVE_WORDS:
        return IntentDecision(intent="save")
    if _REMIND_PATTERN.search(cleaned):
        return IntentDecision(intent="remind")
    if _CREATE_PREFIX.match(cleaned):
        return IntentDecision(intent="create")
    if in_create_mode:
        return IntentDecision(intent="create")
    if _QUESTION_PATTERN.search(cleaned):
        return IntentDecision(intent="recall", query=cleaned)
    return IntentDecision(intent="chat", query=cleaned)


_HASHTAG = re.compile(r"#(\w[\w-]*)")
_WORD = re.compile(r"[a-z]+")

_CATEGORY_KEYWORDS = {
    "Work": {"work", "meeting", "project", "office", "client", "deadline", "colleague"},
    "Family": {
        "mom", "dad", "mother", "father", "sister", "brother",
        "kids", "family", "wife", "husband", "son", "daughter",
    },
    "Health": {
        "doctor", "dentist", "medicine", "gym", "workout", "allergy",
        "prescription", "health",
    },
    "Travel": {"flight", "hotel", "trip", "passport", "airport", "travel", "vacation", "visa"},
    "Finance": {
        "bank", "bill", "invoice", "tax", "taxes", "rent", "salary", "budget", "insurance",
    },
}


def heuristic_category(content: str) -> str:
    """Category with the most keyword hits; "Personal" when nothing matches."""
    words = set(_WORD.findall((content or "").lower()))
    best, best_hits = DEFAULT_CATEGORY_NAME, 0
    for name, keywords in _CATEGORY_KEYWORDS.items():
        hits = len(words & keywords)
        if hits > best_hits:
            best, best_hits = name, hits
    return best


def heuristic_draft(content: str) -> MemoryDraft:
    """Title from the first line, tags from hashtags."""
    first_line = content.strip().splitlines()[0] if content.strip() else "Memory"
    words = first_line.split()
    title = " ".join(words[:8]).rstrip(".:,")
    if len(words) > 8:
        title += "..."
    tags = list(dict.fromkeys(t.lower() for t in _HASHTAG.findall(content)))
    summary = " ".join(content.split())
    if len(summary) > 280:
        summary = summary[:277].rstrip() + "..."
    return MemoryDraft(
        title=title,
        summary=summary,
        tags=tags[:5],
        category=heuristic_category(content),
    )


_RELATIVE = re.compile(
    r"\bin\s+(\d+)\s+(minute|min|hour|hr|day|week)s?\b", re.IGNORECASE
)
_UNITS = {
    "minute": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "hour": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "day": timedelta(days=1),
    "week": timedelta(weeks=1),
}


def heuristic_remind_at(text: str, now: datetime) -> Optional[datetime]:
    """Understands "in N minutes/hours/days/weeks" and "tomorrow" (09:00 UTC)."""
    match = _RELATIVE.search(text or "")
    if match:
        return now + int(match.group(1)) * _UNITS[match.group(2).lower()]
    if re.search(r"\btomorrow\b", text or "", re.IGNORECASE):
        return (now + timedelta(days=1)).replace(hour=9, minute=0, second=0, microsecond=0)
    return None


class LLMRunner:
    def __init__(
        self,
        model_name: str,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        timeout: float = 15.0,
    ) -> None:
        provider = LiteLLMProvider(api_key=api_key, api_base=api_base)
        model = OpenAIChatModel(model_name, provider=provider)
        logger.info(f"Initializing LLM runner with model {model_name}")
        self._timeout = timeout
        self._intent_agent = Agent(
            model, output_type=IntentDecision, instructions=IntentPrompt.CONTENT
        )
        self._enrich_agent = Agent(
            model, output_type=MemoryDraft, instructions=EnrichmentPrompt.CONTENT
        )
        self._reminder_agent = Agent(
            model, output_type=ReminderRequest, instructions=ReminderPrompt.CONTENT
        )
        self._answer_agent = Agent(
            model, instructions=AnswerPrompt.CONTENT, tools=[add_the_date_and_time]
        )

    async def _run(self, agent: Agent, prompt: str, **kwargs: Any) -> Any:
        try:
            result = await asyncio.wait_for(
                agent.run(prompt, **kwargs), timeout=self._timeout
            )
        except asyncio.TimeoutError as e:
            raise TransientDependencyFailure("Language model call timed out") from e
        except (AgentRunError, openai.OpenAIError, httpx.HTTPError) as e:
            raise TransientDependencyFailure(f"Language model call failed: {e}") from e
        return result.output

    async def classify_intent(
        self, text: str, mode: str, history: Sequence[dict[str, str]] = ()
    ) -> IntentDecision:
        prompt = f"Conversation mode: {mode}\nMessage: {text}"
        return await self._run(
            self._intent_agent,
            prompt,
            message_history=_history_to_message_list(history),
        )

    async def enrich(
        self, content: str, categories: Sequence[str] = ()
    ) -> MemoryDraft:
        prompt = content
        if categories:
            prompt = f"Existing categories: {', '.join(categories)}\n\n{content}"
        return await self._run(self._enrich_agent, prompt)

    async def extract_reminder(self, text: str, now: datetime) -> ReminderRequest:
        prompt = f"Current time (UTC): {now.isoformat()}\nMessage: {text}"
        return await self._run(self._reminder_agent, prompt)

    async def answer(
        self,
        question: str,
        memories: Sequence[dict[str, Any]],
        history: Sequence[dict[str, str]] = (),
    ) -> str:
        prompt = (
            f"Memories:\n{format_memories_for_prompt(memories)}\n\n"
            f"Question: {question}"
        )
        output = await self._run(
            self._answer_agent,
            prompt,
            message_history=_history_to_message_list(history),
        )
        return str(output)


def build_llm_runner_from_env() -> Optional[LLMRunner]:
    settings = get_settings()
    logger.info(
        "LLM runner config: model=%s, api_key=%s, api_base=%s",
        settings.llm_model,
        "set" if settings.litellm_api_key else "not set",
        settings.litellm_api_base or "(default)",
    )
    if not settings.litellm_api_key:
        logger.warning(
            "LITELLM_API_KEY is not set; falling back to keyword intents and heuristic titles."
        )
        return None
    return LLMRunner(
        model_name=settings.llm_model,
        api_key=settings.litellm_api_key,
        api_base=settings.litellm_api_base,
        timeout=settings.provider_call_timeout_seconds,
    )
