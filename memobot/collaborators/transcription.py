"""Speech-to-text collaborator backed by the OpenAI transcription API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

MAX_AUDIO_BYTES = 25 * 1024 * 1024

MIME_EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/opus": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/aac": "aac",
}


@dataclass
class TranscriptionResult:
    success: bool
    text: str = ""
    error: Optional[str] = None


class Transcriber(Protocol):
    async def transcribe(
        self, audio: bytes, mime_type: Optional[str]
    ) -> TranscriptionResult: ...


def extension_for(mime_type: Optional[str]) -> str:
    base = (mime_type or "").split(";")[0].strip().lower()
    return MIME_EXTENSIONS.get(base, "ogg")


class OpenAITranscriber:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "whisper-1",
        timeout: float = 30.0,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self._timeout)
        return self._client

    async def transcribe(
        self, audio: bytes, mime_type: Optional[str]
    ) -> TranscriptionResult:
        if not audio:
            return TranscriptionResult(False, error="The voice message was empty.")
        if len(audio) > MAX_AUDIO_BYTES:
            return TranscriptionResult(
                False, error="The voice message is too long to transcribe (max 25 MB)."
            )
        filename = f"voice.{extension_for(mime_type)}"
        try:
            response = await self._get_client().audio.transcriptions.create(
                model=self._model,
                file=(filename, audio),
            )
        except openai.RateLimitError as e:
            logger.warning("Transcription rate limited: %s", e)
            return TranscriptionResult(
                False, error="Transcription is busy right now. Please try again shortly."
            )
        except openai.OpenAIError as e:
            logger.warning("Transcription failed: %s", e)
            return TranscriptionResult(
                False, error="I couldn't transcribe that voice message. Please try again."
            )
        text = (response.text or "").strip()
        if not text:
            return TranscriptionResult(
                False, error="I couldn't hear anything in that voice message."
            )
        return TranscriptionResult(True, text=text)
