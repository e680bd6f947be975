"""
Speech-to-text for pitch videos (OpenAI Whisper).

Whisper accepts the MP4 container directly, so the compressed upload is sent
as-is; no separate audio extraction step.
"""
from __future__ import annotations

from typing import Optional

from ..config import settings
from ..logger import logger
from .openai_client import get_openai_client


class WhisperTranscriber:
    name = "transcription"

    def __init__(self, client=None, model: str = settings.TRANSCRIPTION_MODEL,
                 language: Optional[str] = settings.TRANSCRIPTION_LANGUAGE):
        self._client = client
        self.model = model
        self.language = language

    @property
    def client(self):
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def transcribe(self, media: bytes, filename: str = "pitch.mp4") -> str:
        kwargs = {"file": (filename, media), "model": self.model}
        if self.language:
            kwargs["language"] = self.language

        logger.info(
            "Requesting transcription",
            extra={"model": self.model, "language": self.language, "size_bytes": len(media)},
        )
        transcription = self.client.audio.transcriptions.create(**kwargs)
        return (transcription.text or "").strip()
