from __future__ import annotations

from typing import Optional

from openai import OpenAI

from ..config import settings
from ..logger import logger

# Lazily-initialized OpenAI client
_client: Optional[OpenAI] = None


def get_openai_client() -> OpenAI:
    """
    Build the shared client on first use so importing the providers does not
    require OPENAI_API_KEY (tests, API-only deployments).

    Retries are disabled: a failed provider call fails the job.
    """
    global _client
    if _client is None:
        if not settings.OPENAI_API_KEY:
            logger.error("OPENAI_API_KEY is not set; transcription and analysis are unavailable")
            raise RuntimeError("OPENAI_API_KEY is not set")
        _client = OpenAI(
            api_key=settings.OPENAI_API_KEY,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            max_retries=0,
        )
    return _client
