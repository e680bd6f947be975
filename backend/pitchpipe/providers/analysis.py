"""
Transcript analysis: archetype/persona classification and a match score.
"""
from __future__ import annotations

from typing import Any, Dict

from ..config import settings
from ..logger import logger
from .json_guard import extract_json_object
from .openai_client import get_openai_client

SYSTEM_RULE = (
    "You are an expert coach analysing short video pitches. "
    "Return ONLY valid JSON."
)

USER_PROMPT = (
    "Analyse the following pitch transcript and return a JSON object with the keys: "
    "summary (string), archetype (string), persona (string), tone (string), "
    "key_topics (array of strings), important_entities (array of strings), "
    "action_items (array of strings), insights (string), "
    "score (number between 0 and 10 rating clarity and impact).\n\n"
    "Transcript:\n{transcript}"
)


def score_analysis(analysis: Dict[str, Any]) -> float:
    """Fallback score when the model did not return one: 7 plus bonuses for rich output, capped at 10."""
    score = 7.0
    if len(str(analysis.get("summary") or "")) > 50:
        score += 0.5
    if isinstance(analysis.get("key_topics"), list) and len(analysis["key_topics"]) >= 3:
        score += 0.5
    if isinstance(analysis.get("important_entities"), list) and analysis["important_entities"]:
        score += 0.5
    if isinstance(analysis.get("action_items"), list) and analysis["action_items"]:
        score += 0.5
    if analysis.get("insights"):
        score += 0.5
    return min(score, 10.0)


class OpenAIAnalysisEngine:
    name = "analysis"

    def __init__(self, client=None, model: str = settings.ANALYSIS_MODEL,
                 max_chars: int = settings.ANALYSIS_MAX_CHARS):
        self._client = client
        self.model = model
        self.max_chars = max_chars

    @property
    def client(self):
        if self._client is None:
            self._client = get_openai_client()
        return self._client

    def analyze(self, transcript: str) -> Dict[str, Any]:
        prompt = USER_PROMPT.format(transcript=transcript[: self.max_chars])
        completion = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_RULE},
                {"role": "user", "content": prompt},
            ],
            response_format={"type": "json_object"},
            max_tokens=2000,
        )
        content = completion.choices[0].message.content if completion.choices else None
        analysis = extract_json_object(content or "")

        score = analysis.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            analysis["score"] = score_analysis(analysis)

        logger.info(
            "Analysis received",
            extra={"model": self.model, "score": analysis["score"], "archetype": analysis.get("archetype")},
        )
        return analysis
