"""AI arbitration for REVIEW-tier nicknames.

Sends one nickname at a time to an OpenAI-compatible chat completions endpoint
(Gemini's compatibility endpoint by default) and turns the free-form answer
into a strict :class:`AIDecision`.

The arbitrator never raises: provider errors, missing/broken JSON and invalid
decisions all come back as ``REVIEW`` with confidence 0.
"""

from __future__ import annotations

import json
import math
from typing import Any

import jsonschema
from jsonschema import ValidationError
from openai import AsyncOpenAI, OpenAIError

from tabscan.configuration.ai_settings import AISettings
from tabscan.datatypes.errors import AIProviderError
from tabscan.datatypes.moderation_datatypes import AIDecision, VerdictType
from tabscan.util.logger import get_logger

logger = get_logger("ai_arbitrator")

MAX_REASON_LENGTH = 120

PROMPT_TEMPLATE = """You assist a Minecraft server moderator. Rate a player NICKNAME.

Reply with STRICT JSON only, no text around it:
{{"decision":"BAN|REVIEW|OK","confidence":0.0,"reason":"short"}}

BAN - explicit profanity, insults, racism, extremism, 18+ content, drugs, cheats, or impersonating staff or the project.
REVIEW - doubtful, a hint, or ambiguous.
OK - clean.

Nickname: {nickname}
Normalized: {normalized}
"""

DECISION_SCHEMA = {
    "type": "object",
    "properties": {
        "decision": {"type": "string", "enum": [v.value for v in VerdictType]},
    },
    "required": ["decision"],
}


def safe_default(reason: str) -> AIDecision:
    return AIDecision(VerdictType.REVIEW, 0.0, reason)


def build_prompt(nickname: str, normalized: str | None) -> str:
    return PROMPT_TEMPLATE.format(nickname=nickname, normalized=normalized if normalized is not None else nickname)


def extract_json_object(text: str) -> dict | None:
    """Return the first JSON object embedded in ``text``, or None."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            payload, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(payload, dict):
            return payload
        start = text.find("{", start + 1)
    return None


def coerce_confidence(value: Any) -> float:
    """Coerce ``value`` to a float clamped into [0, 1]; junk becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return max(0.0, min(1.0, number))


def parse_decision(text: str) -> AIDecision:
    """Validate a raw provider answer into an :class:`AIDecision`."""
    payload = extract_json_object(text or "")
    if payload is None:
        logger.warning("[AI ARBITRATOR] Response contained no JSON object")
        return safe_default("AI did not return JSON")

    normalized_payload = dict(payload)
    normalized_payload["decision"] = str(payload.get("decision") or "REVIEW").strip().upper()

    try:
        jsonschema.validate(instance=normalized_payload, schema=DECISION_SCHEMA)
    except ValidationError as exc:
        logger.warning("[AI ARBITRATOR] Invalid decision in response: %s", exc.message)
        return safe_default("AI decision invalid")

    reason = str(payload.get("reason") or "-").strip()[:MAX_REASON_LENGTH]
    return AIDecision(
        decision=VerdictType(normalized_payload["decision"]),
        confidence=coerce_confidence(payload.get("confidence", 0)),
        reason=reason,
    )


class AIArbitrator:
    """Classify nicknames with a generative model.

    Args:
        settings: AI configuration; when AI is disabled or no API key is set
            the arbitrator stays unavailable and answers the safe default.
        client: Optional pre-built client (used by tests).
    """

    def __init__(self, settings: AISettings, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._model_name = settings.model_name
        self._client: AsyncOpenAI | None = client
        self.unavailable_reason: str | None = None

        if self._client is None:
            if not settings.enabled:
                self.unavailable_reason = "AI disabled (AI_ENABLED=0)"
            elif not settings.api_key:
                self.unavailable_reason = "AI disabled (no API key)"
            else:
                self._client = AsyncOpenAI(
                    api_key=settings.api_key,
                    base_url=settings.base_url,
                    timeout=settings.timeout,
                )
                logger.info(
                    "[AI ARBITRATOR] Initialized with base_url=%s, model=%s",
                    settings.base_url,
                    self._model_name,
                )

        if self.unavailable_reason:
            logger.warning("[AI ARBITRATOR] %s", self.unavailable_reason)

    @property
    def available(self) -> bool:
        return self._client is not None

    async def _complete(self, prompt: str) -> str:
        """Send ``prompt`` and return the raw answer text.

        Raises:
            AIProviderError: On any transport or API failure.
        """
        assert self._client is not None
        request: dict[str, Any] = {
            "model": self._model_name,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._settings.temperature,
        }
        if self._settings.json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except OpenAIError as exc:
            raise AIProviderError(f"AI provider request failed: {exc}") from exc

        try:
            return (response.choices[0].message.content or "").strip()
        except (AttributeError, IndexError, TypeError) as exc:
            raise AIProviderError("AI provider returned an unexpected response shape") from exc

    async def arbitrate(self, nickname: str, normalized: str | None = None) -> AIDecision:
        """Ask the model about ``nickname``; always returns a decision."""
        if not self.available:
            return safe_default(self.unavailable_reason or "AI disabled")

        try:
            text = await self._complete(build_prompt(nickname, normalized))
        except AIProviderError as exc:
            logger.error("[AI ARBITRATOR] %s", exc)
            return safe_default("AI provider error")
        except Exception as exc:
            logger.exception("[AI ARBITRATOR] Unexpected failure for %s: %s", nickname, exc)
            return safe_default("AI provider error")

        decision = parse_decision(text)
        logger.debug(
            "[AI ARBITRATOR] %s -> %s (%.2f): %s",
            nickname,
            decision.decision,
            decision.confidence,
            decision.reason,
        )
        return decision
