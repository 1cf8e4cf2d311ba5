"""Dutch-language back office assistant backed by the OpenAI Responses API."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import CONFIG
from .openai import call_response_with_metrics


logger = logging.getLogger(__name__)

INTENTS = (
    "CREATE_INVOICE",
    "CREATE_QUOTE",
    "ADD_TIME",
    "SUMMARIZE_EMAILS",
    "MANAGE_CALENDAR",
    "FILE_ANALYSIS",
    "UNKNOWN",
)

# Workflow action a detected intent maps to, when there is one.
INTENT_ACTIONS = {
    "CREATE_INVOICE": "create_invoice",
    "CREATE_QUOTE": "create_quote",
    "ADD_TIME": "add_time_entry",
}

INTENT_SYSTEM_PROMPT = """Je bent een AI assistent die de intentie van ZZP'ers analyseert.

Analyseer het bericht en bepaal:
- intent: CREATE_INVOICE, CREATE_QUOTE, ADD_TIME, SUMMARIZE_EMAILS, MANAGE_CALENDAR, FILE_ANALYSIS of UNKNOWN
- complexity: SIMPLE (directe vraag) of COMPLEX (meerdere stappen/context nodig)
- entities: relevante informatie (klant, bedrag, datum, ...)
- reasoning: een korte toelichting

Antwoord uitsluitend in JSON, bijvoorbeeld:
{"intent": "CREATE_INVOICE", "confidence": 0.95, "entities": {"client": "John Doe", "amount": 500}, "complexity": "SIMPLE", "reasoning": "..."}"""

RESPONSE_SYSTEM_PROMPT = """Je bent ZzpChat, een Nederlandse AI-assistent voor ZZP'ers.

Geef een concreet, behulpzaam antwoord. Leg kort uit waarom je dit advies geeft
en geef vervolgstappen indien relevant. Gebruik de meegeleverde context uit de
administratie van de gebruiker wanneer die relevant is."""

FALLBACK_RESPONSE = "Er ging iets mis bij het genereren van het antwoord. Probeer het later opnieuw."
EMPTY_RESPONSE = "Ik kon geen geldig antwoord genereren. Probeer het later opnieuw."


@dataclass
class IntentAnalysis:
    intent: str = "UNKNOWN"
    confidence: float = 0.1
    entities: Dict[str, Any] = field(default_factory=dict)
    complexity: str = "SIMPLE"
    reasoning: Optional[str] = None

    @property
    def action(self) -> Optional[str]:
        return INTENT_ACTIONS.get(self.intent)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IntentAnalysis":
        intent = str(payload.get("intent") or "UNKNOWN").upper()
        if intent not in INTENTS:
            intent = "UNKNOWN"
        try:
            confidence = float(payload.get("confidence", 0.3))
        except (TypeError, ValueError):
            confidence = 0.3
        complexity = str(payload.get("complexity") or "SIMPLE").upper()
        entities = payload.get("entities")
        return cls(
            intent=intent,
            confidence=max(0.0, min(confidence, 1.0)),
            entities=entities if isinstance(entities, dict) else {},
            complexity=complexity if complexity in {"SIMPLE", "COMPLEX"} else "SIMPLE",
            reasoning=payload.get("reasoning"),
        )


@dataclass
class AssistantReply:
    response: str
    reasoning: str
    sources: List[Dict[str, Any]] = field(default_factory=list)


def _history_snippet(history: Optional[Sequence[Dict[str, Any]]]) -> str:
    if not history:
        return ""
    lines = []
    for entry in list(history)[-5:]:
        if not isinstance(entry, dict):
            continue
        speaker = "AI" if entry.get("role") == "assistant" else "Gebruiker"
        lines.append(f"{speaker}: {entry.get('content', '')}")
    return "\n".join(lines)


class AssistantService:
    """Intent analysis and grounded responses for a single user message.

    Both calls degrade to a fallback value when the model call fails, so
    callers always get a usable result.
    """

    def __init__(
        self,
        retriever=None,
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        respond: Optional[Callable[..., Any]] = None,
    ):
        self.retriever = retriever
        self.model = model or CONFIG.assistant_model
        self.temperature = CONFIG.assistant_temperature if temperature is None else temperature
        self._respond = respond or call_response_with_metrics

    def analyze_intent(
        self,
        message: str,
        user_id: Optional[str] = None,
        history: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> IntentAnalysis:
        snippet = _history_snippet(history)
        prompt = f"Gebruiker bericht: {message}\nContext: {snippet or 'Geen context beschikbaar'}"
        try:
            text, _metrics = self._respond(
                model=self.model,
                system_prompt=INTENT_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=0.1,
            )
        except Exception as exc:
            logger.error("Intent analysis failed for user %s: %s", user_id, exc)
            return IntentAnalysis()

        try:
            payload = json.loads(text)
        except (TypeError, ValueError):
            logger.warning("Intent analysis returned non-JSON output for user %s", user_id)
            return IntentAnalysis(confidence=0.3)
        if not isinstance(payload, dict):
            return IntentAnalysis(confidence=0.3)
        return IntentAnalysis.from_payload(payload)

    def generate_response(
        self,
        message: str,
        user_id: Optional[str] = None,
        history: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AssistantReply:
        sources: List[Dict[str, Any]] = []
        context_block = ""
        if self.retriever is not None and user_id:
            retrieved = self.retriever.retrieve_smart_context(user_id, message)
            context_block = retrieved.content
            sources = retrieved.sources

        snippet = _history_snippet(history)
        prompt_parts = [
            f"Vorige berichten (laatste 5):\n{snippet or 'Geen geschiedenis beschikbaar'}",
            context_block or None,
            f"Vraag: {message}",
        ]
        prompt = "\n\n".join(part for part in prompt_parts if part)

        try:
            text, _metrics = self._respond(
                model=self.model,
                system_prompt=RESPONSE_SYSTEM_PROMPT,
                user_prompt=prompt,
                temperature=self.temperature,
            )
        except Exception as exc:
            logger.error("Assistant response failed for user %s: %s", user_id, exc)
            return AssistantReply(response=FALLBACK_RESPONSE, reasoning="OpenAI request failed", sources=sources)

        return AssistantReply(
            response=text or EMPTY_RESPONSE,
            reasoning="Response gegenereerd via OpenAI Responses API",
            sources=sources,
        )


__all__ = ["AssistantReply", "AssistantService", "IntentAnalysis"]
