"""
Intent classification for incoming chat messages.

Cheap regex rules run first; only messages they cannot place go to the
LLM. Any failure falls back to DOMAIN_QUERY so retrieval still runs.
"""

import json
import logging
import re
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ragpilot.core.message import Message, format_history
from ragpilot.exceptions import LLMError
from ragpilot.providers.base import LLMProvider, complete_text
from ragpilot.utils.config import LLMConfig

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    """What the user is trying to do."""
    CHITCHAT = "CHITCHAT"
    DOMAIN_QUERY = "DOMAIN_QUERY"
    OUT_OF_SCOPE = "OUT_OF_SCOPE"


class IntentResult(BaseModel):
    """Classifier output."""
    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    rules_match: bool = False
    reasoning: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return min(1.0, max(0.0, float(value)))


class PersonaConfig(BaseModel):
    """Who the chatbot is, for prompts and canned replies."""
    name: str = "AI Assistant"
    expertise_area: str = "company documents and FAQ"
    tone: Literal["professional", "friendly", "casual"] = "friendly"


DEFAULT_PERSONA = PersonaConfig()

_TRAILER = r"\s*[~!?.ㅋㅎ]*$"

CHITCHAT_PATTERNS: list[re.Pattern] = [
    # greetings
    re.compile(r"^(안녕|하이|헬로|반가워|좋은\s*(아침|저녁|하루)|hi|hello)" + _TRAILER, re.IGNORECASE),
    # thanks / acknowledgement
    re.compile(
        r"^(감사|고마워|땡큐|thank|넵|네|응|알겠어|오케이|ok|좋아요?|그래)" + _TRAILER,
        re.IGNORECASE,
    ),
    # laughter, emoticons
    re.compile(r"^[ㅋㅎㅠㅜ~!?.]+$"),
    # farewells
    re.compile(r"^(안녕히|잘\s*가|바이|bye|수고)" + _TRAILER, re.IGNORECASE),
]

OUT_OF_SCOPE_PATTERNS: list[re.Pattern] = [
    # programming
    re.compile(
        r"\b(javascript|python|java|react|typescript|html|css|node|api)\b|코딩|프로그래밍|개발|함수|클래스|변수",
        re.IGNORECASE,
    ),
    # finance
    re.compile(r"\betf\b|주식|비트코인|코인|투자|재테크|펀드|금리", re.IGNORECASE),
    # general knowledge
    re.compile(r"날씨|뉴스|영화|드라마|맛집|여행"),
    # math / science
    re.compile(r"수학|물리|화학|생물|공식|정리|증명"),
]

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def classify_by_rules(message: str) -> Optional[IntentResult]:
    """Classify obvious small talk and off-topic questions without an LLM."""
    trimmed = message.strip()

    for pattern in CHITCHAT_PATTERNS:
        if pattern.search(trimmed):
            return IntentResult(
                intent=Intent.CHITCHAT,
                confidence=0.95,
                rules_match=True,
                reasoning=f"Rule match: {pattern.pattern}",
            )

    for pattern in OUT_OF_SCOPE_PATTERNS:
        if pattern.search(trimmed):
            return IntentResult(
                intent=Intent.OUT_OF_SCOPE,
                confidence=0.85,
                rules_match=True,
                reasoning=f"Rule match: {pattern.pattern}",
            )

    return None


def parse_intent_result(text: str) -> IntentResult:
    """Parse ``{"intent", "confidence", "reasoning"}`` out of an LLM reply.

    Unknown intents become DOMAIN_QUERY, confidence is clamped to [0, 1]
    and defaults to 0.7. Unparseable replies give DOMAIN_QUERY at 0.6.
    """
    match = _JSON_OBJECT.search(text or "")
    parsed = None
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None

    if not isinstance(parsed, dict):
        logger.warning(f"Failed to parse intent result: {(text or '')[:100]!r}")
        return IntentResult(
            intent=Intent.DOMAIN_QUERY,
            confidence=0.6,
            reasoning=f"Parse failure: {(text or '')[:100]}",
        )

    try:
        intent = Intent(parsed.get("intent"))
    except ValueError:
        intent = Intent.DOMAIN_QUERY

    confidence = parsed.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = 0.7

    reasoning = parsed.get("reasoning")
    return IntentResult(
        intent=intent,
        confidence=confidence,
        reasoning=str(reasoning) if reasoning else None,
    )


class IntentClassifier:
    """Rules first, then an LLM, then a safe default."""

    SYSTEM_PROMPT = """You classify the intent of chatbot users.

## Chatbot
- Name: {name}
- Expertise: {expertise_area}

## Categories

### CHITCHAT
Greetings, thanks, small talk. Not a request for information.
Examples: "hello", "thanks!", "how are you?", "ok got it"

### DOMAIN_QUERY
Questions about "{expertise_area}" that need a document search.
Examples: policies, procedures, products or services

### OUT_OF_SCOPE
General knowledge unrelated to the expertise: programming, science,
finance, weather, news and so on.
Examples: "how do I write a JavaScript function", "what's the weather today?"

## Rules
1. Mixed intent ("hi, what is your refund policy?") is DOMAIN_QUERY
2. When unsure, answer DOMAIN_QUERY (retrieval can still decide)
3. Take the previous conversation into account

## Output (JSON only)
{{"intent": "CHITCHAT|DOMAIN_QUERY|OUT_OF_SCOPE", "confidence": 0.0-1.0, "reasoning": "why"}}"""

    USER_PROMPT = """## Previous conversation
{history}

## Current message
{message}

## Classification (JSON):"""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        persona: PersonaConfig = DEFAULT_PERSONA,
        config: LLMConfig = LLMConfig(),
    ):
        self.provider = provider
        self.persona = persona
        self.config = config

    async def classify(
        self,
        message: str,
        history: Optional[list[Message]] = None,
        persona: Optional[PersonaConfig] = None,
    ) -> IntentResult:
        """
        Classify a user message.

        Args:
            message: The user message
            history: Earlier turns, oldest first
            persona: Overrides the classifier's persona for this call

        Returns:
            IntentResult (never raises for provider problems)
        """
        persona = persona or self.persona
        rules_result = classify_by_rules(message)
        if rules_result is not None:
            logger.debug(f"Intent classified by rules: {rules_result.intent.value}")
            return rules_result

        if self.provider is None:
            logger.warning("No LLM provider available for intent classification")
            return IntentResult(
                intent=Intent.DOMAIN_QUERY,
                confidence=0.5,
                reasoning="No LLM provider, using default",
            )

        prompt = self.USER_PROMPT.format(
            history=format_history(history or [], self.config.history_limit),
            message=message,
        )

        try:
            reply = await complete_text(
                self.provider,
                prompt,
                model=self.config.model,
                system=self.SYSTEM_PROMPT.format(
                    name=persona.name,
                    expertise_area=persona.expertise_area,
                ),
                temperature=0.0,
                max_tokens=150,
                timeout=self.config.llm_timeout,
            )
        except LLMError as e:
            logger.warning(f"Intent classification failed, defaulting to DOMAIN_QUERY: {e.message}")
            return IntentResult(
                intent=Intent.DOMAIN_QUERY,
                confidence=0.5,
                reasoning=f"Classification failed: {e.message}",
            )

        result = parse_intent_result(reply)
        logger.debug(
            f"Intent classified by LLM: {result.intent.value} ({result.confidence:.2f})"
        )
        return result
