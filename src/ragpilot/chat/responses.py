"""
Canned and LLM-written replies for messages that skip retrieval.
"""

import logging
import random
import re
from typing import Optional

from ragpilot.exceptions import LLMError
from ragpilot.providers.base import LLMProvider, complete_text
from ragpilot.rag.chunking import detect_language
from ragpilot.utils.config import LLMConfig

from .intent import DEFAULT_PERSONA, PersonaConfig

logger = logging.getLogger(__name__)

CHITCHAT_TEMPLATES: dict[str, dict[str, list[str]]] = {
    "ko": {
        "greeting": [
            "안녕하세요! 무엇이 궁금하신가요?",
            "반가워요! 도움이 필요하시면 말씀해주세요.",
            "안녕하세요! 어떻게 도와드릴까요?",
        ],
        "thanks": [
            "천만에요! 더 궁금한 게 있으시면 말씀해주세요.",
            "도움이 되었다니 기뻐요!",
            "네, 필요하시면 언제든 물어봐주세요!",
        ],
        "acknowledgment": ["네, 알겠습니다!", "좋아요!", "네!"],
        "farewell": [
            "안녕히 가세요! 좋은 하루 되세요.",
            "다음에 또 찾아주세요!",
            "감사합니다, 좋은 하루 보내세요!",
        ],
    },
    "en": {
        "greeting": [
            "Hello! What would you like to know?",
            "Nice to meet you! Let me know if you need anything.",
            "Hi there! How can I help?",
        ],
        "thanks": [
            "You're welcome! Ask me anything else you need.",
            "Glad I could help!",
            "Any time, just ask!",
        ],
        "acknowledgment": ["Got it!", "Sounds good!", "Okay!"],
        "farewell": [
            "Goodbye! Have a great day.",
            "Come back any time!",
            "Thanks, have a nice day!",
        ],
    },
}

# Checked in order; farewells before greetings because "안녕히" starts with "안녕"
_CATEGORY_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("farewell", re.compile(r"안녕히|잘\s*가|바이|bye|수고")),
    ("greeting", re.compile(r"안녕|하이|헬로|반가워|\bhi\b|hello")),
    ("thanks", re.compile(r"감사|고마워|땡큐|thank")),
    ("acknowledgment", re.compile(r"네|응|알겠|오케이|\bok\b|좋아")),
]

_TONES = {
    "professional": "professional and polite",
    "friendly": "friendly and warm",
    "casual": "relaxed and casual",
}


def select_template_category(message: str) -> str:
    """Pick the template category that matches a small-talk message."""
    lower = message.lower()
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(lower):
            return category
    return "greeting"


def _language(message: str) -> str:
    return "en" if detect_language(message) == "en" else "ko"


class ResponseGenerator:
    """Write replies for small talk, declines and empty retrieval."""

    CHITCHAT_PROMPT = """You are {name}. Talk in a {tone} tone.

Chat with the user naturally:
- Reply briefly and kindly (1-2 sentences)
- No need to steer towards expert questions
- Use natural conversational language
- Reply in the user's language"""

    DECLINE_PROMPT = """You are {name}.
Expertise: {expertise_area}

The user's question is outside your expertise. Decline politely:
- Say gently that it is not your area
- Suggest one example question within your expertise
- Friendly but clear
- At most 2-3 sentences
- Reply in the user's language"""

    def __init__(
        self,
        provider: Optional[LLMProvider] = None,
        config: LLMConfig = LLMConfig(),
        rng: Optional[random.Random] = None,
    ):
        self.provider = provider
        self.config = config
        self.rng = rng or random.Random()

    def template_response(self, message: str) -> str:
        """Reply to small talk from the canned templates."""
        templates = CHITCHAT_TEMPLATES[_language(message)][select_template_category(message)]
        return self.rng.choice(templates)

    async def _complete(self, prompt: str, system: str, max_tokens: int, temperature: float) -> str:
        if self.provider is None:
            raise LLMError("No LLM provider configured")
        return await complete_text(
            self.provider,
            prompt,
            model=self.config.model,
            system=system,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.config.llm_timeout,
        )

    async def chitchat_response(
        self,
        message: str,
        persona: PersonaConfig = DEFAULT_PERSONA,
    ) -> str:
        """LLM small talk; falls back to a template."""
        system = self.CHITCHAT_PROMPT.format(name=persona.name, tone=_TONES[persona.tone])
        try:
            return await self._complete(message, system, max_tokens=100, temperature=0.7)
        except LLMError as e:
            logger.warning(f"Chitchat generation failed, using template: {e.message}")
            return self.template_response(message)

    def default_decline(self, persona: PersonaConfig, message: str = "") -> str:
        if _language(message) == "en":
            return (
                f"That's outside my area of expertise. "
                f"Feel free to ask me anything about {persona.expertise_area}!"
            )
        return (
            f"그 부분은 제 전문 분야가 아니에요. "
            f"{persona.expertise_area}에 대해 궁금하신 게 있으시면 물어봐주세요!"
        )

    async def decline_response(
        self,
        message: str,
        persona: PersonaConfig = DEFAULT_PERSONA,
    ) -> str:
        """Politely decline an off-topic question."""
        system = self.DECLINE_PROMPT.format(
            name=persona.name,
            expertise_area=persona.expertise_area,
        )
        prompt = f"User question: {message}\n\nDecline:"
        try:
            return await self._complete(prompt, system, max_tokens=150, temperature=0.5)
        except LLMError as e:
            logger.warning(f"Decline generation failed, using default: {e.message}")
            return self.default_decline(persona, message)

    def no_result_response(self, persona: PersonaConfig = DEFAULT_PERSONA, message: str = "") -> str:
        """Reply used when retrieval found nothing trustworthy."""
        if _language(message) == "en":
            return (
                f"Sorry, I couldn't find any relevant information. "
                f"Please ask me something else about {persona.expertise_area}!"
            )
        return (
            f"죄송해요, 관련 정보를 찾지 못했어요. "
            f"{persona.expertise_area}에 대한 다른 질문이 있으시면 말씀해주세요!"
        )
