"""
Chat module - intent classification, query routing and direct replies.
"""

from ragpilot.chat.intent import (
    DEFAULT_PERSONA,
    Intent,
    IntentClassifier,
    IntentResult,
    PersonaConfig,
    classify_by_rules,
    parse_intent_result,
)
from ragpilot.chat.responses import ResponseGenerator
from ragpilot.chat.router import (
    QueryRouter,
    Route,
    RouteDecision,
    RouterResult,
    decide_route,
)

__all__ = [
    "DEFAULT_PERSONA",
    "Intent",
    "IntentClassifier",
    "IntentResult",
    "PersonaConfig",
    "QueryRouter",
    "ResponseGenerator",
    "Route",
    "RouteDecision",
    "RouterResult",
    "classify_by_rules",
    "decide_route",
    "parse_intent_result",
]
