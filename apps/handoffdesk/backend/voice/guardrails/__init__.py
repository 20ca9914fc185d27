"""Output guardrails applied to agent responses."""

from .moderation import (
    BlocklistClassifier,
    GuardrailOutcome,
    GuardrailPolicy,
    GuardrailResult,
    ModerationCategory,
    OpenAIModerationClassifier,
    create_moderation_guardrail,
)

__all__ = [
    "BlocklistClassifier",
    "GuardrailOutcome",
    "GuardrailPolicy",
    "GuardrailResult",
    "ModerationCategory",
    "OpenAIModerationClassifier",
    "create_moderation_guardrail",
]
