"""
Output Moderation Guardrail
===========================

Checks agent output before it is released to the user. Each check returns a
``GuardrailResult``; a blocked result is a normal outcome, not an error.

Categories:
    OFFENSIVE  hate speech, harassment, slurs
    OFF_BRAND  disparaging the company or promoting competitors
    VIOLENCE   threats or graphic violence
    NONE       nothing to flag

If the classifier itself fails the output passes (fail-open) and the
failure is logged.

Usage:
    guardrail = create_moderation_guardrail("Snowy Peak Boards")
    result = await guardrail.evaluate("Our boards are the best on the mountain!")
    if result.blocked:
        speak(result.fallback_message)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Protocol

from utils.ml_logging import get_logger

logger = get_logger("voice.guardrails.moderation")

DEFAULT_FALLBACK_MESSAGE = "Sorry, I can't help with that. Is there anything else I can do for you?"


class ModerationCategory(str, Enum):
    OFFENSIVE = "OFFENSIVE"
    OFF_BRAND = "OFF_BRAND"
    VIOLENCE = "VIOLENCE"
    NONE = "NONE"


class GuardrailOutcome(str, Enum):
    PASS = "pass"
    BLOCKED = "blocked"


@dataclass(frozen=True)
class Classification:
    """Raw classifier verdict."""

    category: ModerationCategory
    rationale: str = ""


@dataclass(frozen=True)
class GuardrailResult:
    outcome: GuardrailOutcome
    category: ModerationCategory = ModerationCategory.NONE
    rationale: str = ""
    fallback_message: str | None = None

    @property
    def blocked(self) -> bool:
        return self.outcome is GuardrailOutcome.BLOCKED

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "category": self.category.value,
            "rationale": self.rationale,
            "fallback_message": self.fallback_message,
        }


class ModerationClassifier(Protocol):
    async def classify(self, text: str, company_name: str) -> Classification: ...


# ═══════════════════════════════════════════════════════════════════════════════
# CLASSIFIERS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class PatternRule:
    regex: re.Pattern
    category: ModerationCategory
    label: str = ""


_DEFAULT_RULES: list[tuple[str, ModerationCategory, str]] = [
    (r"\b(idiot|stupid|moron|dumbass|shut up)\b", ModerationCategory.OFFENSIVE, "insult"),
    (r"\b(i hate you|you people are)\b", ModerationCategory.OFFENSIVE, "harassment"),
    (r"\b(kill|murder|stab|shoot|strangle)\s+(you|him|her|them|yourself)\b", ModerationCategory.VIOLENCE, "threat"),
    (r"\b(bomb|massacre|behead)\w*\b", ModerationCategory.VIOLENCE, "graphic violence"),
]


class BlocklistClassifier:
    """
    Local regex classifier. No network calls.

    OFF_BRAND matches disparaging phrases about the company itself and any
    mention of a configured competitor.
    """

    def __init__(
        self,
        competitors: Iterable[str] = (),
        extra_rules: Iterable[PatternRule] = (),
    ):
        self.rules: list[PatternRule] = [
            PatternRule(re.compile(p, re.IGNORECASE), c, label) for p, c, label in _DEFAULT_RULES
        ]
        self.rules.extend(extra_rules)
        self.competitors = [c for c in competitors if c]

    def _brand_rules(self, company_name: str) -> list[PatternRule]:
        rules = []
        if company_name:
            name = re.escape(company_name)
            rules.append(
                PatternRule(
                    re.compile(rf"\b{name}\b.{{0,40}}\b(sucks|is terrible|is a scam|is the worst)\b", re.IGNORECASE),
                    ModerationCategory.OFF_BRAND,
                    "disparages company",
                )
            )
        for competitor in self.competitors:
            rules.append(
                PatternRule(
                    re.compile(rf"\b{re.escape(competitor)}\b", re.IGNORECASE),
                    ModerationCategory.OFF_BRAND,
                    f"mentions competitor {competitor}",
                )
            )
        return rules

    async def classify(self, text: str, company_name: str) -> Classification:
        for rule in [*self.rules, *self._brand_rules(company_name)]:
            match = rule.regex.search(text or "")
            if match:
                return Classification(rule.category, f"{rule.label}: '{match.group(0)}'")
        return Classification(ModerationCategory.NONE, "")


class OpenAIModerationClassifier:
    """
    Classifier backed by the OpenAI moderation endpoint.

    violence* flags map to VIOLENCE; harassment* and hate* map to OFFENSIVE.
    The moderation endpoint has no notion of brand, so OFF_BRAND is never
    produced here.
    """

    def __init__(self, client: Any = None, model: str = "omni-moderation-latest"):
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI()
        self._client = client
        self.model = model

    async def classify(self, text: str, company_name: str) -> Classification:
        response = await self._client.moderations.create(model=self.model, input=text)
        result = response.results[0]
        if not result.flagged:
            return Classification(ModerationCategory.NONE, "")

        categories = result.categories.model_dump() if hasattr(result.categories, "model_dump") else dict(result.categories)
        flagged = sorted(name for name, hit in categories.items() if hit)
        if any(name.startswith("violence") for name in flagged):
            return Classification(ModerationCategory.VIOLENCE, ", ".join(flagged))
        if any(name.startswith(("harassment", "hate")) for name in flagged):
            return Classification(ModerationCategory.OFFENSIVE, ", ".join(flagged))
        return Classification(ModerationCategory.NONE, "flagged outside guarded categories: " + ", ".join(flagged))


# ═══════════════════════════════════════════════════════════════════════════════
# POLICY
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class GuardrailPolicy:
    """Output guardrail bound to one company name."""

    company_name: str
    classifier: ModerationClassifier
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE
    name: str = "moderation_guardrail"
    blocked_categories: frozenset[ModerationCategory] = field(
        default_factory=lambda: frozenset(
            {ModerationCategory.OFFENSIVE, ModerationCategory.OFF_BRAND, ModerationCategory.VIOLENCE}
        )
    )

    async def evaluate(self, candidate_output: str) -> GuardrailResult:
        """Classify ``candidate_output``. Never raises."""
        try:
            verdict = await self.classifier.classify(candidate_output, self.company_name)
        except Exception as e:
            logger.warning(
                "Guardrail classifier failed, passing output | company=%s error=%s",
                self.company_name,
                e,
            )
            return GuardrailResult(
                outcome=GuardrailOutcome.PASS,
                rationale=f"classifier unavailable: {e}",
            )

        if verdict.category in self.blocked_categories:
            logger.info(
                "Guardrail blocked output | company=%s category=%s",
                self.company_name,
                verdict.category.value,
            )
            return GuardrailResult(
                outcome=GuardrailOutcome.BLOCKED,
                category=verdict.category,
                rationale=verdict.rationale,
                fallback_message=self.fallback_message,
            )
        return GuardrailResult(outcome=GuardrailOutcome.PASS, rationale=verdict.rationale)


def create_moderation_guardrail(
    company_name: str,
    classifier: ModerationClassifier | None = None,
    fallback_message: str | None = None,
) -> GuardrailPolicy:
    """
    Build the output guardrail for a scenario.

    Without an explicit classifier the ``GUARDRAIL_CLASSIFIER`` setting picks
    between the local blocklist and the OpenAI moderation endpoint.
    """
    from apps.handoffdesk.backend.config.settings import (
        GUARDRAIL_CLASSIFIER,
        GUARDRAIL_COMPETITORS,
        GUARDRAIL_FALLBACK_MESSAGE,
    )

    if classifier is None:
        if GUARDRAIL_CLASSIFIER == "openai":
            classifier = OpenAIModerationClassifier()
        else:
            classifier = BlocklistClassifier(competitors=GUARDRAIL_COMPETITORS)

    return GuardrailPolicy(
        company_name=company_name,
        classifier=classifier,
        fallback_message=fallback_message or GUARDRAIL_FALLBACK_MESSAGE,
    )


__all__ = [
    "BlocklistClassifier",
    "Classification",
    "DEFAULT_FALLBACK_MESSAGE",
    "GuardrailOutcome",
    "GuardrailPolicy",
    "GuardrailResult",
    "ModerationCategory",
    "ModerationClassifier",
    "OpenAIModerationClassifier",
    "PatternRule",
    "create_moderation_guardrail",
]
