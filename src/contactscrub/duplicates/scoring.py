"""Confidence aggregation over matcher tier signals.

Tiers are not independent evidence of the same fact, so they are combined
by an ordered rule table rather than summed: the first rule whose
condition holds decides both the score and the class.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from contactscrub.config import Settings
from contactscrub.models import Confidence, MatchResult


@dataclass(frozen=True)
class ScoringPolicy:
    """Scores per rule plus the fuzzy-name threshold."""

    fuzzy_threshold: float = 0.85
    exact_name_and_contact: int = 100
    contact_info: int = 85
    exact_name: int = 75
    fuzzy_phonetic: int = 65
    fuzzy: int = 50
    phonetic: int = 35


DEFAULT_POLICY = ScoringPolicy()


@dataclass(frozen=True)
class ScoreRule:
    name: str
    condition: Callable[[MatchResult, ScoringPolicy], bool]
    score: Callable[[ScoringPolicy], int]
    confidence: Confidence


def _fuzzy(result: MatchResult, policy: ScoringPolicy) -> bool:
    return result.name_similarity >= policy.fuzzy_threshold


# Order is significant.  Reordering changes the class of ambiguous pairs.
RULES: tuple[ScoreRule, ...] = (
    ScoreRule(
        "exact_name_and_contact",
        lambda r, p: r.exact_name and r.contact_info_overlap,
        lambda p: p.exact_name_and_contact,
        Confidence.EXACT,
    ),
    ScoreRule(
        "contact_info",
        lambda r, p: r.contact_info_overlap,
        lambda p: p.contact_info,
        Confidence.HIGH,
    ),
    ScoreRule(
        "exact_name",
        lambda r, p: r.exact_name,
        lambda p: p.exact_name,
        Confidence.HIGH,
    ),
    ScoreRule(
        "fuzzy_phonetic",
        lambda r, p: _fuzzy(r, p) and r.phonetic_match,
        lambda p: p.fuzzy_phonetic,
        Confidence.MEDIUM,
    ),
    ScoreRule(
        "fuzzy",
        _fuzzy,
        lambda p: p.fuzzy,
        Confidence.MEDIUM,
    ),
    ScoreRule(
        "phonetic",
        lambda r, p: r.phonetic_match,
        lambda p: p.phonetic,
        Confidence.LOW,
    ),
)


def score(
    result: MatchResult,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> tuple[int, Confidence]:
    """Return ``(score, confidence)`` from the first matching rule, else ``(0, NONE)``."""
    for rule in RULES:
        if rule.condition(result, policy):
            return rule.score(policy), rule.confidence
    return 0, Confidence.NONE


def scoring_policy_from_settings(settings: Settings) -> ScoringPolicy:
    return ScoringPolicy(
        fuzzy_threshold=settings.fuzzy_name_threshold,
        exact_name_and_contact=settings.score_exact_name_and_contact,
        contact_info=settings.score_contact_info,
        exact_name=settings.score_exact_name,
        fuzzy_phonetic=settings.score_fuzzy_phonetic,
        fuzzy=settings.score_fuzzy,
        phonetic=settings.score_phonetic,
    )
