"""Pairwise matching of normalised contact keys across four signal tiers.

Tiers:
  1. Exact name -- identical non-empty comparison names.
  2. Contact-info overlap -- a shared email, phone, or 7-digit phone suffix.
  3. Fuzzy name -- Levenshtein similarity ratio of the comparison names.
  4. Phonetic -- both given-name and family-name Soundex codes agree.

Nameless records can only ever match on tier 2.
"""

from __future__ import annotations

from dataclasses import replace

from rapidfuzz.distance import Levenshtein

from contactscrub.duplicates.phonetic import codes_match
from contactscrub.duplicates.scoring import DEFAULT_POLICY, ScoringPolicy, score
from contactscrub.models import MatchResult, NormalizedKey


def name_similarity(name_a: str, name_b: str) -> float:
    """``1 - distance / max(len)`` clamped to [0, 1]; 0.0 if either side is empty."""
    if not name_a or not name_b:
        return 0.0
    distance = Levenshtein.distance(name_a, name_b)
    ratio = 1.0 - distance / max(len(name_a), len(name_b))
    return min(1.0, max(0.0, ratio))


def contact_overlap(a: NormalizedKey, b: NormalizedKey) -> tuple[bool, bool]:
    """Return ``(shared_email, shared_phone)`` for two keys."""
    shared_email = not a.emails.isdisjoint(b.emails)
    shared_phone = (
        not a.phones.isdisjoint(b.phones)
        or not a.phone_suffixes.isdisjoint(b.phone_suffixes)
    )
    return shared_email, shared_phone


def match(
    a: NormalizedKey,
    b: NormalizedKey,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> MatchResult:
    """Compare two keys and return the scored result.

    The result is symmetric: ``match(a, b) == match(b, a)``.

    Raises
    ------
    ValueError
        If both keys carry the same identifier.
    """
    if a.identifier == b.identifier:
        raise ValueError(f"Refusing to match record {a.identifier!r} with itself")
    if b.identifier < a.identifier:
        a, b = b, a

    shared_email, shared_phone = contact_overlap(a, b)
    named = a.has_name and b.has_name

    exact_name = named and bool(a.full_name) and a.full_name == b.full_name
    similarity = name_similarity(a.full_name, b.full_name) if named else 0.0
    phonetic = (
        named
        and codes_match(a.family_code, b.family_code)
        and codes_match(a.given_code, b.given_code)
    )

    fields: list[str] = []
    if exact_name:
        fields.append("name")
    if shared_email:
        fields.append("email")
    if shared_phone:
        fields.append("phone")
    if phonetic:
        fields.append("phonetic")

    result = MatchResult(
        left_id=a.identifier,
        right_id=b.identifier,
        exact_name=exact_name,
        contact_info_overlap=shared_email or shared_phone,
        name_similarity=similarity,
        phonetic_match=phonetic,
        matching_fields=tuple(fields),
    )
    points, confidence = score(result, policy)
    return replace(result, score=points, confidence=confidence)
