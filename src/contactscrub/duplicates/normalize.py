"""Canonicalisation of raw contact fields into comparable keys.

Provides name, email and phone normalisation plus ``normalize`` which
derives the cached :class:`~contactscrub.models.NormalizedKey` for a
record.  Every function here is total: blank or missing values produce
empty keys, never errors.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable

from unidecode import unidecode

from contactscrub.duplicates.phonetic import phonetic_code
from contactscrub.models import ContactRecord, NormalizedKey

FACEBOOK_DOMAIN = "facebook.com"
DEFAULT_COUNTRY_DIGIT = "1"
DEFAULT_SUFFIX_LENGTH = 7

_WHITESPACE = re.compile(r"\s+")
_NON_DIGIT = re.compile(r"\D")


# ---------------------------------------------------------------------------
# Field normalisers
# ---------------------------------------------------------------------------

def collapse_whitespace(text: str) -> str:
    """Trim and collapse internal whitespace, keeping original casing."""
    return _WHITESPACE.sub(" ", text or "").strip()


def normalize_name(name: str) -> str:
    """Normalise a person's name for comparison.

    Steps:
      1. Transliterate Unicode to ASCII (e.g. é -> e).
      2. Lowercase.
      3. Collapse whitespace and strip leading/trailing spaces.
    """
    text = unidecode(name or "")
    text = text.lower()
    return collapse_whitespace(text)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_facebook_email(email: str) -> bool:
    """True when the address's domain is exactly ``facebook.com`` (any case)."""
    _, at, domain = normalize_email(email).rpartition("@")
    return bool(at) and domain == FACEBOOK_DOMAIN


def email_domain(email: str) -> str:
    _, at, domain = normalize_email(email).rpartition("@")
    return domain if at else ""


def phone_digits(phone: str) -> str:
    return _NON_DIGIT.sub("", phone or "")


def normalize_phone(phone: str, country_digit: str | None = DEFAULT_COUNTRY_DIGIT) -> str:
    """Strip non-digits and drop the batch country digit from 11-digit numbers.

    ``+1 (555) 010-9999`` and ``555.010.9999`` both normalise to
    ``5550109999`` when *country_digit* is ``"1"``.
    """
    digits = phone_digits(phone)
    if country_digit and len(digits) == 11 and digits.startswith(country_digit):
        return digits[1:]
    return digits


def phone_suffix(digits: str, length: int = DEFAULT_SUFFIX_LENGTH) -> str:
    """Last *length* digits, or ``""`` when the number is shorter than that."""
    if len(digits) < length:
        return ""
    return digits[-length:]


def dominant_country_digit(
    records: Iterable[ContactRecord],
    default: str = DEFAULT_COUNTRY_DIGIT,
) -> str:
    """Most common leading digit among the batch's 11-digit phone numbers.

    Ties go to the smaller digit.  With no 11-digit numbers at all the
    *default* is returned.
    """
    counts: Counter[str] = Counter()
    for record in records:
        for phone in record.phones:
            digits = phone_digits(phone.value)
            if len(digits) == 11:
                counts[digits[0]] += 1
    if not counts:
        return default
    return min(counts, key=lambda digit: (-counts[digit], digit))


# ---------------------------------------------------------------------------
# Record-level key
# ---------------------------------------------------------------------------

def comparison_name(record: ContactRecord) -> str:
    """Lower-cased, transliterated full name; ``""`` for nameless records.

    A record counts as named when it has a given name, family name or
    nickname.  The nickname stands in only when no formal component is set.
    """
    if not has_name(record):
        return ""
    return normalize_name(record.display_name)


def has_name(record: ContactRecord) -> bool:
    return any(
        collapse_whitespace(part)
        for part in (record.given_name, record.family_name, record.nickname)
    )


def normalize(
    record: ContactRecord,
    *,
    country_digit: str | None = DEFAULT_COUNTRY_DIGIT,
    suffix_length: int = DEFAULT_SUFFIX_LENGTH,
) -> NormalizedKey:
    """Derive the comparison key for *record*."""
    emails = frozenset(filter(None, (normalize_email(e.value) for e in record.emails)))
    phones = frozenset(
        filter(None, (normalize_phone(p.value, country_digit) for p in record.phones))
    )
    suffixes = frozenset(filter(None, (phone_suffix(p, suffix_length) for p in phones)))

    named = has_name(record)
    return NormalizedKey(
        identifier=record.identifier,
        full_name=comparison_name(record),
        has_name=named,
        emails=emails,
        facebook_emails=frozenset(e for e in emails if is_facebook_email(e)),
        phones=phones,
        phone_suffixes=suffixes,
        given_code=phonetic_code(record.given_name) if named else "",
        family_code=phonetic_code(record.family_name) if named else "",
    )
