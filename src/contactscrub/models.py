"""Immutable value types shared by the duplicate detection engine.

Contact records are snapshots: nothing in the engine mutates them.  A merge
produces a *new* ``ContactRecord`` inside a decision value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum


@dataclass(frozen=True)
class LabeledValue:
    """An email, phone number or URL with its address-book label."""

    value: str
    label: str | None = None


@dataclass(frozen=True)
class PostalAddress:
    label: str | None = None
    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


@dataclass(frozen=True)
class SocialProfile:
    service: str = ""
    username: str = ""
    url: str = ""
    label: str | None = None


@dataclass(frozen=True)
class InstantMessage:
    service: str = ""
    username: str = ""
    label: str | None = None


@dataclass(frozen=True)
class Birthday:
    """A possibly partial birthday; any of the parts may be missing."""

    day: int | None = None
    month: int | None = None
    year: int | None = None

    def is_empty(self) -> bool:
        return self.day is None and self.month is None and self.year is None


@dataclass(frozen=True)
class ContactRecord:
    """Snapshot of one address-book contact used as matcher input."""

    identifier: str
    name_prefix: str = ""
    given_name: str = ""
    middle_name: str = ""
    family_name: str = ""
    name_suffix: str = ""
    nickname: str = ""
    emails: tuple[LabeledValue, ...] = ()
    phones: tuple[LabeledValue, ...] = ()
    postal_addresses: tuple[PostalAddress, ...] = ()
    urls: tuple[LabeledValue, ...] = ()
    social_profiles: tuple[SocialProfile, ...] = ()
    instant_messages: tuple[InstantMessage, ...] = ()
    organization: str = ""
    department: str = ""
    job_title: str = ""
    birthday: Birthday | None = None
    note: str = ""
    has_image: bool = False

    @property
    def display_name(self) -> str:
        """Full name in original casing, falling back to the nickname.

        The nickname is used when no given, middle or family name is set.
        """
        core = (self.given_name, self.middle_name, self.family_name)
        if not any(p and p.strip() for p in core):
            return self.nickname.strip()
        parts = [
            self.name_prefix,
            self.given_name,
            self.middle_name,
            self.family_name,
            self.name_suffix,
        ]
        return " ".join(p.strip() for p in parts if p and p.strip())


# Field groups used by completeness counting and the merge resolver.
NAME_FIELDS: tuple[str, ...] = (
    "name_prefix",
    "given_name",
    "middle_name",
    "family_name",
    "name_suffix",
    "nickname",
)

SCALAR_FIELDS: tuple[str, ...] = NAME_FIELDS + (
    "organization",
    "department",
    "job_title",
    "birthday",
    "note",
)

LIST_FIELDS: tuple[str, ...] = (
    "emails",
    "phones",
    "postal_addresses",
    "urls",
    "social_profiles",
    "instant_messages",
)


def is_empty_value(value: object) -> bool:
    """True for ``None``, blank strings, empty birthdays and empty sequences."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, Birthday):
        return value.is_empty()
    if isinstance(value, tuple):
        return len(value) == 0
    return False


def field_completeness(record: ContactRecord) -> int:
    """Count populated fields: one per scalar, one per list entry, plus the image flag."""
    count = sum(1 for name in SCALAR_FIELDS if not is_empty_value(getattr(record, name)))
    count += sum(len(getattr(record, name)) for name in LIST_FIELDS)
    if record.has_image:
        count += 1
    return count


# ---------------------------------------------------------------------------
# Derived comparison types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NormalizedKey:
    """Comparison-ready form of one record, computed once per run."""

    identifier: str
    full_name: str
    has_name: bool
    emails: frozenset[str] = frozenset()
    facebook_emails: frozenset[str] = frozenset()
    phones: frozenset[str] = frozenset()
    phone_suffixes: frozenset[str] = frozenset()
    given_code: str = ""
    family_code: str = ""


class Confidence(IntEnum):
    """Discrete confidence classes, ordered weakest to strongest."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    EXACT = 4

    @classmethod
    def parse(cls, text: str | Confidence) -> Confidence:
        if isinstance(text, Confidence):
            return text
        try:
            return cls[text.strip().upper()]
        except KeyError:
            valid = ", ".join(c.name for c in cls)
            raise ValueError(f"Unknown confidence class {text!r} (expected one of {valid})") from None


@dataclass(frozen=True)
class MatchResult:
    """Tier signals and resulting confidence for one unordered record pair.

    ``left_id`` is always the smaller identifier.
    """

    left_id: str
    right_id: str
    exact_name: bool
    contact_info_overlap: bool
    name_similarity: float
    phonetic_match: bool
    matching_fields: tuple[str, ...] = ()
    score: int = 0
    confidence: Confidence = Confidence.NONE

    @property
    def pair(self) -> tuple[str, str]:
        return (self.left_id, self.right_id)


@dataclass(frozen=True)
class DuplicateGroup:
    """Records transitively linked by at least one sufficiently confident match."""

    record_ids: tuple[str, ...]
    edges: tuple[MatchResult, ...] = field(default=(), repr=False)
    min_confidence: Confidence = Confidence.NONE

    def __len__(self) -> int:
        return len(self.record_ids)
