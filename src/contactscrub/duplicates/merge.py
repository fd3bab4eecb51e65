"""Field-level merge resolution for duplicate groups.

Three strategies are implemented:
1. **conservative** -- merges only when every internal edge of the group is
   HIGH or EXACT; otherwise recommends manual review and changes nothing.
2. **mostComplete** -- always merges.
3. **interactive** -- proposes the mostComplete resolution and flags every
   scalar field whose members disagree as a conflict for the caller to
   confirm.

Scalar fields take the value of the most complete member that has one
(ties go to the lowest identifier).  List fields are unioned across the
group with duplicate normalised values removed.  Resolution never mutates
its inputs: it returns a :class:`MergeDecision`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from contactscrub.duplicates.normalize import (
    DEFAULT_COUNTRY_DIGIT,
    collapse_whitespace,
    normalize_email,
    normalize_name,
    normalize_phone,
)
from contactscrub.models import (
    LIST_FIELDS,
    SCALAR_FIELDS,
    Confidence,
    ContactRecord,
    DuplicateGroup,
    InstantMessage,
    LabeledValue,
    PostalAddress,
    SocialProfile,
    field_completeness,
    is_empty_value,
)

logger = structlog.get_logger(__name__)

# Given a field name and the two equally complete records holding competing
# values, return the record whose value should win, or None to abstain.
TieBreak = Callable[[str, ContactRecord, ContactRecord], ContactRecord | None]


class MergeStatus(str, Enum):
    MERGED = "merged"
    NEEDS_CONFIRMATION = "needs_confirmation"
    MANUAL_REVIEW = "manual_review"


@dataclass(frozen=True)
class FieldResolution:
    """How one differing field was resolved."""

    field: str
    candidates: tuple[Any, ...]
    chosen: Any
    reason: str


@dataclass(frozen=True)
class MergeDecision:
    """Outcome of resolving one duplicate group.

    ``merged`` is ``None`` when the strategy refused to merge.
    """

    strategy: MergeStrategy
    record_ids: tuple[str, ...]
    status: MergeStatus
    merged: ContactRecord | None
    resolutions: tuple[FieldResolution, ...] = ()
    conflicts: tuple[str, ...] = ()
    message: str = ""

    @property
    def requires_review(self) -> bool:
        return self.status != MergeStatus.MERGED


class MergeStrategy(str, Enum):
    CONSERVATIVE = "conservative"
    MOST_COMPLETE = "mostComplete"
    INTERACTIVE = "interactive"

    @classmethod
    def parse(cls, text: str | MergeStrategy) -> MergeStrategy:
        """Accept ``mostComplete``, ``most-complete`` etc., case-insensitively."""
        if isinstance(text, MergeStrategy):
            return text
        wanted = text.strip().lower().replace("-", "").replace("_", "")
        for strategy in cls:
            if strategy.value.lower() == wanted:
                return strategy
        valid = ", ".join(s.value for s in cls)
        raise ValueError(f"Unknown merge strategy {text!r} (expected one of {valid})")

    def resolve(
        self,
        group: DuplicateGroup,
        records: Mapping[str, ContactRecord] | Iterable[ContactRecord],
        *,
        tiebreak: TieBreak | None = None,
        country_digit: str | None = DEFAULT_COUNTRY_DIGIT,
    ) -> MergeDecision:
        members = _group_members(group, records)
        return _RESOLVERS[self](self, group, members, tiebreak, country_digit)


def resolve(
    group: DuplicateGroup,
    records: Mapping[str, ContactRecord] | Iterable[ContactRecord],
    strategy: MergeStrategy | str = MergeStrategy.CONSERVATIVE,
    *,
    tiebreak: TieBreak | None = None,
    country_digit: str | None = DEFAULT_COUNTRY_DIGIT,
) -> MergeDecision:
    """Resolve *group* under *strategy*.  See :class:`MergeStrategy`."""
    return MergeStrategy.parse(strategy).resolve(
        group, records, tiebreak=tiebreak, country_digit=country_digit
    )


def prefer_lower_dubious_score(scores: Mapping[str, int]) -> TieBreak:
    """Build a tie-break hook preferring the record with the lower dubious score.

    Records missing from *scores*, or scoring equally, make the hook abstain.
    """

    def _tiebreak(field: str, first: ContactRecord, second: ContactRecord) -> ContactRecord | None:
        score_a = scores.get(first.identifier)
        score_b = scores.get(second.identifier)
        if score_a is None or score_b is None or score_a == score_b:
            return None
        return first if score_a < score_b else second

    return _tiebreak


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _group_members(
    group: DuplicateGroup,
    records: Mapping[str, ContactRecord] | Iterable[ContactRecord],
) -> list[ContactRecord]:
    """Group members ranked by completeness (desc) then identifier (asc)."""
    by_id = records if isinstance(records, Mapping) else {r.identifier: r for r in records}
    missing = [rid for rid in group.record_ids if rid not in by_id]
    if missing:
        raise ValueError(f"Group members missing from records: {', '.join(missing)}")
    members = [by_id[rid] for rid in group.record_ids]
    return sorted(members, key=lambda r: (-field_completeness(r), r.identifier))


def _comparable(value: Any) -> Any:
    if isinstance(value, str):
        return collapse_whitespace(value)
    return value


def _resolve_scalar(
    field: str,
    ranked: list[ContactRecord],
    tiebreak: TieBreak | None,
) -> tuple[Any, FieldResolution | None]:
    values = [getattr(member, field) for member in ranked]
    holders = [(m, v) for m, v in zip(ranked, values) if not is_empty_value(v)]
    if not holders:
        return values[0], None

    winner, chosen = holders[0]
    if len(holders) == 1:
        reason = f"only {winner.identifier} has a value"
    else:
        top = field_completeness(winner)
        rivals = [
            (m, v)
            for m, v in holders[1:]
            if field_completeness(m) == top and _comparable(v) != _comparable(chosen)
        ]
        reason = f"most complete record holding a value ({winner.identifier})"
        if rivals:
            reason = f"lowest identifier among equally complete records ({winner.identifier})"
        if rivals and tiebreak is not None:
            # Fold pairwise: the current winner meets each rival in rank order.
            for rival, value in rivals:
                if _comparable(value) == _comparable(chosen):
                    continue
                if tiebreak(field, winner, rival) is rival:
                    winner, chosen = rival, value
                    reason = f"tie-break preferred {winner.identifier}"

    if len({_comparable(v) for v in values}) <= 1:
        return chosen, None

    candidates: list[Any] = []
    for _, value in holders:
        if value not in candidates:
            candidates.append(value)
    return chosen, FieldResolution(field, tuple(candidates), chosen, reason)


def _postal_key(address: PostalAddress) -> tuple[str, ...]:
    return tuple(
        normalize_name(part)
        for part in (address.street, address.city, address.state, address.postal_code, address.country)
    )


def _list_key(field: str, entry: Any, country_digit: str | None) -> Any:
    if field == "emails":
        return normalize_email(entry.value)
    if field == "phones":
        return normalize_phone(entry.value, country_digit)
    if field == "urls":
        return entry.value.strip().lower().rstrip("/")
    if field == "postal_addresses":
        key = _postal_key(entry)
        return key if any(key) else ""
    if field == "social_profiles":
        handle = entry.username.strip().lower() or entry.url.strip().lower()
        return (entry.service.strip().lower(), handle) if handle else ""
    if field == "instant_messages":
        handle = entry.username.strip().lower()
        return (entry.service.strip().lower(), handle) if handle else ""
    raise KeyError(field)


def _resolve_list(
    field: str,
    ranked: list[ContactRecord],
    country_digit: str | None,
) -> tuple[tuple[Any, ...], FieldResolution | None]:
    seen: set[Any] = set()
    union: list[LabeledValue | PostalAddress | SocialProfile | InstantMessage] = []
    member_keys: set[frozenset[Any]] = set()
    every: list[Any] = []
    for member in ranked:
        keys = set()
        for entry in getattr(member, field):
            key = _list_key(field, entry, country_digit)
            if not key:
                continue
            keys.add(key)
            every.append(entry)
            if key not in seen:
                seen.add(key)
                union.append(entry)
        member_keys.add(frozenset(keys))

    merged = tuple(union)
    if len(member_keys) <= 1:
        return merged, None
    dropped = len(every) - len(merged)
    reason = f"union of {len(ranked)} records, {dropped} duplicate value(s) removed"
    return merged, FieldResolution(field, tuple(every), merged, reason)


def _merge_fields(
    ranked: list[ContactRecord],
    tiebreak: TieBreak | None,
    country_digit: str | None,
) -> tuple[ContactRecord, list[FieldResolution]]:
    fields: dict[str, Any] = {}
    resolutions: list[FieldResolution] = []

    for name in SCALAR_FIELDS:
        fields[name], resolution = _resolve_scalar(name, ranked, tiebreak)
        if resolution is not None:
            resolutions.append(resolution)

    for name in LIST_FIELDS:
        fields[name], resolution = _resolve_list(name, ranked, country_digit)
        if resolution is not None:
            resolutions.append(resolution)

    images = [m.has_image for m in ranked]
    fields["has_image"] = any(images)
    if len(set(images)) > 1:
        resolutions.append(
            FieldResolution("has_image", (True, False), True, "kept image from a member that has one")
        )

    merged = ContactRecord(identifier=ranked[0].identifier, **fields)
    return merged, resolutions


def _disagreements(ranked: list[ContactRecord]) -> list[str]:
    """Scalar fields with two or more distinct non-empty values."""
    conflicts = []
    for name in SCALAR_FIELDS:
        values = {
            _comparable(getattr(m, name))
            for m in ranked
            if not is_empty_value(getattr(m, name))
        }
        if len(values) > 1:
            conflicts.append(name)
    return conflicts


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _merge_conservative(
    strategy: MergeStrategy,
    group: DuplicateGroup,
    ranked: list[ContactRecord],
    tiebreak: TieBreak | None,
    country_digit: str | None,
) -> MergeDecision:
    if group.min_confidence < Confidence.HIGH:
        weakest = min(group.edges, key=lambda e: (e.confidence, e.pair))
        message = (
            f"weakest link {weakest.left_id} <-> {weakest.right_id} is "
            f"{weakest.confidence.name}; manual review recommended"
        )
        logger.info("merge_refused", records=list(group.record_ids), reason=message)
        return MergeDecision(
            strategy=strategy,
            record_ids=group.record_ids,
            status=MergeStatus.MANUAL_REVIEW,
            merged=None,
            message=message,
        )
    return _merge_most_complete(strategy, group, ranked, tiebreak, country_digit)


def _merge_most_complete(
    strategy: MergeStrategy,
    group: DuplicateGroup,
    ranked: list[ContactRecord],
    tiebreak: TieBreak | None,
    country_digit: str | None,
) -> MergeDecision:
    merged, resolutions = _merge_fields(ranked, tiebreak, country_digit)
    return MergeDecision(
        strategy=strategy,
        record_ids=group.record_ids,
        status=MergeStatus.MERGED,
        merged=merged,
        resolutions=tuple(resolutions),
        message=f"merged {len(ranked)} records into {merged.identifier}",
    )


def _merge_interactive(
    strategy: MergeStrategy,
    group: DuplicateGroup,
    ranked: list[ContactRecord],
    tiebreak: TieBreak | None,
    country_digit: str | None,
) -> MergeDecision:
    merged, resolutions = _merge_fields(ranked, tiebreak, country_digit)
    conflicts = _disagreements(ranked)
    if not conflicts:
        status = MergeStatus.MERGED
        message = f"merged {len(ranked)} records into {merged.identifier}"
    else:
        status = MergeStatus.NEEDS_CONFIRMATION
        message = f"{len(conflicts)} field(s) need confirmation: {', '.join(conflicts)}"
    return MergeDecision(
        strategy=strategy,
        record_ids=group.record_ids,
        status=status,
        merged=merged,
        resolutions=tuple(resolutions),
        conflicts=tuple(conflicts),
        message=message,
    )


_Resolver = Callable[
    [MergeStrategy, DuplicateGroup, list[ContactRecord], TieBreak | None, str | None],
    MergeDecision,
]

_RESOLVERS: dict[MergeStrategy, _Resolver] = {
    MergeStrategy.CONSERVATIVE: _merge_conservative,
    MergeStrategy.MOST_COMPLETE: _merge_most_complete,
    MergeStrategy.INTERACTIVE: _merge_interactive,
}
