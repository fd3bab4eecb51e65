"""Candidate generation, pair scoring and transitive grouping.

Small inputs are compared exhaustively.  Larger inputs are blocked: only
records that share a cheap key (an email, an email domain, a phone or phone
suffix, the comparison name, or a phonetic code) are compared.

Pair scoring is pure and may run on a worker pool; results are collected in
submission order.  Grouping is a single-threaded union-find over the
collected edges, so the output is identical regardless of worker timing.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from itertools import combinations

import structlog

from contactscrub.config import Settings
from contactscrub.duplicates.matcher import match
from contactscrub.duplicates.normalize import dominant_country_digit, email_domain, normalize
from contactscrub.duplicates.scoring import (
    DEFAULT_POLICY,
    ScoringPolicy,
    scoring_policy_from_settings,
)
from contactscrub.models import (
    Confidence,
    ContactRecord,
    DuplicateGroup,
    MatchResult,
    NormalizedKey,
)

logger = structlog.get_logger(__name__)

KeyPair = tuple[NormalizedKey, NormalizedKey]


class DetectionCancelled(Exception):
    """Raised at a pair-batch boundary when the caller asked to stop."""


# ---------------------------------------------------------------------------
# Normalisation of a whole batch
# ---------------------------------------------------------------------------

def normalize_records(
    records: Sequence[ContactRecord],
    settings: Settings | None = None,
) -> tuple[list[NormalizedKey], str]:
    """Normalise *records* with the batch's dominant country digit.

    Returns the keys (in input order) and the country digit used.
    """
    settings = settings or Settings()
    country_digit = dominant_country_digit(records, default=settings.default_country_digit)
    keys = [
        normalize(r, country_digit=country_digit, suffix_length=settings.phone_suffix_length)
        for r in records
    ]
    return keys, country_digit


# ---------------------------------------------------------------------------
# Candidate pairs
# ---------------------------------------------------------------------------

def blocking_keys(key: NormalizedKey) -> set[str]:
    """Cheap keys under which *key* is filed for blocked comparison."""
    keys: set[str] = set()
    if key.full_name:
        keys.add(f"name:{key.full_name}")
    for email in key.emails:
        keys.add(f"email:{email}")
        domain = email_domain(email)
        if domain:
            keys.add(f"domain:{domain}")
    keys.update(f"phone:{p}" for p in key.phones)
    keys.update(f"suffix:{s}" for s in key.phone_suffixes)
    if key.family_code:
        keys.add(f"family:{key.family_code}")
    if key.given_code:
        keys.add(f"given:{key.given_code}")
    return keys


def candidate_pairs(
    keys: Sequence[NormalizedKey],
    *,
    full_comparison_limit: int = 200,
    max_block_size: int = 500,
) -> list[tuple[str, str]]:
    """Return sorted ``(smaller_id, larger_id)`` pairs to compare.

    Identity pairs are never produced.  Blocks larger than *max_block_size*
    are skipped as non-discriminating.
    """
    ids = sorted(k.identifier for k in keys)
    if len(ids) <= full_comparison_limit:
        pairs = list(combinations(ids, 2))
        logger.debug("candidate_pairs_generated", mode="full", records=len(ids), pairs=len(pairs))
        return pairs

    blocks: dict[str, list[str]] = defaultdict(list)
    for key in keys:
        for block in blocking_keys(key):
            blocks[block].append(key.identifier)

    found: set[tuple[str, str]] = set()
    skipped = 0
    for block, members in blocks.items():
        if len(members) < 2:
            continue
        if len(members) > max_block_size:
            skipped += 1
            logger.debug("oversized_block_skipped", block=block, size=len(members))
            continue
        found.update(combinations(sorted(members), 2))

    pairs = sorted(found)
    logger.info(
        "candidate_pairs_generated",
        mode="blocked",
        records=len(ids),
        blocks=len(blocks),
        skipped_blocks=skipped,
        pairs=len(pairs),
    )
    return pairs


# ---------------------------------------------------------------------------
# Pair scoring
# ---------------------------------------------------------------------------

def _score_batch(batch: Sequence[KeyPair], policy: ScoringPolicy) -> list[MatchResult]:
    return [match(a, b, policy) for a, b in batch]


def _check_cancel(should_cancel: Callable[[], bool] | None) -> None:
    if should_cancel is not None and should_cancel():
        raise DetectionCancelled("Duplicate detection cancelled between pair batches")


def _collect(
    executor: Executor,
    batches: list[list[KeyPair]],
    policy: ScoringPolicy,
    should_cancel: Callable[[], bool] | None,
) -> list[MatchResult]:
    futures = [executor.submit(_score_batch, batch, policy) for batch in batches]
    results: list[MatchResult] = []
    try:
        for future in futures:
            _check_cancel(should_cancel)
            results.extend(future.result())
    except DetectionCancelled:
        for future in futures:
            future.cancel()
        raise
    return results


def score_pairs(
    keys: Sequence[NormalizedKey],
    pairs: Sequence[tuple[str, str]],
    *,
    policy: ScoringPolicy = DEFAULT_POLICY,
    batch_size: int = 2000,
    max_workers: int = 1,
    executor: Executor | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> list[MatchResult]:
    """Score every pair, in batches, returning results in *pairs* order.

    With ``max_workers > 1`` (or an explicit *executor*) batches are scored
    concurrently.  *should_cancel* is polled before each batch is consumed.
    """
    by_id = {k.identifier: k for k in keys}
    batch_size = max(1, batch_size)
    batches = [
        [(by_id[a], by_id[b]) for a, b in pairs[i : i + batch_size]]
        for i in range(0, len(pairs), batch_size)
    ]

    if executor is not None:
        return _collect(executor, batches, policy, should_cancel)

    if max_workers > 1 and len(batches) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return _collect(pool, batches, policy, should_cancel)

    results: list[MatchResult] = []
    for batch in batches:
        _check_cancel(should_cancel)
        results.extend(_score_batch(batch, policy))
    return results


# ---------------------------------------------------------------------------
# Union-find grouping
# ---------------------------------------------------------------------------

class _UnionFind:
    """Union-find with path compression; the smaller identifier becomes root."""

    def __init__(self) -> None:
        self.parent: dict[str, str] = {}

    def find(self, x: str) -> str:
        self.parent.setdefault(x, x)
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        if root_b < root_a:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a

    def components(self) -> dict[str, list[str]]:
        members: dict[str, list[str]] = defaultdict(list)
        for node in sorted(self.parent):
            members[self.find(node)].append(node)
        return dict(members)


def cluster_results(
    results: Iterable[MatchResult],
    threshold: Confidence = Confidence.MEDIUM,
    *,
    keys: Sequence[NormalizedKey] | None = None,
    policy: ScoringPolicy = DEFAULT_POLICY,
) -> list[DuplicateGroup]:
    """Group records connected by edges at or above *threshold*.

    Each group carries the edge of every member pair (including
    sub-threshold ones) and the weakest class among them.  When *keys* is
    given, member pairs missing from *results* (never blocked together)
    are scored here so that a group's edges do not depend on blocking.
    Groups are ordered by their sorted member identifiers.
    """
    threshold = Confidence.parse(threshold)
    if threshold == Confidence.NONE:
        raise ValueError("Grouping threshold must be LOW or stronger")

    by_pair = {result.pair: result for result in results}
    forest = _UnionFind()
    for result in by_pair.values():
        if result.confidence >= threshold:
            forest.union(result.left_id, result.right_id)

    by_id = {k.identifier: k for k in keys} if keys is not None else None
    completed = 0
    groups = []
    for members in forest.components().values():
        internal = []
        for pair in combinations(members, 2):
            edge = by_pair.get(pair)
            if edge is None and by_id is not None:
                edge = match(by_id[pair[0]], by_id[pair[1]], policy)
                completed += 1
            if edge is not None:
                internal.append(edge)
        groups.append(
            DuplicateGroup(
                record_ids=tuple(members),
                edges=tuple(internal),
                min_confidence=min(e.confidence for e in internal),
            )
        )

    if completed:
        logger.debug("group_edges_completed", pairs=completed)
    return sorted(groups, key=lambda g: g.record_ids)


def build_groups(
    records: Sequence[ContactRecord],
    threshold: Confidence | str = Confidence.MEDIUM,
    *,
    settings: Settings | None = None,
    policy: ScoringPolicy | None = None,
    executor: Executor | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> list[DuplicateGroup]:
    """Normalise, compare and group *records* in one call.

    *records* must already carry unique, non-empty identifiers (see
    :func:`contactscrub.duplicates.validation.validate_records`).
    """
    settings = settings or Settings()
    policy = policy or scoring_policy_from_settings(settings)
    keys, _ = normalize_records(records, settings)
    pairs = candidate_pairs(
        keys,
        full_comparison_limit=settings.full_comparison_limit,
        max_block_size=settings.max_block_size,
    )
    results = score_pairs(
        keys,
        pairs,
        policy=policy,
        batch_size=settings.pair_batch_size,
        max_workers=settings.max_workers,
        executor=executor,
        should_cancel=should_cancel,
    )
    groups = cluster_results(results, Confidence.parse(threshold), keys=keys, policy=policy)
    logger.info("groups_built", records=len(keys), pairs=len(pairs), groups=len(groups))
    return groups
