"""Duplicate detection orchestrator.

Runs validation, normalisation, candidate generation, pair scoring,
grouping and merge resolution over one already-materialised batch of
contact records.  Persisting the merged records is the caller's job.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import Executor
from dataclasses import dataclass

import structlog

from contactscrub.config import Settings
from contactscrub.duplicates.clustering import (
    candidate_pairs,
    cluster_results,
    normalize_records,
    score_pairs,
)
from contactscrub.duplicates.merge import MergeDecision, MergeStatus, MergeStrategy, TieBreak
from contactscrub.duplicates.scoring import scoring_policy_from_settings
from contactscrub.duplicates.validation import InvalidRecord, validate_records
from contactscrub.models import Confidence, ContactRecord, DuplicateGroup

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DetectionReport:
    """Everything one detection run produced."""

    total_records: int
    valid_records: int
    invalid: tuple[InvalidRecord, ...]
    pairs_compared: int
    groups: tuple[DuplicateGroup, ...]
    decisions: tuple[MergeDecision, ...]

    @property
    def merged_groups(self) -> int:
        return sum(1 for d in self.decisions if d.status == MergeStatus.MERGED)

    @property
    def review_required(self) -> int:
        """Decisions the caller must look at before applying anything."""
        return sum(1 for d in self.decisions if d.requires_review)

    @property
    def conflicts(self) -> int:
        return sum(
            len(d.conflicts) if d.status == MergeStatus.NEEDS_CONFIRMATION else 1
            for d in self.decisions
            if d.requires_review
        )

    @property
    def resulting_records(self) -> int:
        """Size of the record set once every merged decision is applied."""
        merged = [d for d in self.decisions if d.status == MergeStatus.MERGED]
        absorbed = sum(len(d.record_ids) - 1 for d in merged)
        return self.valid_records - absorbed

    def summary(self) -> str:
        return (
            f"merged {self.merged_groups} groups into {self.resulting_records} records, "
            f"{self.conflicts} conflicts require review"
        )


def find_duplicates(
    records: Iterable[ContactRecord],
    threshold: Confidence | str | None = None,
    *,
    settings: Settings | None = None,
    executor: Executor | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> tuple[list[DuplicateGroup], list[InvalidRecord]]:
    """Detect duplicate groups without resolving them."""
    report = run_duplicate_detection(
        records,
        strategy=None,
        threshold=threshold,
        settings=settings,
        executor=executor,
        should_cancel=should_cancel,
    )
    return list(report.groups), list(report.invalid)


def run_duplicate_detection(
    records: Iterable[ContactRecord],
    *,
    strategy: MergeStrategy | str | None = MergeStrategy.CONSERVATIVE,
    threshold: Confidence | str | None = None,
    settings: Settings | None = None,
    tiebreak: TieBreak | None = None,
    executor: Executor | None = None,
    should_cancel: Callable[[], bool] | None = None,
) -> DetectionReport:
    """Detect duplicate groups in *records* and resolve each one.

    Resolution order:
      1. Reject records with empty or repeated identifiers (reported, not raised).
      2. Normalise the remaining records with the batch's country digit.
      3. Generate candidate pairs (exhaustive or blocked) and score them,
         concurrently when configured.
      4. Group records connected by edges at or above *threshold*.
      5. Resolve every group under *strategy* (skipped when ``None``).

    Raises
    ------
    DetectionCancelled
        When *should_cancel* returns true at a pair-batch boundary.
    """
    settings = settings or Settings()
    threshold = Confidence.parse(settings.default_threshold if threshold is None else threshold)
    records = list(records)

    valid, invalid = validate_records(records)
    keys, country_digit = normalize_records(valid, settings)
    policy = scoring_policy_from_settings(settings)

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
    groups = cluster_results(results, threshold, keys=keys, policy=policy)
    logger.info(
        "duplicate_groups_found",
        records=len(valid),
        invalid=len(invalid),
        pairs=len(pairs),
        groups=len(groups),
        threshold=threshold.name,
    )

    decisions: list[MergeDecision] = []
    if strategy is not None:
        merge_strategy = MergeStrategy.parse(strategy)
        by_id = {r.identifier: r for r in valid}
        for group in groups:
            decisions.append(
                merge_strategy.resolve(
                    group, by_id, tiebreak=tiebreak, country_digit=country_digit
                )
            )

    report = DetectionReport(
        total_records=len(records),
        valid_records=len(valid),
        invalid=tuple(invalid),
        pairs_compared=len(pairs),
        groups=tuple(groups),
        decisions=tuple(decisions),
    )
    if decisions:
        logger.info("duplicate_resolution_complete", summary=report.summary())
    return report
