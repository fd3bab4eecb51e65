"""Input validation and precision / recall measurement for duplicate detection.

Invalid input records are collected and reported rather than raised, so a
single bad record never stops the rest of a batch.  The metrics half
compares detected groups against labeled ground-truth pairs.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog

from contactscrub.models import ContactRecord, DuplicateGroup

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InvalidRecord:
    """A record rejected before matching, with its input position."""

    index: int
    identifier: str
    reason: str


def validate_records(
    records: Iterable[ContactRecord],
) -> tuple[list[ContactRecord], list[InvalidRecord]]:
    """Split *records* into ``(valid, invalid)``.

    Rejected:
      - records whose identifier is empty or whitespace-only;
      - records repeating an identifier already seen in this batch (the
        first occurrence is kept).
    """
    valid: list[ContactRecord] = []
    invalid: list[InvalidRecord] = []
    seen: set[str] = set()

    for index, record in enumerate(records):
        identifier = record.identifier or ""
        if not identifier.strip():
            invalid.append(InvalidRecord(index, identifier, "empty identifier"))
        elif identifier in seen:
            invalid.append(InvalidRecord(index, identifier, "duplicate identifier"))
        else:
            seen.add(identifier)
            valid.append(record)

    for bad in invalid:
        logger.warning(
            "invalid_contact_record",
            index=bad.index,
            identifier=bad.identifier,
            reason=bad.reason,
        )
    return valid, invalid


# ---------------------------------------------------------------------------
# Detection quality
# ---------------------------------------------------------------------------

def compute_detection_metrics(
    groups: Sequence[DuplicateGroup],
    ground_truth: list[dict],
) -> dict[str, float]:
    """Compute pairwise precision, recall, and F1 for detected groups.

    Parameters
    ----------
    groups:
        Duplicate groups produced by the cluster builder.
    ground_truth:
        List of dicts each containing:
          - ``record_a``: identifier of the first record
          - ``record_b``: identifier of the second record
          - ``same_person``: bool -- whether both records describe the
            same real-world person.

    Two records are predicted to be the same person when they land in the
    same group.

    Returns
    -------
    dict
        ``{"precision": float, "recall": float, "f1": float,
          "true_positives": int, "false_positives": int,
          "false_negatives": int, "total_pairs": int}``
    """
    group_of: dict[str, int] = {}
    for position, group in enumerate(groups):
        for record_id in group.record_ids:
            group_of[record_id] = position

    # (predicted same, labeled same) -> count; true negatives are ignored.
    outcomes: Counter[tuple[bool, bool]] = Counter()
    for pair in ground_truth:
        position = group_of.get(pair["record_a"])
        predicted = position is not None and position == group_of.get(pair["record_b"])
        outcomes[(predicted, bool(pair["same_person"]))] += 1

    tp = outcomes[(True, True)]
    fp = outcomes[(True, False)]
    fn = outcomes[(False, True)]
    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)

    return {
        "precision": precision,
        "recall": recall,
        "f1": _ratio(2 * precision * recall, precision + recall),
        "true_positives": tp,
        "false_positives": fp,
        "false_negatives": fn,
        "total_pairs": len(ground_truth),
    }


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def generate_validation_report(metrics: dict[str, float]) -> str:
    """Format detection metrics into a human-readable report."""
    lines = [
        "Duplicate Detection Validation Report",
        "=" * 40,
        "",
        f"Total pairs evaluated:  {metrics.get('total_pairs', 0):.0f}",
        f"True positives:         {metrics.get('true_positives', 0):.0f}",
        f"False positives:        {metrics.get('false_positives', 0):.0f}",
        f"False negatives:        {metrics.get('false_negatives', 0):.0f}",
        "",
        f"Precision:  {metrics.get('precision', 0.0):.4f}",
        f"Recall:     {metrics.get('recall', 0.0):.4f}",
        f"F1 Score:   {metrics.get('f1', 0.0):.4f}",
    ]

    precision = metrics.get("precision", 0.0)
    if precision >= 0.98:
        lines.append("\nAssessment: SAFE -- automatic merging is low risk")
    elif precision >= 0.90:
        lines.append("\nAssessment: CAUTIOUS -- prefer the conservative strategy")
    else:
        lines.append("\nAssessment: RISKY -- review groups before merging")

    return "\n".join(lines)
