"""Duplicate detection and merge engine for contact records."""

from __future__ import annotations

from contactscrub.duplicates.clustering import (
    DetectionCancelled,
    build_groups,
    candidate_pairs,
    cluster_results,
    normalize_records,
    score_pairs,
)
from contactscrub.duplicates.engine import (
    DetectionReport,
    find_duplicates,
    run_duplicate_detection,
)
from contactscrub.duplicates.matcher import match, name_similarity
from contactscrub.duplicates.merge import (
    FieldResolution,
    MergeDecision,
    MergeStatus,
    MergeStrategy,
    prefer_lower_dubious_score,
    resolve,
)
from contactscrub.duplicates.normalize import (
    dominant_country_digit,
    normalize,
    normalize_email,
    normalize_name,
    normalize_phone,
)
from contactscrub.duplicates.phonetic import EMPTY_CODE, phonetic_code
from contactscrub.duplicates.scoring import DEFAULT_POLICY, ScoringPolicy, score
from contactscrub.duplicates.validation import (
    InvalidRecord,
    compute_detection_metrics,
    generate_validation_report,
    validate_records,
)

__all__ = [
    "DEFAULT_POLICY",
    "DetectionCancelled",
    "DetectionReport",
    "EMPTY_CODE",
    "FieldResolution",
    "InvalidRecord",
    "MergeDecision",
    "MergeStatus",
    "MergeStrategy",
    "ScoringPolicy",
    "build_groups",
    "candidate_pairs",
    "cluster_results",
    "compute_detection_metrics",
    "dominant_country_digit",
    "find_duplicates",
    "generate_validation_report",
    "match",
    "name_similarity",
    "normalize",
    "normalize_email",
    "normalize_name",
    "normalize_phone",
    "normalize_records",
    "phonetic_code",
    "prefer_lower_dubious_score",
    "resolve",
    "run_duplicate_detection",
    "score",
    "score_pairs",
    "validate_records",
]
