"""Shared fixtures for duplicate detection tests."""

from __future__ import annotations

from collections.abc import Iterable
from itertools import combinations

import pytest

from contactscrub.models import (
    Confidence,
    ContactRecord,
    DuplicateGroup,
    LabeledValue,
    MatchResult,
)


def build_contact(
    identifier: str,
    given: str = "",
    family: str = "",
    emails: Iterable[str] = (),
    phones: Iterable[str] = (),
    **fields,
) -> ContactRecord:
    """Build a ContactRecord with labeled emails / phones from plain strings."""
    return ContactRecord(
        identifier=identifier,
        given_name=given,
        family_name=family,
        emails=tuple(LabeledValue(e, "home") for e in emails),
        phones=tuple(LabeledValue(p, "mobile") for p in phones),
        **fields,
    )


def build_group(record_ids: Iterable[str], confidence: Confidence) -> DuplicateGroup:
    """A group whose every internal edge has *confidence*."""
    ids = tuple(sorted(record_ids))
    edges = tuple(
        MatchResult(
            left_id=a,
            right_id=b,
            exact_name=False,
            contact_info_overlap=True,
            name_similarity=0.0,
            phonetic_match=False,
            score=85,
            confidence=confidence,
        )
        for a, b in combinations(ids, 2)
    )
    return DuplicateGroup(record_ids=ids, edges=edges, min_confidence=confidence)


@pytest.fixture()
def make_contact():
    return build_contact


@pytest.fixture()
def make_group():
    return build_group


@pytest.fixture()
def sample_contacts() -> list[ContactRecord]:
    """Eight contacts forming two duplicate clusters plus unrelated singletons.

    - c01/c02: same name and email (EXACT)
    - c03/c04: different names, same phone in different formats (HIGH)
    - c05/c06/c07/c08: unrelated people
    """
    return [
        build_contact("c01", "John", "Doe", emails=["john.doe@example.com"]),
        build_contact("c02", "JOHN", "DOE", emails=["John.Doe@Example.com"], organization="Acme"),
        build_contact("c03", "Maria", "Garcia", phones=["+1 (415) 555-0101"]),
        build_contact("c04", "M.", "Garcia-Lopez", phones=["415.555.0101"], job_title="CTO"),
        build_contact("c05", "Wei", "Zhang", emails=["wei@zhang.cn"]),
        build_contact("c06", "Priya", "Patel", phones=["+44 20 7946 0958"]),
        build_contact("c07", "Olu", "Adeyemi", emails=["olu@adeyemi.ng"]),
        build_contact("c08", "Sven", "Lindqvist", emails=["sven@lindqvist.se"]),
    ]
