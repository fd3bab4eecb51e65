"""Tests for merge strategies and field-level resolution."""

from __future__ import annotations

import copy

import pytest

from contactscrub.duplicates.merge import (
    _RESOLVERS,
    MergeStatus,
    MergeStrategy,
    prefer_lower_dubious_score,
    resolve,
)
from contactscrub.models import (
    Birthday,
    Confidence,
    LabeledValue,
    PostalAddress,
    SocialProfile,
)

# =========================================================================
# MergeStrategy
# =========================================================================


class TestMergeStrategy:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("conservative", MergeStrategy.CONSERVATIVE),
            ("CONSERVATIVE", MergeStrategy.CONSERVATIVE),
            ("mostComplete", MergeStrategy.MOST_COMPLETE),
            ("most-complete", MergeStrategy.MOST_COMPLETE),
            ("most_complete", MergeStrategy.MOST_COMPLETE),
            ("interactive", MergeStrategy.INTERACTIVE),
        ],
    )
    def test_parse(self, text, expected):
        assert MergeStrategy.parse(text) is expected

    def test_parse_unknown_raises(self):
        with pytest.raises(ValueError, match="Unknown merge strategy"):
            MergeStrategy.parse("aggressive")

    def test_every_strategy_has_a_resolver(self):
        assert set(_RESOLVERS) == set(MergeStrategy)

    def test_decision_records_strategy(self, make_contact, make_group):
        records = [make_contact("a", "Ann", "Lee"), make_contact("b", "Ann", "Lee")]
        group = make_group(["a", "b"], Confidence.HIGH)
        for strategy in MergeStrategy:
            assert strategy.resolve(group, records).strategy is strategy


# =========================================================================
# Conservative
# =========================================================================


class TestConservative:
    def test_refuses_group_with_weak_edge(self, make_contact, make_group):
        records = [
            make_contact("a", "John", "Doe", emails=["a@x.com"]),
            make_contact("b", "Jon", "Doe", emails=["b@x.com"]),
        ]
        snapshot = copy.deepcopy(records)
        group = make_group(["a", "b"], Confidence.MEDIUM)

        decision = resolve(group, records, MergeStrategy.CONSERVATIVE)

        assert decision.status == MergeStatus.MANUAL_REVIEW
        assert decision.merged is None
        assert decision.resolutions == ()
        assert decision.conflicts == ()
        assert decision.requires_review
        assert "manual review" in decision.message
        assert records == snapshot

    def test_merges_when_all_edges_high(self, make_contact, make_group):
        records = [
            make_contact("a", "John", "Doe", emails=["a@x.com"]),
            make_contact("b", "John", "Doe", emails=["b@x.com"]),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "conservative")
        assert decision.status == MergeStatus.MERGED
        assert decision.merged is not None
        assert not decision.requires_review

    def test_transitive_group_with_none_edge_refused(self, make_contact, make_group):
        records = [make_contact(x, "Ann", "Lee") for x in ("a", "b", "c")]
        group = make_group(["a", "b", "c"], Confidence.EXACT)
        weakened = type(group)(
            record_ids=group.record_ids,
            edges=group.edges,
            min_confidence=Confidence.NONE,
        )
        assert resolve(weakened, records).status == MergeStatus.MANUAL_REVIEW


# =========================================================================
# Most complete
# =========================================================================


class TestMostComplete:
    def test_emails_unioned(self, make_contact, make_group):
        records = [
            make_contact("a", "John", "Doe", emails=["a@x.com"]),
            make_contact("b", "John", "Doe", emails=["b@x.com"]),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.MEDIUM), records, "mostComplete")
        assert decision.status == MergeStatus.MERGED
        assert {e.value for e in decision.merged.emails} == {"a@x.com", "b@x.com"}

    def test_duplicate_normalised_values_removed(self, make_contact, make_group):
        records = [
            make_contact("a", emails=["Ann@X.com"], phones=["+1 555 010 9999"]),
            make_contact("b", emails=["ann@x.com "], phones=["(555) 010-9999", "555 0202"]),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete")
        merged = decision.merged
        assert len(merged.emails) == 1
        assert [p.value for p in merged.phones] == ["(555) 010-9999", "555 0202"]

    def test_other_list_fields_unioned(self, make_contact, make_group):
        home = PostalAddress(label="home", street="1 Main St", city="Springfield")
        records = [
            make_contact(
                "a",
                postal_addresses=(home,),
                urls=(LabeledValue("https://ann.dev/"),),
            ),
            make_contact(
                "b",
                postal_addresses=(PostalAddress(street="1  main st", city="SPRINGFIELD"),),
                urls=(LabeledValue("https://ann.dev"),),
                social_profiles=(SocialProfile(service="GitHub", username="ann"),),
            ),
        ]
        merged = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete").merged
        assert len(merged.postal_addresses) == 1
        assert len(merged.urls) == 1
        assert merged.social_profiles == (SocialProfile(service="GitHub", username="ann"),)

    def test_most_complete_member_wins_scalars(self, make_contact, make_group):
        records = [
            make_contact("a", "Jon", "Doe"),
            make_contact("b", "Jonathan", "Doe", organization="Acme", job_title="CEO"),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.MEDIUM), records, "mostComplete")
        assert decision.merged.identifier == "b"
        assert decision.merged.given_name == "Jonathan"
        assert decision.merged.organization == "Acme"

    def test_empty_value_never_overwrites(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", note="met at PyCon"),
            make_contact("b", "Ann", "Lee", organization="Acme", job_title="CTO"),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete")
        assert decision.merged.identifier == "b"
        assert decision.merged.note == "met at PyCon"

    def test_tie_keeps_lowest_identifier(self, make_contact, make_group):
        records = [
            make_contact("b", "Ann", "Lee", organization="Acme Inc"),
            make_contact("a", "Ann", "Lee", organization="Acme"),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete")
        assert decision.merged.identifier == "a"
        assert decision.merged.organization == "Acme"
        (org,) = [r for r in decision.resolutions if r.field == "organization"]
        assert org.candidates == ("Acme", "Acme Inc")
        assert org.chosen == "Acme"
        assert "lowest identifier" in org.reason

    def test_dubious_score_tiebreak(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", organization="Acme"),
            make_contact("b", "Ann", "Lee", organization="Acme Inc"),
        ]
        hook = prefer_lower_dubious_score({"a": 5, "b": 1})
        decision = resolve(
            make_group(["a", "b"], Confidence.HIGH), records, "mostComplete", tiebreak=hook
        )
        assert decision.merged.organization == "Acme Inc"
        (org,) = [r for r in decision.resolutions if r.field == "organization"]
        assert "tie-break" in org.reason

    def test_tiebreak_reaches_every_tied_member(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", organization="Acme"),
            make_contact("b", "Ann", "Lee", organization="Acme Inc"),
            make_contact("c", "Ann", "Lee", organization="Acme Corp"),
        ]
        hook = prefer_lower_dubious_score({"a": 5, "b": 3, "c": 1})
        decision = resolve(
            make_group(["a", "b", "c"], Confidence.HIGH), records, "mostComplete", tiebreak=hook
        )
        assert decision.merged.organization == "Acme Corp"
        (org,) = [r for r in decision.resolutions if r.field == "organization"]
        assert org.reason == "tie-break preferred c"

    def test_tiebreak_keeps_current_winner_when_abstaining(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", organization="Acme"),
            make_contact("b", "Ann", "Lee", organization="Acme Inc"),
            make_contact("c", "Ann", "Lee", organization="Acme Corp"),
        ]
        hook = prefer_lower_dubious_score({"a": 5, "b": 1})
        decision = resolve(
            make_group(["a", "b", "c"], Confidence.HIGH), records, "mostComplete", tiebreak=hook
        )
        assert decision.merged.organization == "Acme Inc"

    def test_tiebreak_not_consulted_without_tie(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", organization="Acme", job_title="CTO"),
            make_contact("b", "Ann", "Lee", organization="Acme Inc"),
        ]
        calls = []

        def hook(field, first, second):
            calls.append(field)
            return second

        decision = resolve(
            make_group(["a", "b"], Confidence.HIGH), records, "mostComplete", tiebreak=hook
        )
        assert decision.merged.organization == "Acme"
        assert calls == []

    def test_resolutions_only_for_differing_fields(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", birthday=Birthday(day=3, month=4)),
            make_contact("b", "Ann", "Lee"),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete")
        fields = [r.field for r in decision.resolutions]
        assert fields == ["birthday"]
        assert decision.merged.birthday == Birthday(day=3, month=4)

    def test_has_image_kept(self, make_contact, make_group):
        records = [make_contact("a", "Ann", "Lee"), make_contact("b", "Ann", "Lee", has_image=True)]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete")
        assert decision.merged.has_image

    def test_accepts_mapping(self, make_contact, make_group):
        records = {r.identifier: r for r in [make_contact("a", "Ann"), make_contact("b", "Ann")]}
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "mostComplete")
        assert decision.record_ids == ("a", "b")

    def test_missing_member_raises(self, make_contact, make_group):
        with pytest.raises(ValueError, match="missing"):
            resolve(make_group(["a", "z"], Confidence.HIGH), [make_contact("a")], "mostComplete")


# =========================================================================
# Interactive
# =========================================================================


class TestInteractive:
    def test_disagreements_flagged(self, make_contact, make_group):
        records = [
            make_contact("a", "Jon", "Doe", organization="Acme"),
            make_contact("b", "Jonathan", "Doe", organization="Acme", job_title="CEO"),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.LOW), records, "interactive")
        assert decision.status == MergeStatus.NEEDS_CONFIRMATION
        assert decision.conflicts == ("given_name",)
        assert decision.merged.given_name == "Jonathan"
        assert decision.requires_review

    def test_one_sided_values_are_not_conflicts(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann", "Lee", emails=["a@x.com"]),
            make_contact("b", "Ann", "Lee", job_title="CTO", emails=["b@x.com"]),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "interactive")
        assert decision.status == MergeStatus.MERGED
        assert decision.conflicts == ()
        assert len(decision.merged.emails) == 2

    def test_whitespace_differences_are_not_conflicts(self, make_contact, make_group):
        records = [
            make_contact("a", "Ann ", "Lee"),
            make_contact("b", "Ann", " Lee"),
        ]
        decision = resolve(make_group(["a", "b"], Confidence.HIGH), records, "interactive")
        assert decision.conflicts == ()
