"""Tests for the rule matcher."""

import pytest

from eventfabric.matcher import matches, resolve_field
from eventfabric.models import Event, EventPattern, Predicate


def event(source: str, detail_type: str = "test", detail: dict | None = None) -> Event:
    return Event.create(source=source, detail_type=detail_type, detail=detail or {})


class TestExactListMatch:
    """Tests for exact source lists."""

    @pytest.mark.parametrize("source", ["custom.stripe.test", "custom.other"])
    def test_listed_sources_match(self, source):
        pattern = EventPattern.sources("custom.stripe.test", "custom.other")
        assert matches(event(source), pattern)

    @pytest.mark.parametrize(
        "source",
        [
            "custom.stripe.test2",
            "custom.stripe",
            "CUSTOM.STRIPE.TEST",
            " custom.stripe.test",
            "unrelated.thing",
        ],
    )
    def test_other_sources_do_not_match(self, source):
        pattern = EventPattern.sources("custom.stripe.test")
        assert not matches(event(source), pattern)


class TestPrefixMatch:
    """Tests for source prefixes."""

    @pytest.mark.parametrize(
        "source",
        [
            "aws.partner/stripe.com",
            "aws.partner/stripe.com/charge.created",
            "aws.partner/stripe.com/ed_test_61/payment_intent.succeeded",
        ],
    )
    def test_sources_with_prefix_match(self, source):
        pattern = EventPattern.source_prefix("aws.partner/stripe.com")
        assert matches(event(source), pattern)

    @pytest.mark.parametrize(
        "source",
        [
            "aws.partner/stripe.co",
            "aws.partner/github.com/push",
            "x.aws.partner/stripe.com",
            "custom.stripe.test",
        ],
    )
    def test_sources_without_prefix_do_not_match(self, source):
        pattern = EventPattern.source_prefix("aws.partner/stripe.com")
        assert not matches(event(source), pattern)

    def test_empty_prefix_matches_everything(self):
        pattern = EventPattern.source_prefix("")
        assert matches(event("anything"), pattern)


class TestCombinedPatterns:
    """AND across fields, OR within a field."""

    def test_or_within_field(self):
        pattern = EventPattern.from_dict(
            {"source": ["custom.stripe.test", {"prefix": "aws.partner/stripe.com"}]}
        )
        assert matches(event("custom.stripe.test"), pattern)
        assert matches(event("aws.partner/stripe.com/charge.created"), pattern)
        assert not matches(event("custom.other"), pattern)

    def test_and_across_fields(self):
        pattern = EventPattern.from_dict(
            {
                "source": [{"prefix": "aws.partner/stripe.com"}],
                "detail-type": ["charge.created", "charge.succeeded"],
            }
        )
        assert matches(
            event("aws.partner/stripe.com/x", detail_type="charge.created"), pattern
        )
        assert not matches(
            event("aws.partner/stripe.com/x", detail_type="invoice.paid"), pattern
        )
        assert not matches(event("custom.stripe.test", detail_type="charge.created"), pattern)

    def test_detail_path(self):
        pattern = EventPattern.from_dict({"detail.data.object.currency": ["usd"]})
        usd = event("s", detail={"data": {"object": {"currency": "usd"}}})
        eur = event("s", detail={"data": {"object": {"currency": "eur"}}})
        assert matches(usd, pattern)
        assert not matches(eur, pattern)

    def test_missing_field_does_not_match(self):
        pattern = EventPattern.from_dict({"detail.type": ["charge.created"]})
        assert not matches(event("s", detail={}), pattern)
        assert not matches(event("s", detail={"type": {"nested": "x"}}), pattern)

    def test_non_string_value_does_not_match(self):
        pattern = EventPattern.from_dict({"detail.id": ["1"]})
        assert not matches(event("s", detail={"id": 1}), pattern)

    def test_unknown_field_does_not_match(self):
        pattern = EventPattern({"region": (Predicate.exact("us-east-1"),)})
        assert not matches(event("s"), pattern)


class TestResolveField:
    """Tests for field lookup."""

    def test_resolves_top_level_fields(self):
        e = event("src", detail_type="dt")
        assert resolve_field(e, "source") == "src"
        assert resolve_field(e, "detail-type") == "dt"
        assert resolve_field(e, "detail_type") == "dt"
        assert resolve_field(e, "id") == e.id
