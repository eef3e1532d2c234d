"""Tests for VAT resolution."""

from decimal import Decimal

import pytest

from invoice_review.config import VATConfig
from invoice_review.schemas import DocumentRecord
from invoice_review.vat import VATOutcome, VATResolutionError, VATResolver, round_money

NET_AMOUNTS = ["0", "0.01", "0.10", "1", "19.99", "99.90", "100", "952.38", "1234.56", "99999.99"]
GROSS_AMOUNTS = ["0", "0.01", "0.21", "1.05", "10", "105", "1000", "1050.00", "2023.33", "87654.32"]


@pytest.fixture
def resolver() -> VATResolver:
    return VATResolver()


class TestRounding:
    """Tests for currency rounding."""

    def test_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("0.124")) == Decimal("0.12")

    def test_two_places(self):
        assert str(round_money(Decimal("5"))) == "5.00"


class TestNetAmounts:
    """Rule 2: amount excludes VAT."""

    @pytest.mark.parametrize("net", NET_AMOUNTS)
    def test_vat_exclusive_derives_tax(self, resolver, net):
        """tax = round(A x 0.05, 2) and the amount is unchanged."""
        amount = Decimal(net)
        result = resolver.resolve(amount, None, False)

        assert result.amount == amount
        assert result.tax_amount == round_money(amount * Decimal("0.05"))
        assert result.vat_inclusive is False
        assert result.outcome == VATOutcome.NET

    def test_unknown_flag_assumed_net_by_policy(self):
        resolver = VATResolver(VATConfig(assume_net_when_unknown=True))
        result = resolver.resolve(Decimal("200"), None, None)

        assert result.tax_amount == Decimal("10.00")
        assert result.vat_inclusive is False
        assert not result.ambiguous


class TestGrossAmounts:
    """Rule 3: amount includes VAT."""

    @pytest.mark.parametrize("gross", GROSS_AMOUNTS)
    def test_vat_inclusive_splits_gross(self, resolver, gross):
        """amount = round(G / 1.05, 2), tax = G - amount."""
        total = Decimal(gross)
        result = resolver.resolve(total, None, True)

        assert result.amount == round_money(total / Decimal("1.05"))
        assert abs(result.amount + result.tax_amount - total) <= Decimal("0.01")
        assert result.vat_inclusive is True
        assert result.outcome == VATOutcome.GROSS

    def test_thousand_inclusive(self, resolver):
        result = resolver.resolve(Decimal("1000"), None, True)

        assert result.amount == Decimal("952.38")
        assert result.tax_amount == Decimal("47.62")


class TestExtractedTax:
    """Rule 1: extracted tax consistent with the amount."""

    def test_consistent_as_net_fills_flag(self, resolver):
        result = resolver.resolve(Decimal("1000"), Decimal("50"), None)

        assert result.outcome == VATOutcome.CONSISTENT
        assert result.amount == Decimal("1000")
        assert result.tax_amount == Decimal("50")
        assert result.vat_inclusive is False

    def test_consistent_as_gross_moves_amount_to_net(self, resolver):
        result = resolver.resolve(Decimal("1050"), Decimal("50"), None)

        assert result.outcome == VATOutcome.GROSS_CONSISTENT
        assert result.amount == Decimal("1000")
        assert result.tax_amount == Decimal("50")
        assert result.vat_inclusive is True

    def test_rounding_drift_within_tolerance(self, resolver):
        result = resolver.resolve(Decimal("99.99"), Decimal("4.99"), False)

        assert result.outcome == VATOutcome.CONSISTENT
        assert result.tax_amount == Decimal("4.99")

    def test_inconsistent_tax_with_unknown_flag_is_ambiguous(self, resolver):
        result = resolver.resolve(Decimal("1000"), Decimal("80"), None)

        assert result.ambiguous
        assert result.tax_amount == Decimal("80")

    def test_inconsistent_tax_replaced_once_flag_known(self, resolver):
        result = resolver.resolve(Decimal("1000"), Decimal("80"), False)

        assert result.outcome == VATOutcome.NET
        assert result.tax_amount == Decimal("50.00")
        assert result.replaced_tax == Decimal("80")


class TestAmbiguity:
    """Rule 4: nothing is guessed."""

    def test_amount_without_flag_or_tax(self, resolver):
        result = resolver.resolve(Decimal("1000"), None, None)

        assert result.ambiguous
        assert result.amount == Decimal("1000")
        assert result.tax_amount is None
        assert result.vat_inclusive is None

    def test_nothing_known(self, resolver):
        assert resolver.resolve(None, None, None).ambiguous

    def test_flag_without_amount_waits(self, resolver):
        result = resolver.resolve(None, None, True)

        assert result.outcome == VATOutcome.AWAITING_AMOUNT
        assert not result.ambiguous


class TestIdempotence:
    """Re-running the resolver on its own output changes nothing."""

    @pytest.mark.parametrize(
        "amount,tax,flag",
        [
            ("1000", None, True),
            ("1000", None, False),
            ("1050", "50", None),
            ("1000", "80", False),
            ("0.01", None, True),
            ("2023.33", None, True),
        ],
    )
    def test_second_pass_is_noop(self, resolver, amount, tax, flag):
        first = resolver.resolve(Decimal(amount), Decimal(tax) if tax else None, flag)
        second = resolver.resolve(first.amount, first.tax_amount, first.vat_inclusive)

        assert (second.amount, second.tax_amount, second.vat_inclusive) == (
            first.amount,
            first.tax_amount,
            first.vat_inclusive,
        )


class TestErrors:
    """Invalid triples."""

    def test_negative_amount_rejected(self, resolver):
        with pytest.raises(VATResolutionError):
            resolver.resolve(Decimal("-1"), None, False)

    def test_negative_tax_rejected(self, resolver):
        with pytest.raises(VATResolutionError):
            resolver.resolve(Decimal("100"), Decimal("-5"), None)


class TestApply:
    """Writing the resolution onto a record."""

    def test_apply_updates_record(self, resolver):
        record = DocumentRecord(amount=Decimal("1050"), vat_inclusive=True)
        resolver.apply(record)

        assert record.amount == Decimal("1000.00")
        assert record.tax_amount == Decimal("50.00")
        assert record.gross_amount == Decimal("1050.00")

    def test_custom_rate(self):
        resolver = VATResolver(VATConfig(rate=Decimal("0.15")))
        result = resolver.resolve(Decimal("100"), None, False)

        assert result.tax_amount == Decimal("15.00")
