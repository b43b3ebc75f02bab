"""
Pricing engine tests.

Verifies:
- Line, subtotal and document discount arithmetic
- Discount clamping (item <= gross, document <= subtotal)
- The three tax modes, shipping and voucher ordering
- Discount type switching resets the value
- Request boundary parsing clamps bad input to zero
"""

from decimal import Decimal

import pytest

from retailcore.services.pricing_service import (
    Discount,
    LineItem,
    NO_DISCOUNT,
    TaxConfig,
    compute_totals,
    discount_from_input,
    line_items_from_payload,
    switch_discount_kind,
    tax_config_from_input,
)
from retailcore.validation import ValidationError


D = Decimal


def line(qty, price, discount=NO_DISCOUNT, cost="0", product_id="P1"):
    return LineItem(product_id=product_id, quantity=qty, unit_price=D(price), unit_cost=D(cost), discount=discount)


# =============================================================================
# SCENARIOS
# =============================================================================


class TestReferenceScenario:
    def test_item_document_discount_and_added_tax(self):
        breakdown = compute_totals(
            [line(3, "10000", Discount.percentage(10))],
            Discount.percentage(5),
            tax=TaxConfig("add", D("11")),
        )
        assert breakdown.lines[0].net_amount == D("27000")
        assert breakdown.subtotal == D("27000")
        assert breakdown.net_after_document_discount == D("25650")
        assert breakdown.tax_amount == D("2821.5")
        assert breakdown.grand_total == D("28471.5")

    def test_shipping_untaxed_and_voucher_after_tax(self):
        breakdown = compute_totals(
            [line(1, "100000")],
            shipping=D("15000"),
            voucher_discount=D("5000"),
            tax=TaxConfig("add", D("10")),
        )
        assert breakdown.tax_amount == D("10000")
        assert breakdown.taxed_total == D("110000")
        assert breakdown.grand_total == D("120000")

    def test_no_tax_mode(self):
        breakdown = compute_totals([line(2, "5000")], tax=TaxConfig("none", D("11")))
        assert breakdown.tax_amount == D("0")
        assert breakdown.grand_total == D("10000")

    def test_inclusive_tax_backs_out_amount(self):
        breakdown = compute_totals([line(1, "111000")], tax=TaxConfig("inclusive", D("11")))
        assert breakdown.taxed_total == D("111000")
        assert breakdown.grand_total == D("111000")
        assert breakdown.tax_amount == D("11000")


# =============================================================================
# PROPERTIES
# =============================================================================


class TestDiscountProperties:
    LINES = [
        line(3, "10000", Discount.percentage(10)),
        line(2, "2500", Discount.nominal("99999")),
        line(0, "7000", Discount.percentage(50)),
        line(5, "1200.50", Discount.nominal("300")),
        line(1, "4000"),
    ]

    def test_subtotal_is_gross_minus_item_discounts(self):
        breakdown = compute_totals(self.LINES)
        gross = sum(ln.unit_price * ln.quantity for ln in self.LINES)
        discounts = sum(ln.discount_amount for ln in breakdown.lines)
        assert breakdown.subtotal == gross - discounts
        assert breakdown.gross_total == gross
        assert breakdown.item_discount_total == discounts

    def test_item_discount_never_exceeds_gross(self):
        breakdown = compute_totals(self.LINES)
        for priced in breakdown.lines:
            assert priced.discount_amount <= priced.gross_amount
            assert priced.net_amount >= 0

    def test_nominal_item_discount_is_clamped(self):
        breakdown = compute_totals([line(2, "2500", Discount.nominal("99999"))])
        assert breakdown.lines[0].discount_amount == D("5000")
        assert breakdown.subtotal == D("0")

    @pytest.mark.parametrize(
        "discount",
        [
            Discount.percentage(0),
            Discount.percentage(100),
            Discount.percentage("37.5"),
            Discount.nominal("0"),
            Discount.nominal("1000"),
            Discount.nominal("10000000"),
        ],
    )
    def test_document_discount_bounded_by_subtotal(self, discount):
        breakdown = compute_totals(self.LINES, discount)
        assert breakdown.document_discount_amount <= breakdown.subtotal
        assert breakdown.net_after_document_discount >= 0

    def test_zero_quantity_line_prices_to_zero(self):
        breakdown = compute_totals([line(0, "7000", Discount.percentage(50))])
        priced = breakdown.lines[0]
        assert priced.gross_amount == 0
        assert priced.net_amount == 0
        assert breakdown.grand_total == 0

    def test_empty_document(self):
        breakdown = compute_totals([])
        assert breakdown.subtotal == 0
        assert breakdown.grand_total == 0


class TestTaxModes:
    @pytest.mark.parametrize("rate", ["0", "5", "11", "12.5", "20"])
    def test_inclusive_grand_total_ignores_rate(self, rate):
        lines = [line(3, "10000", Discount.percentage(10))]
        baseline = compute_totals(lines, Discount.percentage(5), tax=TaxConfig("inclusive", D("11")))
        other = compute_totals(lines, Discount.percentage(5), tax=TaxConfig("inclusive", D(rate)))
        assert other.grand_total == baseline.grand_total == D("25650")

    def test_inclusive_split_changes_with_rate(self):
        lines = [line(1, "120000")]
        low = compute_totals(lines, tax=TaxConfig("inclusive", D("10")))
        high = compute_totals(lines, tax=TaxConfig("inclusive", D("20")))
        assert low.tax_amount < high.tax_amount
        assert high.tax_amount == D("20000")

    def test_unknown_tax_mode_rejected(self):
        with pytest.raises(ValueError):
            TaxConfig("vat", D("10"))


class TestPurity:
    def test_inputs_not_mutated_and_deterministic(self):
        lines = [line(3, "10000", Discount.percentage(10)), line(1, "999.99")]
        snapshot = list(lines)
        first = compute_totals(lines, Discount.nominal("500"), D("1000"), D("250"), TaxConfig("add", D("11")))
        second = compute_totals(lines, Discount.nominal("500"), D("1000"), D("250"), TaxConfig("add", D("11")))
        assert lines == snapshot
        assert first == second

    def test_no_intermediate_rounding(self):
        breakdown = compute_totals([line(1, "10.01")], tax=TaxConfig("add", D("11")))
        assert breakdown.tax_amount == D("1.1011")

    def test_margin_uses_cost(self):
        breakdown = compute_totals([line(4, "2500", cost="1500")])
        assert breakdown.total_cost == D("6000")
        assert breakdown.gross_margin == D("4000")


# =============================================================================
# DISCOUNT VARIANT AND BOUNDARY
# =============================================================================


class TestDiscountVariant:
    def test_switch_type_resets_value(self):
        pct = Discount.percentage(15)
        nominal = switch_discount_kind(pct, "nominal")
        assert nominal == Discount("nominal", D("0"))
        back = switch_discount_kind(nominal, "percentage")
        assert back == Discount("percentage", D("0"))

    def test_switch_to_same_type_keeps_value(self):
        pct = Discount.percentage(15)
        assert switch_discount_kind(pct, "percentage") is pct

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError):
            Discount("both", D("1"))

    @pytest.mark.parametrize(
        "kind,value,expected",
        [
            ("percentage", "-5", Discount("percentage", D("0"))),
            ("percentage", "abc", Discount("percentage", D("0"))),
            ("percentage", "150", Discount("percentage", D("100"))),
            ("nominal", "-100", Discount("nominal", D("0"))),
            ("nominal", None, Discount("nominal", D("0"))),
            ("nominal", 2500, Discount("nominal", D("2500"))),
            (None, "10", NO_DISCOUNT),
            ("mystery", "10", NO_DISCOUNT),
        ],
    )
    def test_boundary_clamp(self, kind, value, expected):
        assert discount_from_input(kind, value) == expected


class TestRequestBoundary:
    def test_line_items_from_payload(self):
        items = line_items_from_payload([
            {"product_id": 7, "quantity": 3, "unit_price": "10000",
             "discount": {"type": "percentage", "value": 10}},
            {"product_id": "P2", "quantity": "2", "unit_price": -5, "discount": "junk"},
        ])
        assert items[0].product_id == "7"
        assert items[0].discount == Discount.percentage(10)
        assert items[1].quantity == 2
        assert items[1].unit_price == D("0")
        assert items[1].discount == NO_DISCOUNT

    @pytest.mark.parametrize(
        "payload",
        [
            None,
            [],
            [{"quantity": 1, "unit_price": 1}],
            [{"product_id": "P1", "quantity": -1, "unit_price": 1}],
            [{"product_id": "P1", "quantity": 1.5, "unit_price": 1}],
            ["P1"],
        ],
    )
    def test_invalid_lines_rejected(self, payload):
        with pytest.raises(ValidationError):
            line_items_from_payload(payload)

    def test_tax_config_defaults(self):
        assert tax_config_from_input(None) == TaxConfig()
        assert tax_config_from_input("add", None, "11") == TaxConfig("add", D("11"))
        assert tax_config_from_input("inclusive", "-3") == TaxConfig("inclusive", D("0"))
        with pytest.raises(ValidationError):
            tax_config_from_input("sometimes", "11")
