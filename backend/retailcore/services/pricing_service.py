# Overview: Pure pricing engine; turns lines, discounts, shipping, voucher and tax into a total breakdown.

"""
Pricing Engine

DESIGN PRINCIPLES:
- Pure: compute_totals never mutates its inputs and keeps no state
- Decimal arithmetic end to end, no rounding between steps
- Item discounts apply first, then the document discount, then tax,
  then shipping (untaxed) and the voucher (after tax)
- Discounts are a tagged variant: one Discount holds either a percentage
  or a nominal amount, never both

Boundary clamping (negative or non-numeric discounts, shipping, voucher)
happens in discount_from_input / money.to_amount, not in the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable

from ..money import ZERO, to_amount, to_decimal
from ..validation import ValidationError, parse_quantity


HUNDRED = Decimal("100")

DISCOUNT_NONE = "none"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_NOMINAL = "nominal"

DISCOUNT_KINDS = {DISCOUNT_NONE, DISCOUNT_PERCENTAGE, DISCOUNT_NOMINAL}

TAX_NONE = "none"
TAX_ADD = "add"
TAX_INCLUSIVE = "inclusive"

TAX_MODES = {TAX_NONE, TAX_ADD, TAX_INCLUSIVE}


# =============================================================================
# INPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class Discount:
    kind: str = DISCOUNT_NONE
    value: Decimal = ZERO

    def __post_init__(self):
        if self.kind not in DISCOUNT_KINDS:
            raise ValueError(f"Unknown discount kind: {self.kind}")

    @classmethod
    def none(cls) -> "Discount":
        return cls(DISCOUNT_NONE, ZERO)

    @classmethod
    def percentage(cls, value) -> "Discount":
        return cls(DISCOUNT_PERCENTAGE, to_decimal(value))

    @classmethod
    def nominal(cls, value) -> "Discount":
        return cls(DISCOUNT_NOMINAL, to_decimal(value))

    def amount_on(self, base: Decimal) -> Decimal:
        """Discount amount against `base`, capped at `base`."""
        if self.kind == DISCOUNT_PERCENTAGE:
            raw = base * self.value / HUNDRED
        elif self.kind == DISCOUNT_NOMINAL:
            raw = self.value
        else:
            return ZERO
        return min(raw, base)

    def to_dict(self) -> dict:
        return {"type": self.kind, "value": str(self.value)}


NO_DISCOUNT = Discount.none()


def discount_from_input(kind: Any, value: Any) -> Discount:
    """
    Build a Discount from request input.

    Unknown/empty kind -> no discount. Negative or non-numeric value -> 0.
    A percentage above 100 is capped at 100.
    """
    kind = str(kind).strip().lower() if kind else DISCOUNT_NONE
    if kind not in DISCOUNT_KINDS or kind == DISCOUNT_NONE:
        return NO_DISCOUNT
    amount = to_amount(value)
    if kind == DISCOUNT_PERCENTAGE:
        return Discount.percentage(min(amount, HUNDRED))
    return Discount.nominal(amount)


def switch_discount_kind(discount: Discount, kind: str) -> Discount:
    """
    Change the discount type. The value always resets to zero so a
    percentage never leaks into a nominal amount (or the reverse).
    """
    if kind not in DISCOUNT_KINDS:
        raise ValueError(f"Unknown discount kind: {kind}")
    if kind == discount.kind:
        return discount
    return Discount(kind, ZERO)


@dataclass(frozen=True)
class LineItem:
    product_id: Any
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal = ZERO
    discount: Discount = NO_DISCOUNT
    product_name: str | None = None


@dataclass(frozen=True)
class TaxConfig:
    mode: str = TAX_NONE
    rate: Decimal = ZERO  # percent

    def __post_init__(self):
        if self.mode not in TAX_MODES:
            raise ValueError(f"Unknown tax mode: {self.mode}")

    @property
    def fraction(self) -> Decimal:
        return to_decimal(self.rate) / HUNDRED


NO_TAX = TaxConfig()


# =============================================================================
# OUTPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class LineBreakdown:
    product_id: Any
    quantity: int
    unit_price: Decimal
    unit_cost: Decimal
    discount: Discount
    gross_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    cost_amount: Decimal


@dataclass(frozen=True)
class PriceBreakdown:
    lines: tuple[LineBreakdown, ...] = field(default_factory=tuple)
    gross_total: Decimal = ZERO
    item_discount_total: Decimal = ZERO
    subtotal: Decimal = ZERO
    document_discount: Discount = NO_DISCOUNT
    document_discount_amount: Decimal = ZERO
    net_after_document_discount: Decimal = ZERO
    tax_mode: str = TAX_NONE
    tax_rate: Decimal = ZERO
    tax_amount: Decimal = ZERO
    taxed_total: Decimal = ZERO
    shipping_cost: Decimal = ZERO
    voucher_discount: Decimal = ZERO
    grand_total: Decimal = ZERO
    total_cost: Decimal = ZERO

    @property
    def total_discount(self) -> Decimal:
        return self.item_discount_total + self.document_discount_amount + self.voucher_discount

    @property
    def gross_margin(self) -> Decimal:
        """Net sales (before tax/shipping/voucher) less cost of goods."""
        return self.net_after_document_discount - self.total_cost

    def to_dict(self) -> dict:
        return {
            "gross_total": str(self.gross_total),
            "item_discount_total": str(self.item_discount_total),
            "subtotal": str(self.subtotal),
            "document_discount": self.document_discount.to_dict(),
            "document_discount_amount": str(self.document_discount_amount),
            "net_after_document_discount": str(self.net_after_document_discount),
            "tax_mode": self.tax_mode,
            "tax_rate": str(self.tax_rate),
            "tax_amount": str(self.tax_amount),
            "taxed_total": str(self.taxed_total),
            "shipping_cost": str(self.shipping_cost),
            "voucher_discount": str(self.voucher_discount),
            "grand_total": str(self.grand_total),
            "total_cost": str(self.total_cost),
            "lines": [
                {
                    "product_id": ln.product_id,
                    "quantity": ln.quantity,
                    "unit_price": str(ln.unit_price),
                    "discount": ln.discount.to_dict(),
                    "gross_amount": str(ln.gross_amount),
                    "discount_amount": str(ln.discount_amount),
                    "net_amount": str(ln.net_amount),
                }
                for ln in self.lines
            ],
        }


# =============================================================================
# REQUEST BOUNDARY
# =============================================================================

def tax_config_from_input(mode: Any, rate: Any = None, default_rate: Any = ZERO) -> TaxConfig:
    """
    Build a TaxConfig from request input.

    Missing mode -> no tax. Missing rate -> default_rate. Negative rate -> 0.
    """
    mode = str(mode).strip().lower() if mode else TAX_NONE
    if mode not in TAX_MODES:
        raise ValidationError(f"Invalid tax_mode. Must be one of: {', '.join(sorted(TAX_MODES))}")
    if mode == TAX_NONE:
        return NO_TAX
    return TaxConfig(mode, to_amount(default_rate if rate in (None, "") else rate))


def line_items_from_payload(raw_lines: Any) -> list[LineItem]:
    """
    Parse request lines:
    [{"product_id", "product_name", "quantity", "unit_price", "unit_cost",
      "discount": {"type": "percentage"|"nominal", "value": ...}}]
    """
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("At least one line item is required")

    items = []
    for index, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"Line {index + 1} must be an object")
        product_id = raw.get("product_id")
        if product_id in (None, ""):
            raise ValidationError(f"Line {index + 1}: product_id required")
        discount = raw.get("discount") if isinstance(raw.get("discount"), dict) else {}
        items.append(
            LineItem(
                product_id=str(product_id),
                product_name=raw.get("product_name"),
                quantity=parse_quantity(raw.get("quantity"), f"Line {index + 1} quantity"),
                unit_price=to_amount(raw.get("unit_price")),
                unit_cost=to_amount(raw.get("unit_cost")),
                discount=discount_from_input(discount.get("type"), discount.get("value")),
            )
        )
    return items


# =============================================================================
# ENGINE
# =============================================================================

def price_line(line: LineItem) -> LineBreakdown:
    price = to_decimal(line.unit_price)
    cost = to_decimal(line.unit_cost)
    gross = price * line.quantity
    discount_amount = line.discount.amount_on(gross)
    return LineBreakdown(
        product_id=line.product_id,
        quantity=line.quantity,
        unit_price=price,
        unit_cost=cost,
        discount=line.discount,
        gross_amount=gross,
        discount_amount=discount_amount,
        net_amount=gross - discount_amount,
        cost_amount=cost * line.quantity,
    )


def apply_tax(net: Decimal, tax: TaxConfig) -> tuple[Decimal, Decimal]:
    """Return (tax_amount, taxed_total) for a net amount."""
    rate = tax.fraction
    if tax.mode == TAX_ADD:
        return net * rate, net * (1 + rate)
    if tax.mode == TAX_INCLUSIVE:
        return net - net / (1 + rate), net
    return ZERO, net


def compute_totals(
    lines: Iterable[LineItem],
    document_discount: Discount = NO_DISCOUNT,
    shipping: Decimal = ZERO,
    voucher_discount: Decimal = ZERO,
    tax: TaxConfig = NO_TAX,
) -> PriceBreakdown:
    """
    Price a document.

    Args:
        lines: LineItems (zero-quantity lines are allowed and price to zero)
        document_discount: Discount on the subtotal after item discounts
        shipping: Shipping cost, added after tax and never taxed
        voucher_discount: Voucher amount, subtracted after tax
        tax: TaxConfig (none / add on top / already included)

    Returns:
        PriceBreakdown with every intermediate amount
    """
    priced = tuple(price_line(line) for line in lines)

    gross_total = sum((ln.gross_amount for ln in priced), ZERO)
    item_discount_total = sum((ln.discount_amount for ln in priced), ZERO)
    subtotal = sum((ln.net_amount for ln in priced), ZERO)
    total_cost = sum((ln.cost_amount for ln in priced), ZERO)

    document_discount_amount = document_discount.amount_on(subtotal)
    net = subtotal - document_discount_amount

    tax_amount, taxed_total = apply_tax(net, tax)

    shipping = to_decimal(shipping)
    voucher_discount = to_decimal(voucher_discount)

    return PriceBreakdown(
        lines=priced,
        gross_total=gross_total,
        item_discount_total=item_discount_total,
        subtotal=subtotal,
        document_discount=document_discount,
        document_discount_amount=document_discount_amount,
        net_after_document_discount=net,
        tax_mode=tax.mode,
        tax_rate=to_decimal(tax.rate),
        tax_amount=tax_amount,
        taxed_total=taxed_total,
        shipping_cost=shipping,
        voucher_discount=voucher_discount,
        grand_total=taxed_total + shipping - voucher_discount,
        total_cost=total_cost,
    )
