# Overview: Flask API routes for POS sales; parses input and returns JSON responses.

# backend/retailcore/routes/sales.py
"""Sales API routes: quote, checkout, return and credit listings."""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import sales_service
from ..services.pricing_service import (
    discount_from_input,
    line_items_from_payload,
    tax_config_from_input,
)
from ..decorators import require_actor
from ..time_utils import parse_iso_date
from ..validation import (
    DomainError,
    json_object,
    ValidationError,
    lenient_amount,
    parse_choice,
    parse_id,
    parse_expected_version,
)
from ..models.shifts import PAYMENT_METHODS


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _pricing_inputs(data: dict) -> dict:
    """Shared cart parsing for quote and checkout."""
    discount = data.get("document_discount") if isinstance(data.get("document_discount"), dict) else {}
    return {
        "lines": line_items_from_payload(data.get("lines")),
        "document_discount": discount_from_input(discount.get("type"), discount.get("value")),
        "tax": tax_config_from_input(
            data.get("tax_mode"),
            data.get("tax_rate"),
            current_app.config.get("DEFAULT_TAX_RATE", 0),
        ),
        "shipping": lenient_amount(data.get("shipping_cost")),
        "voucher_discount": lenient_amount(data.get("voucher_discount")),
    }


def _parse_date(value, field: str):
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


@sales_bp.post("/quote")
@require_actor
def quote_route():
    """
    Price a cart without recording it.

    Request body:
    {
        "lines": [{"product_id": "P1", "quantity": 3, "unit_price": "10000",
                   "discount": {"type": "percentage", "value": 10}}],
        "document_discount": {"type": "percentage", "value": 5},
        "tax_mode": "add", "tax_rate": 11,
        "shipping_cost": 0, "voucher_discount": 0
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        breakdown = sales_service.quote(**_pricing_inputs(data))
        return jsonify({"breakdown": breakdown.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to price cart")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/")
@sales_bp.post("")
@require_actor
def record_sale_route():
    """
    Check out a cart on the acting cashier's active shift.

    Request body: the quote body plus
    {
        "branch_id": 1,
        "payment_method": "cash" | "card" | "transfer" | "qris" | "credit",
        "amount_tendered": "30000",       (cash)
        "customer_id": "C-7",             (required for credit)
        "customer_name": "Toko Maju",
        "credit_due_date": "2026-11-30",  (credit)
        "voucher_code": "HEMAT10"
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        branch_id = parse_id(data.get("branch_id"), "branch_id")
        payment_method = parse_choice(data.get("payment_method"), "payment_method", set(PAYMENT_METHODS))

        sale = sales_service.record_sale(
            actor=g.actor,
            branch_id=branch_id,
            payment_method=payment_method,
            amount_tendered=data.get("amount_tendered"),
            customer_id=data.get("customer_id"),
            customer_name=data.get("customer_name"),
            credit_due_date=_parse_date(data.get("credit_due_date"), "credit_due_date"),
            voucher_code=data.get("voucher_code"),
            **_pricing_inputs(data),
        )
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@sales_bp.get("")
@require_actor
def list_sales_route():
    """Query params: branch_id, shift_id, status, limit"""
    sales = sales_service.list_sales(
        branch_id=request.args.get("branch_id", type=int),
        shift_id=request.args.get("shift_id", type=int),
        status=request.args.get("status"),
        limit=min(request.args.get("limit", 100, type=int), 500),
    )
    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/outstanding")
@require_actor
def list_outstanding_sales_route():
    """Credit sales with a balance left; display_status includes overdue."""
    sales = sales_service.list_outstanding_sales(branch_id=request.args.get("branch_id", type=int))
    return jsonify({"sales": sales}), 200


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.post("/<int:sale_id>/return")
@require_actor
def return_sale_route(sale_id: int):
    """
    Fully reverse a sale.

    Request body: {"reason": "...", "expected_version": 2}
    """
    try:
        data = json_object(request.get_json(silent=True))
        sale = sales_service.return_sale(
            sale_id=sale_id,
            actor=g.actor,
            reason=data.get("reason"),
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({"sale": sale.to_dict(include_lines=True)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to return sale")
        return jsonify({"error": "Internal server error"}), 500
