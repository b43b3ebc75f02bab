# Overview: Flask API routes for supplier purchase orders; parses input and returns JSON responses.

# backend/retailcore/routes/purchase_orders.py
"""
Purchase Order API Routes

LIFECYCLE:
- POST /                 create (draft)
- POST /<id>/order       draft -> ordered
- POST /<id>/receive     record received goods (status is derived)
- POST /<id>/cancel      any non-terminal -> cancelled
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import purchase_order_service
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
    parse_id,
    parse_expected_version,
)


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


def _parse_date(value, field: str):
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


def _po_response(po) -> dict:
    data = po.to_dict(include_lines=True)
    data["receiving"] = purchase_order_service.receiving_progress(po)
    return data


@purchase_orders_bp.post("/")
@purchase_orders_bp.post("")
@require_actor
def create_purchase_order_route():
    """
    Create a draft purchase order.

    Request body:
    {
        "branch_id": 1,
        "supplier_id": "SUP-3",
        "supplier_name": "CV Sumber Rejeki",
        "lines": [{"product_id": "P1", "quantity": 50, "unit_price": "8000"}],
        "document_discount": {"type": "nominal", "value": "10000"},
        "tax_mode": "add", "tax_rate": 11,
        "shipping_cost": "25000",
        "payment_terms": "cash" | "credit",
        "payment_due_date": "2026-11-30",
        "expected_delivery_date": "2026-10-24",
        "notes": "optional"
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        discount = data.get("document_discount") if isinstance(data.get("document_discount"), dict) else {}

        po = purchase_order_service.create_purchase_order(
            actor=g.actor,
            branch_id=parse_id(data.get("branch_id"), "branch_id"),
            supplier_id=data.get("supplier_id"),
            supplier_name=data.get("supplier_name"),
            lines=line_items_from_payload(data.get("lines")),
            document_discount=discount_from_input(discount.get("type"), discount.get("value")),
            tax=tax_config_from_input(
                data.get("tax_mode"),
                data.get("tax_rate"),
                current_app.config.get("DEFAULT_TAX_RATE", 0),
            ),
            shipping=lenient_amount(data.get("shipping_cost")),
            payment_terms=(data.get("payment_terms") or "cash").strip().lower(),
            payment_due_date=_parse_date(data.get("payment_due_date"), "payment_due_date"),
            order_date=_parse_date(data.get("order_date"), "order_date"),
            expected_delivery_date=_parse_date(data.get("expected_delivery_date"), "expected_delivery_date"),
            notes=data.get("notes"),
        )
        return jsonify({"purchase_order": _po_response(po)}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.get("/")
@purchase_orders_bp.get("")
@require_actor
def list_purchase_orders_route():
    """Query params: branch_id, status, supplier_id, limit"""
    orders = purchase_order_service.list_purchase_orders(
        branch_id=request.args.get("branch_id", type=int),
        status=request.args.get("status"),
        supplier_id=request.args.get("supplier_id"),
        limit=min(request.args.get("limit", 100, type=int), 500),
    )
    return jsonify({"purchase_orders": [po.to_dict() for po in orders]}), 200


@purchase_orders_bp.get("/outstanding")
@require_actor
def list_outstanding_purchase_orders_route():
    """Payable credit orders with a balance left; display_status includes overdue."""
    orders = purchase_order_service.list_outstanding_purchase_orders(
        branch_id=request.args.get("branch_id", type=int)
    )
    return jsonify({"purchase_orders": orders}), 200


@purchase_orders_bp.get("/<int:po_id>")
@require_actor
def get_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.get_purchase_order(po_id)
        return jsonify({"purchase_order": _po_response(po)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@purchase_orders_bp.post("/<int:po_id>/order")
@require_actor
def mark_ordered_route(po_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        po = purchase_order_service.mark_ordered(
            po_id=po_id,
            actor=g.actor,
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({"purchase_order": _po_response(po)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark purchase order ordered")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/cancel")
@require_actor
def cancel_purchase_order_route(po_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        po = purchase_order_service.cancel_purchase_order(
            po_id=po_id,
            actor=g.actor,
            reason=data.get("reason"),
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({"purchase_order": _po_response(po)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/receive")
@require_actor
def receive_items_route(po_id: int):
    """
    Record received goods. All-or-nothing across the batch.

    Request body:
    {
        "receipts": [{"line_id": 4, "quantity": 20}, {"product_id": "P2", "quantity": 5}],
        "expected_version": 2  (optional)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        po = purchase_order_service.receive_items(
            po_id=po_id,
            receipts=data.get("receipts"),
            actor=g.actor,
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({"purchase_order": _po_response(po)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive purchase order items")
        return jsonify({"error": "Internal server error"}), 500
