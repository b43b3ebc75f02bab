# Overview: Flask API routes for settlement payments on credit sales and purchase orders.

# backend/retailcore/routes/payments.py
"""
Settlement Payment API Routes

WHY: Credit sales and credit purchase orders are paid down over time.
Payments can be corrected (edit) or reversed (delete); the document's
outstanding amount moves with them.

DESIGN:
- /api/payments/sales/<id> and /api/payments/purchase-orders/<id> list and record
- /api/payments/<payment_id> edits (PUT) and deletes (DELETE)
- expected_version pins the owning document's version
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import settlement_service
from ..services.settlement_service import DOCUMENT_SALE, DOCUMENT_PURCHASE_ORDER, SETTLEMENT_METHODS
from ..decorators import require_actor
from ..money import money_str
from ..time_utils import parse_iso_datetime
from ..validation import (
    DomainError,
    json_object,
    ValidationError,
    parse_amount,
    parse_choice,
    parse_expected_version,
)


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")

DOCUMENT_PATHS = {
    "sales": DOCUMENT_SALE,
    "purchase-orders": DOCUMENT_PURCHASE_ORDER,
}


def _document_type(path: str) -> str:
    document_type = DOCUMENT_PATHS.get(path)
    if not document_type:
        raise ValidationError(f"Unknown document collection: {path}")
    return document_type


def _parse_paid_at(value):
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError("paid_at must be an ISO-8601 datetime")


def _settlement_body(document_type: str, document) -> dict:
    return {
        "document_type": document_type,
        "document_id": document.id,
        "total_amount": money_str(document.total_amount),
        "outstanding_amount": money_str(document.outstanding_amount),
        "payment_status": document.payment_status,
        "version_id": document.version_id,
    }


@payments_bp.get("/<string:collection>/<int:document_id>")
@require_actor
def list_payments_route(collection: str, document_id: int):
    """Query params: include_deleted=true"""
    try:
        document_type = _document_type(collection)
        include_deleted = request.args.get("include_deleted", "false").lower() == "true"
        payments = settlement_service.list_payments(document_type, document_id, include_deleted)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@payments_bp.post("/<string:collection>/<int:document_id>")
@require_actor
def record_payment_route(collection: str, document_id: int):
    """
    Record a payment against the outstanding balance.

    Request body:
    {
        "amount": "40000",
        "method": "cash" | "card" | "transfer" | "qris",
        "paid_at": "2026-10-17T09:30:00Z",  (optional, defaults to now)
        "note": "optional",
        "expected_version": 1  (optional)
    }
    """
    try:
        document_type = _document_type(collection)
        data = json_object(request.get_json(silent=True))

        payment, document = settlement_service.record_document_payment(
            document_type=document_type,
            document_id=document_id,
            amount=parse_amount(data.get("amount"), "amount", allow_zero=False),
            method=parse_choice(data.get("method"), "method", SETTLEMENT_METHODS),
            paid_at=_parse_paid_at(data.get("paid_at")),
            note=data.get("note"),
            actor=g.actor,
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({
            "payment": payment.to_dict(),
            "settlement": _settlement_body(document_type, document),
        }), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.put("/<int:payment_id>")
@require_actor
def edit_payment_route(payment_id: int):
    """
    Correct a recorded payment.

    Request body: {"amount": "100000", "method": "...", "paid_at": "...", "note": "...", "expected_version": 2}
    """
    try:
        data = json_object(request.get_json(silent=True))
        method = data.get("method")

        payment, document = settlement_service.edit_document_payment(
            payment_id=payment_id,
            new_amount=parse_amount(data.get("amount"), "amount", allow_zero=False),
            method=parse_choice(method, "method", SETTLEMENT_METHODS) if method is not None else None,
            paid_at=_parse_paid_at(data.get("paid_at")),
            note=data.get("note"),
            actor=g.actor,
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({
            "payment": payment.to_dict(),
            "settlement": _settlement_body(payment.document_type, document),
        }), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.delete("/<int:payment_id>")
@require_actor
def delete_payment_route(payment_id: int):
    """Reverse a payment; its amount returns to the outstanding balance."""
    try:
        data = json_object(request.get_json(silent=True))
        payment, document = settlement_service.delete_document_payment(
            payment_id=payment_id,
            actor=g.actor,
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({
            "payment": payment.to_dict(),
            "settlement": _settlement_body(payment.document_type, document),
        }), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete payment")
        return jsonify({"error": "Internal server error"}), 500
