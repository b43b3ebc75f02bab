# Overview: Flask API routes for cash-drawer shifts; parses input and returns JSON responses.

# backend/retailcore/routes/shifts.py
"""
Shift API Routes

WHY: Cashiers open a drawer with a declared float, ring up sales against
it, preview the close and then count the drawer.

DESIGN:
- The shift is always addressed by (acting cashier, branch_id); there is
  no ambient "current shift"
- Closed shifts are read-only
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import shift_service
from ..decorators import require_actor
from ..validation import DomainError, json_object, parse_amount, parse_id, parse_expected_version


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/open")
@require_actor
def open_shift_route():
    """
    Open a shift for the acting cashier.

    Request body:
    {
        "branch_id": 1,
        "starting_balance": "500000",
        "notes": "optional"
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        branch_id = parse_id(data.get("branch_id"), "branch_id")
        starting_balance = parse_amount(data.get("starting_balance"), "starting_balance")

        shift = shift_service.open_shift(
            cashier_id=g.actor.id,
            cashier_name=g.actor.name,
            branch_id=branch_id,
            starting_balance=starting_balance,
            notes=data.get("notes"),
        )
        return jsonify({"shift": shift.to_dict()}), 201

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/active")
@require_actor
def get_active_shift_route():
    """Active shift for the acting cashier at ?branch_id=, or null."""
    try:
        branch_id = parse_id(request.args.get("branch_id"), "branch_id")
        shift = shift_service.get_active_shift(g.actor.id, branch_id)
        return jsonify({"shift": shift.to_dict() if shift else None}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@shifts_bp.get("/active/summary")
@require_actor
def prepare_close_route():
    """
    Preview the close: totals by method, grand total and expected cash.

    Does not change the shift.
    """
    try:
        branch_id = parse_id(request.args.get("branch_id"), "branch_id")
        shift = shift_service.require_active_shift(g.actor.id, branch_id)
        summary = shift_service.prepare_close(shift)
        return jsonify({"shift": shift.to_dict(), "summary": summary.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to summarize shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/close")
@require_actor
def close_shift_route():
    """
    Close the acting cashier's shift.

    Request body:
    {
        "branch_id": 1,
        "actual_cash_counted": "1250000",
        "notes": "optional",
        "expected_version": 3  (optional)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        branch_id = parse_id(data.get("branch_id"), "branch_id")
        counted = parse_amount(data.get("actual_cash_counted"), "actual_cash_counted")

        shift, summary = shift_service.close_shift(
            cashier_id=g.actor.id,
            branch_id=branch_id,
            actual_cash_counted=counted,
            notes=data.get("notes"),
            expected_version=parse_expected_version(data.get("expected_version")),
        )
        return jsonify({"shift": shift.to_dict(), "summary": summary.to_dict()}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/")
@shifts_bp.get("")
@require_actor
def list_shifts_route():
    """
    Shift history.

    Query params: cashier_id, branch_id, status, limit
    """
    shifts = shift_service.list_shifts(
        cashier_id=request.args.get("cashier_id"),
        branch_id=request.args.get("branch_id", type=int),
        status=request.args.get("status"),
        limit=min(request.args.get("limit", 50, type=int), 500),
    )
    return jsonify({"shifts": [s.to_dict() for s in shifts]}), 200


@shifts_bp.get("/<int:shift_id>")
@require_actor
def get_shift_route(shift_id: int):
    try:
        shift = shift_service.get_shift(shift_id)
        return jsonify({"shift": shift_service.shift_report(shift)}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code


@shifts_bp.get("/<int:shift_id>/sales")
@require_actor
def get_shift_sales_route(shift_id: int):
    try:
        sales = shift_service.get_shift_sales(shift_id)
        return jsonify({"sales": [s.to_dict() for s in sales]}), 200

    except DomainError as e:
        return jsonify(e.to_dict()), e.status_code
