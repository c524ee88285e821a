# Overview: Flask API routes for refunds; parses input and returns JSON responses.

"""
Refund API Routes

WHY: Return money to customers through an approval workflow.

DESIGN:
- Any authenticated user may request a refund
- Approve/reject require confirm authority
- Processing needs a transaction reference; "wallet" credits the customer wallet
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LedgerError
from ..results import run_action
from ..services import refund_service
from ..decorators import require_actor, require_confirm_authority
from ..validation import amount_cents, optional_int, require_fields


refunds_bp = Blueprint("refunds", __name__, url_prefix="/api/refunds")


# =============================================================================
# REFUND REQUESTS
# =============================================================================

@refunds_bp.post("/")
@require_actor
def create_refund_route():
    """
    Request a refund (status: PENDING).

    Request body:
    {
        "purchase_id": 12,
        "customer_id": 7,
        "reason": "PRODUCT_DEFECT",       (see constants.VALID_REFUND_REASONS)
        "custom_reason": "...",           (required when reason is OTHER)
        "amount_cents": 20000,            (or "amount": "200.00")
        "refund_method": "CASH",          (optional)
        "items": [...],                   (optional)
        "notes": "..."                    (optional)
    }

    Returns:
        201: Refund requested
        409: Amount exceeds what is still refundable
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "purchase_id", "customer_id", "reason")

        refund = refund_service.create_refund_request(
            purchase_id=optional_int(data, "purchase_id"),
            customer_id=optional_int(data, "customer_id"),
            reason=data.get("reason"),
            amount_cents=amount_cents(data, "amount"),
            requested_by=g.capability,
            custom_reason=data.get("custom_reason"),
            refund_method=data.get("refund_method") or "CASH",
            items=data.get("items"),
            notes=data.get("notes"),
        )
        return jsonify({"refund": refund.to_dict()}), 201

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create refund")
        return jsonify({"error": "Internal server error"}), 500


@refunds_bp.get("/")
@require_actor
def list_refunds_route():
    try:
        refunds = refund_service.list_refunds(
            g.business_id,
            status=request.args.get("status"),
            purchase_id=request.args.get("purchase_id", type=int),
        )
        return jsonify({"refunds": [r.to_dict() for r in refunds]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@refunds_bp.get("/<int:refund_id>")
@require_actor
def get_refund_route(refund_id: int):
    try:
        return jsonify({"refund": refund_service.get_refund(refund_id, g.business_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


# =============================================================================
# APPROVAL WORKFLOW
# =============================================================================

@refunds_bp.post("/<int:refund_id>/approve")
@require_actor
@require_confirm_authority
def approve_refund_route(refund_id: int):
    try:
        result = run_action(refund_service.approve_refund, refund_id, g.capability)
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"refund": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve refund")
        return jsonify({"error": "Internal server error"}), 500


@refunds_bp.post("/<int:refund_id>/process")
@require_actor
def process_refund_route(refund_id: int):
    """
    Pay out an approved refund.

    Request body:
    {
        "transaction_reference": "MPESA123"   ("wallet" credits the customer wallet)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = run_action(refund_service.process_refund, refund_id, data.get("transaction_reference"), g.capability)
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"refund": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to process refund")
        return jsonify({"error": "Internal server error"}), 500


@refunds_bp.post("/<int:refund_id>/reject")
@require_actor
@require_confirm_authority
def reject_refund_route(refund_id: int):
    try:
        data = request.get_json(silent=True) or {}
        result = run_action(refund_service.reject_refund, refund_id, g.capability, data.get("reason"))
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"refund": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject refund")
        return jsonify({"error": "Internal server error"}), 500
