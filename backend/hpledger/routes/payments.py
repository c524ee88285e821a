# Overview: Flask API routes for payments; parses input and returns JSON responses.

"""
Payment API Routes

WHY: Record collections against purchases with a confirmation workflow.

SECURITY:
- Any authenticated user may record a payment
- Payments recorded by users without confirm authority stay UNCONFIRMED
- Confirm/reject require confirm authority
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LedgerError
from ..results import run_action
from ..services import payment_service
from ..decorators import require_actor, require_confirm_authority
from ..validation import amount_cents, optional_int, require_fields
from ..time_utils import parse_iso_datetime


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/")
@require_actor
def record_payment_route():
    """
    Record a payment.

    Request body:
    {
        "purchase_id": 12,
        "amount_cents": 30000,            (or "amount": "300.00")
        "method": "MOBILE_MONEY",
        "reference": "QWE123",            (optional)
        "notes": "...",                   (optional)
        "paid_at": "2026-03-01T10:00:00Z" (optional)
    }

    Returns:
        201: Payment recorded (confirmed when the recorder has authority)
        409: Amount exceeds the outstanding balance
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "purchase_id")

        try:
            paid_at = parse_iso_datetime(data.get("paid_at"))
        except ValueError:
            return jsonify({"error": "paid_at must be an ISO-8601 datetime", "field": "paid_at"}), 400

        payment = payment_service.record_payment(
            purchase_id=optional_int(data, "purchase_id"),
            amount_cents=amount_cents(data, "amount"),
            method=data.get("method") or data.get("payment_method") or "CASH",
            reference=data.get("reference"),
            recorder=g.capability,
            notes=data.get("notes"),
            paid_at=paid_at,
        )
        return jsonify({"payment": payment.to_dict()}), 201

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/confirm")
@require_actor
@require_confirm_authority
def confirm_payment_route(payment_id: int):
    try:
        result = run_action(payment_service.confirm_payment, payment_id, g.capability)
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"payment": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to confirm payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.post("/<int:payment_id>/reject")
@require_actor
@require_confirm_authority
def reject_payment_route(payment_id: int):
    """
    Reject an unconfirmed payment.

    Request body:
    {
        "reason": "Reference not found on statement"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        result = run_action(payment_service.reject_payment, payment_id, g.capability, data.get("reason"))
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"payment": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("/pending")
@require_actor
def pending_payments_route():
    payments = payment_service.get_pending_payments(g.business_id, shop_id=request.args.get("shop_id", type=int))
    return jsonify({"payments": [p.to_dict() for p in payments]}), 200


@payments_bp.get("/<int:payment_id>")
@require_actor
def get_payment_route(payment_id: int):
    try:
        return jsonify({"payment": payment_service.get_payment(payment_id, g.business_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@payments_bp.get("/purchase/<int:purchase_id>")
@require_actor
def purchase_payments_route(purchase_id: int):
    try:
        payments = payment_service.list_purchase_payments(purchase_id, g.business_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@payments_bp.get("/purchase/<int:purchase_id>/summary")
@require_actor
def payment_summary_route(purchase_id: int):
    try:
        return jsonify({"summary": payment_service.get_payment_summary(purchase_id, g.business_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
