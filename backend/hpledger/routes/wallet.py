# Overview: Flask API routes for customer wallets; parses input and returns JSON responses.

"""
Wallet API Routes

SECURITY:
- Deposits may be recorded by anyone; they stay PENDING without confirm authority
- Confirm/reject/adjust require confirm authority
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LedgerError
from ..results import run_action
from ..services import wallet_service
from ..decorators import require_actor, require_confirm_authority
from ..validation import amount_cents, as_bool, require_fields


wallet_bp = Blueprint("wallet", __name__, url_prefix="/api/wallet")


@wallet_bp.get("/customers/<int:customer_id>")
@require_actor
def get_wallet_route(customer_id: int):
    """Balance, pending deposits and full transaction history."""
    try:
        return jsonify({"wallet": wallet_service.get_wallet(customer_id, g.business_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@wallet_bp.post("/customers/<int:customer_id>/deposits")
@require_actor
def deposit_route(customer_id: int):
    """
    Request body:
    {
        "amount_cents": 50000,     (or "amount": "500.00")
        "reference": "QWE123",     (optional)
        "description": "..."       (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        txn = wallet_service.deposit(
            customer_id,
            amount_cents(data, "amount"),
            g.capability,
            reference=data.get("reference"),
            description=data.get("description"),
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record wallet deposit")
        return jsonify({"error": "Internal server error"}), 500


@wallet_bp.post("/transactions/<int:transaction_id>/confirm")
@require_actor
@require_confirm_authority
def confirm_transaction_route(transaction_id: int):
    try:
        result = run_action(wallet_service.confirm_wallet_transaction, transaction_id, g.capability)
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"transaction": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to confirm wallet transaction")
        return jsonify({"error": "Internal server error"}), 500


@wallet_bp.post("/transactions/<int:transaction_id>/reject")
@require_actor
@require_confirm_authority
def reject_transaction_route(transaction_id: int):
    try:
        data = request.get_json(silent=True) or {}
        result = run_action(wallet_service.reject_wallet_transaction, transaction_id, g.capability, data.get("reason"))
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"transaction": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject wallet transaction")
        return jsonify({"error": "Internal server error"}), 500


@wallet_bp.post("/customers/<int:customer_id>/adjustments")
@require_actor
@require_confirm_authority
def adjust_wallet_route(customer_id: int):
    """
    Request body:
    {
        "amount_cents": 1000,
        "is_addition": false,
        "description": "Correction for duplicate deposit"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "description")
        txn = wallet_service.adjust_wallet(
            customer_id,
            amount_cents(data, "amount"),
            data.get("description"),
            as_bool(data.get("is_addition", True)),
            g.capability,
        )
        return jsonify({"transaction": txn.to_dict()}), 201
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to adjust wallet")
        return jsonify({"error": "Internal server error"}), 500
