# Overview: Flask API routes exposing structured receipt data.

from flask import Blueprint, jsonify, g

from ..errors import LedgerError
from ..services import receipt_service
from ..decorators import require_actor


receipts_bp = Blueprint("receipts", __name__, url_prefix="/api/receipts")


@receipts_bp.get("/payments/<int:payment_id>")
@require_actor
def payment_receipt_route(payment_id: int):
    try:
        return jsonify({"receipt": receipt_service.build_payment_receipt(payment_id, g.business_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@receipts_bp.get("/wallet/<int:transaction_id>")
@require_actor
def wallet_receipt_route(transaction_id: int):
    try:
        return jsonify({"receipt": receipt_service.build_wallet_deposit_receipt(transaction_id, g.business_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
