# Overview: Flask API routes for waybills and delivery tracking.

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LedgerError
from ..results import run_action
from ..services import delivery_service
from ..decorators import require_actor


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@deliveries_bp.post("/<int:purchase_id>/waybill")
@require_actor
def generate_waybill_route(purchase_id: int):
    """
    Issue the waybill for a fully paid CASH or LAYAWAY purchase.

    Returns:
        201: Waybill created, delivery SCHEDULED
        400: Purchase type is not delivered
        409: Not fully paid, or a waybill already exists
    """
    try:
        data = request.get_json(silent=True) or {}
        result = run_action(
            delivery_service.generate_waybill,
            purchase_id,
            g.capability,
            special_instructions=data.get("special_instructions"),
        )
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"waybill": result.value.to_dict()}), 201
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to generate waybill")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.get("/<int:purchase_id>/waybill")
@require_actor
def get_waybill_route(purchase_id: int):
    try:
        return jsonify({"waybill": delivery_service.get_waybill(purchase_id, g.business_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@deliveries_bp.post("/<int:purchase_id>/status")
@require_actor
def update_delivery_status_route(purchase_id: int):
    """Request body: {"delivery_status": "IN_TRANSIT"}"""
    try:
        data = request.get_json(silent=True) or {}
        result = run_action(
            delivery_service.update_delivery_status, purchase_id, data.get("delivery_status"), g.capability
        )
        if not result.success:
            return jsonify(result.error_payload()), result.http_status
        return jsonify({"purchase": result.value.to_dict()}), 200
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update delivery status")
        return jsonify({"error": "Internal server error"}), 500
