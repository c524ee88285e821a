# Overview: Flask API routes for purchases; parses input and returns JSON responses.

# backend/hpledger/routes/purchases.py
"""
Purchase API Routes

WHY: Record hire-purchase sales and expose their reconciled balances.

DESIGN:
- Amounts may be sent as integer "*_cents" fields or major-unit "amount" strings
- Totals, status and outstanding balance are always server-computed
- Recalculation is idempotent and safe to call at any time
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..errors import LedgerError, ValidationError
from ..services import audit_service, purchase_service
from ..decorators import require_actor
from ..validation import amount_cents, optional_date, optional_int, require_fields


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _parse_items(raw) -> list[dict]:
    if not isinstance(raw, list):
        raise ValidationError("items must be a list", field="items")
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValidationError("each item must be an object", field="items")
        items.append({
            "product_id": optional_int(entry, "product_id"),
            "product_name": entry.get("product_name"),
            "quantity": entry.get("quantity", 1),
            "unit_price_cents": amount_cents(entry, "unit_price", required=False),
        })
    return items


# =============================================================================
# PURCHASE CREATION
# =============================================================================

@purchases_bp.post("/")
@require_actor
def create_purchase_route():
    """
    Create a purchase (status: PENDING, or ACTIVE/COMPLETED with a down payment).

    Request body:
    {
        "shop_id": 1,
        "customer_id": 7,
        "purchase_type": "CREDIT",        (CASH | LAYAWAY | CREDIT)
        "items": [{"product_id": 3, "quantity": 2, "unit_price_cents": 50000}],
        "down_payment_cents": 0,          (optional, or "down_payment": "500.00")
        "down_payment_method": "CASH",    (optional)
        "installments": 3,                (optional)
        "due_date": "2026-12-31",         (optional)
        "notes": "..."                    (optional)
    }

    Returns:
        201: Purchase created
        400: Invalid input
        409: Down payment exceeds total
    """
    try:
        data = request.get_json(silent=True) or {}
        require_fields(data, "shop_id", "customer_id", "items")

        purchase = purchase_service.create_purchase(
            business_id=g.business_id,
            shop_id=optional_int(data, "shop_id"),
            customer_id=optional_int(data, "customer_id"),
            items=_parse_items(data.get("items")),
            creator=g.capability,
            purchase_type=data.get("purchase_type") or "CREDIT",
            down_payment_cents=amount_cents(data, "down_payment", required=False),
            down_payment_method=data.get("down_payment_method") or "CASH",
            tenor_days=optional_int(data, "tenor_days"),
            installments=optional_int(data, "installments"),
            start_date=optional_date(data, "start_date"),
            due_date=optional_date(data, "due_date"),
            notes=data.get("notes"),
        )
        return jsonify({"purchase": purchase_service.get_purchase_summary(purchase.id)}), 201

    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create purchase")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@purchases_bp.get("/")
@require_actor
def list_purchases_route():
    try:
        purchases = purchase_service.list_purchases(
            g.business_id,
            status=request.args.get("status"),
            shop_id=request.args.get("shop_id", type=int),
            customer_id=request.args.get("customer_id", type=int),
            purchase_type=request.args.get("purchase_type"),
        )
        return jsonify({"purchases": [p.to_dict() for p in purchases]}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@purchases_bp.get("/<int:purchase_id>")
@require_actor
def get_purchase_route(purchase_id: int):
    """Purchase with items, payments, refunds and waybill."""
    try:
        return jsonify({"purchase": purchase_service.get_purchase_summary(purchase_id, g.business_id)}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


@purchases_bp.get("/by-number/<purchase_number>")
@require_actor
def get_purchase_by_number_route(purchase_number: str):
    purchase = purchase_service.find_purchase_by_number(g.business_id, purchase_number)
    if not purchase:
        return jsonify({"error": f"Purchase {purchase_number} not found", "code": "NOT_FOUND"}), 404
    return jsonify({"purchase": purchase_service.get_purchase_summary(purchase.id)}), 200


# =============================================================================
# MAINTENANCE
# =============================================================================

@purchases_bp.post("/<int:purchase_id>/recalculate")
@require_actor
def recalculate_purchase_route(purchase_id: int):
    """Re-derive paid, outstanding and status from the payment and refund history."""
    try:
        purchase_service.get_purchase(purchase_id, g.business_id)
        purchase = purchase_service.recalculate_purchase(purchase_id)
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to recalculate purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.patch("/<int:purchase_id>")
@require_actor
def update_purchase_route(purchase_id: int):
    """
    Update notes and/or due date.

    Request body:
    {
        "notes": "...",            (optional)
        "due_date": "2026-12-31"   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        purchase = purchase_service.update_purchase_details(
            purchase_id,
            g.capability,
            notes=data.get("notes"),
            due_date=optional_date(data, "due_date"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update purchase")
        return jsonify({"error": "Internal server error"}), 500


@purchases_bp.get("/<int:purchase_id>/audit")
@require_actor
def purchase_audit_route(purchase_id: int):
    """Append-only history of everything that touched this purchase."""
    try:
        purchase_service.get_purchase(purchase_id, g.business_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status
    events = audit_service.list_audit_events(
        business_id=g.business_id,
        purchase_id=purchase_id,
        limit=request.args.get("limit", default=100, type=int),
    )
    return jsonify({"events": [ev.to_dict() for ev in events]}), 200
