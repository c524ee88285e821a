# Overview: Flask API routes for bulk import and spreadsheet export.

"""
Import / Export Routes

Supports CSV and Excel (.xlsx) uploads. Every upload is one ImportBatch;
each row is applied on its own, so one bad row never blocks the others.
Exports are .xlsx workbooks with an extra "Import Template" sheet and can
be re-imported as-is.
"""

import io

from flask import Blueprint, request, jsonify, g, current_app, send_file

from ..extensions import db
from ..errors import LedgerError
from ..services import export_service, import_service
from ..decorators import require_actor
from ..spreadsheet import read_rows
from ..time_utils import parse_date, utcnow


imports_bp = Blueprint("imports", __name__, url_prefix="/api/imports")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _uploaded_rows():
    file = request.files["file"]
    return read_rows(file.stream, file.filename or ""), file.filename


def _run_import(importer, label: str, **extra):
    if "file" not in request.files:
        return jsonify({"error": "file is required", "field": "file"}), 400
    try:
        rows, filename = _uploaded_rows()
        summary = importer(
            business_id=g.business_id,
            rows=rows,
            actor=g.capability,
            source_file_name=filename,
            **extra,
        )
        return jsonify({"summary": summary}), 200
    except LedgerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to import %s", label)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# UPLOADS
# =============================================================================

@imports_bp.post("/purchases")
@require_actor
def import_purchases_route():
    """
    multipart/form-data with "file" (.csv or .xlsx).

    Returns:
        200: {"summary": {"batch_id", "created", "updated", "errors", "total_errors"}}
        400: Unreadable file or no data rows
    """
    as_of = parse_date(request.form.get("as_of"))
    return _run_import(import_service.import_purchases, "purchases", as_of=as_of)


@imports_bp.post("/payments")
@require_actor
def import_payments_route():
    as_of = parse_date(request.form.get("as_of"))
    return _run_import(import_service.import_payments, "payments", as_of=as_of)


@imports_bp.post("/products")
@require_actor
def import_products_route():
    """Unknown "[Shop Name]" columns reject the whole file before any row runs."""
    return _run_import(import_service.import_products, "products")


@imports_bp.post("/customers")
@require_actor
def import_customers_route():
    """Rows are matched by "Customer ID"; phone numbers must stay unique per shop."""
    return _run_import(import_service.import_customers, "customers")


# =============================================================================
# BATCHES
# =============================================================================

@imports_bp.get("/batches")
@require_actor
def list_batches_route():
    batches = import_service.list_batches(
        g.business_id,
        import_type=request.args.get("import_type"),
        limit=request.args.get("limit", default=50, type=int),
    )
    return jsonify({"batches": [b.to_dict() for b in batches]}), 200


@imports_bp.get("/batches/<int:batch_id>")
@require_actor
def get_batch_route(batch_id: int):
    try:
        return jsonify({"batch": import_service.get_batch(batch_id, g.business_id).to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.http_status


# =============================================================================
# EXPORTS
# =============================================================================

def _xlsx(payload: bytes, stem: str):
    filename = f"{stem}-{utcnow().strftime('%Y%m%d')}.xlsx"
    return send_file(
        io.BytesIO(payload),
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=filename,
    )


@imports_bp.get("/exports/purchases")
@require_actor
def export_purchases_route():
    try:
        payload = export_service.export_purchases(
            g.business_id,
            status=request.args.get("status"),
            shop_id=request.args.get("shop_id", type=int),
        )
        return _xlsx(payload, "purchases")
    except Exception:
        current_app.logger.exception("Failed to export purchases")
        return jsonify({"error": "Internal server error"}), 500


@imports_bp.get("/exports/payments")
@require_actor
def export_payments_route():
    try:
        payload = export_service.export_payments(g.business_id, shop_id=request.args.get("shop_id", type=int))
        return _xlsx(payload, "payments")
    except Exception:
        current_app.logger.exception("Failed to export payments")
        return jsonify({"error": "Internal server error"}), 500


@imports_bp.get("/exports/products")
@require_actor
def export_products_route():
    try:
        return _xlsx(export_service.export_products(g.business_id), "products")
    except Exception:
        current_app.logger.exception("Failed to export products")
        return jsonify({"error": "Internal server error"}), 500


@imports_bp.get("/exports/customers")
@require_actor
def export_customers_route():
    try:
        payload = export_service.export_customers(g.business_id, shop_id=request.args.get("shop_id", type=int))
        return _xlsx(payload, "customers")
    except Exception:
        current_app.logger.exception("Failed to export customers")
        return jsonify({"error": "Internal server error"}), 500
