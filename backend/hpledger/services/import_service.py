# Overview: Bulk spreadsheet import of purchases, payments and products.

"""
Bulk Import Service

WHY: Businesses migrate existing hire-purchase books from spreadsheets and
keep bulk-editing their catalog that way.

DESIGN:
- Rows are applied sequentially, each inside its own savepoint
- A failing row is rolled back, reported as "Row N: message" (N = data index
  + 2, accounting for the header row) and processing continues
- Every upload is recorded as an ImportBatch with created/updated/error counts
- The response lists at most IMPORT_ERROR_LIMIT messages plus the total
- Rows go through the same ledger services as interactive actions, so an
  imported payment obeys the same overpayment and confirmation rules
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, time
from typing import Any, Callable

from flask import current_app, has_app_context
from sqlalchemy import func

from ..constants import (
    IMPORT_TYPE_CUSTOMERS,
    IMPORT_TYPE_PAYMENTS,
    IMPORT_TYPE_PRODUCTS,
    IMPORT_TYPE_PURCHASES,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_WALLET,
    PURCHASE_TYPE_CREDIT,
    VALID_PAYMENT_METHODS,
)
from ..errors import LedgerError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, ImportBatch, Product, Purchase, Shop, ShopProduct
from .. import money
from hpledger.time_utils import parse_date, parse_iso_datetime, utcnow
from .audit_service import append_audit_event
from .payment_service import record_payment
from .permission_service import RecorderCapability
from .purchase_service import create_purchase, find_purchase_by_number, update_purchase_details


# =============================================================================
# BATCH STATUS CONSTANTS
# =============================================================================

BATCH_STATUS_CREATED = "CREATED"
BATCH_STATUS_COMPLETED = "COMPLETED"
BATCH_STATUS_FAILED = "FAILED"

ROW_CREATED = "created"
ROW_UPDATED = "updated"
ROW_SKIPPED = "skipped"

IMPORTABLE_PAYMENT_METHODS = [m for m in VALID_PAYMENT_METHODS if m != PAYMENT_METHOD_WALLET]
ASSIGNED_VALUES = {"✓", "Y", "YES", "1", "TRUE"}
NEW_RECORD_MARKER = "NEW"
DELETE_MARKER = "DELETE"


# =============================================================================
# CELL HELPERS
# =============================================================================

def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _required(row: dict, column: str) -> str:
    value = _text(row.get(column))
    if not value:
        raise ValidationError(f"{column} is required", field=column)
    return value


def _optional_int(row: dict, column: str) -> int | None:
    value = _text(row.get(column))
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        raise ValidationError(f"{column} must be a whole number", field=column)


def _cents(row: dict, column: str) -> int:
    value = row.get(column)
    if value is None or _text(value) == "":
        return 0
    cents = money.to_cents(value, field=column)
    if cents < 0:
        raise ValidationError(f"{column} cannot be negative", field=column)
    return cents


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(";")]


def _error_limit() -> int:
    if has_app_context():
        return int(current_app.config.get("IMPORT_ERROR_LIMIT", 10))
    return 10


# =============================================================================
# BATCH RUNNER
# =============================================================================

@dataclass
class ImportSummary:
    batch_id: int
    created: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] | None = None
    extra: dict[str, int] | None = None

    def to_dict(self, limit: int) -> dict:
        errors = self.errors or []
        data = {
            "batch_id": self.batch_id,
            "created": self.created,
            "updated": self.updated,
            "errors": errors[:limit],
            "total_errors": len(errors),
        }
        if self.extra:
            data.update(self.extra)
        return data


def _run_batch(
    *,
    business_id: int,
    import_type: str,
    rows: list[dict[str, Any]],
    actor: RecorderCapability,
    source_file_name: str | None,
    handle_row: Callable[[dict, int, ImportBatch], str],
    summary_extra: dict[str, int] | None = None,
) -> dict:
    if not rows:
        raise ValidationError("No data found in the file", field="file")

    batch = ImportBatch(
        business_id=business_id,
        import_type=import_type,
        status=BATCH_STATUS_CREATED,
        source_file_name=source_file_name,
        total_rows=len(rows),
        created_by_user_id=actor.user_id,
    )
    db.session.add(batch)
    db.session.flush()

    summary = ImportSummary(batch_id=batch.id, errors=[], extra=summary_extra)
    for index, row in enumerate(rows):
        row_number = index + 2
        nested = db.session.begin_nested()
        try:
            outcome = handle_row(row, row_number, batch)
            nested.commit()
        except Exception as exc:  # noqa: BLE001
            nested.rollback()
            message = exc.message if isinstance(exc, LedgerError) else f"Processing error - {exc}"
            summary.errors.append(f"Row {row_number}: {message}")
            if has_app_context():
                current_app.logger.warning(
                    "Import batch %s (%s) row %s failed: %s", batch.id, import_type, row_number, message
                )
            continue

        if outcome == ROW_CREATED:
            summary.created += 1
        elif outcome == ROW_UPDATED:
            summary.updated += 1
        else:
            summary.skipped += 1

    batch.created_rows = summary.created
    batch.updated_rows = summary.updated
    batch.error_rows = len(summary.errors)
    batch.errors = list(summary.errors)
    batch.status = BATCH_STATUS_COMPLETED
    batch.completed_at = utcnow()
    append_audit_event(
        business_id=business_id,
        event_type="IMPORT_COMPLETED",
        entity_type="import_batch",
        entity_id=batch.id,
        actor_user_id=actor.user_id,
        import_batch_id=batch.id,
        payload={
            "import_type": import_type,
            "created": summary.created,
            "updated": summary.updated,
            "errors": len(summary.errors),
        },
    )
    db.session.commit()
    return summary.to_dict(_error_limit())


def _shop_by_slug(business_id: int) -> dict[str, Shop]:
    shops = db.session.query(Shop).filter(Shop.business_id == business_id).all()
    return {shop.shop_slug.lower(): shop for shop in shops}


def _resolve_shop(shops: dict[str, Shop], row: dict) -> Shop:
    slug = _required(row, "Shop Slug").lower()
    shop = shops.get(slug)
    if not shop:
        raise NotFoundError(f'Shop "{slug}" not found', field="Shop Slug")
    return shop


def _resolve_customer(shop: Shop, row: dict) -> Customer:
    phone = _required(row, "Customer Phone")
    customer = db.session.query(Customer).filter_by(shop_id=shop.id, phone=phone).first()
    if not customer:
        raise NotFoundError(
            f'Customer with phone "{phone}" not found in shop "{shop.shop_slug}"',
            field="Customer Phone",
        )
    return customer


# =============================================================================
# PURCHASES
# =============================================================================

def _match_product(shop: Shop, name: str) -> Product | None:
    """Exact (case-insensitive) name or SKU among the products assigned to the shop."""
    lowered = name.lower()
    return (
        db.session.query(Product)
        .join(ShopProduct, ShopProduct.product_id == Product.id)
        .filter(ShopProduct.shop_id == shop.id)
        .filter((func.lower(Product.name) == lowered) | (func.lower(Product.sku) == lowered))
        .order_by(Product.id.asc())
        .first()
    )


def _purchase_items(shop: Shop, row: dict) -> list[dict[str, Any]]:
    names = [n for n in _split(_required(row, "Products")) if n]
    if not names:
        raise ValidationError("At least one product is required", field="Products")
    quantities = [q for q in _split(_required(row, "Quantities"))]
    prices = [p for p in _split(_required(row, "Unit Prices"))]

    items = []
    for index, name in enumerate(names):
        raw_qty = quantities[index] if index < len(quantities) and quantities[index] else "1"
        raw_price = prices[index] if index < len(prices) and prices[index] else "0"
        try:
            quantity = int(float(raw_qty))
        except ValueError:
            raise ValidationError(f'Invalid quantity "{raw_qty}" for {name}', field="Quantities")
        unit_price = money.to_cents(raw_price, field="Unit Prices")

        product = _match_product(shop, name)
        items.append({
            "product_id": product.id if product else None,
            "product_name": product.name if product else name,
            "quantity": quantity,
            "unit_price_cents": unit_price,
        })
    return items


def import_purchases(
    *,
    business_id: int,
    rows: list[dict[str, Any]],
    actor: RecorderCapability,
    source_file_name: str | None = None,
    as_of=None,
) -> dict:
    """
    Columns: Shop Slug, Customer Phone, Products, Quantities, Unit Prices
    (required); Purchase Type (default CREDIT), Down Payment, Amount Paid,
    Installments, Due Date, Notes, Purchase Number (optional).

    A row whose Purchase Number already exists only updates Notes and Due Date
    and counts as updated, so an export can be re-imported without creating
    duplicates or touching totals.
    """
    shops = _shop_by_slug(business_id)

    def handle_row(row: dict, row_number: int, batch: ImportBatch) -> str:
        purchase_number = _text(row.get("Purchase Number")).upper()
        notes = _text(row.get("Notes")) or None
        due_raw = row.get("Due Date")
        due_date = parse_date(due_raw)
        if _text(due_raw) and due_date is None:
            raise ValidationError(f'Invalid Due Date "{_text(due_raw)}"', field="Due Date")

        if purchase_number:
            existing = find_purchase_by_number(business_id, purchase_number)
            if not existing:
                raise NotFoundError(f'Purchase "{purchase_number}" not found', field="Purchase Number")
            update_purchase_details(
                existing.id, actor, notes=notes, due_date=due_date, as_of=as_of, commit=False
            )
            return ROW_UPDATED

        shop = _resolve_shop(shops, row)
        customer = _resolve_customer(shop, row)
        items = _purchase_items(shop, row)
        purchase_type = (_text(row.get("Purchase Type")) or PURCHASE_TYPE_CREDIT).upper()
        amount_paid = _cents(row, "Amount Paid")

        purchase = create_purchase(
            business_id=business_id,
            shop_id=shop.id,
            customer_id=customer.id,
            items=items,
            creator=actor,
            purchase_type=purchase_type,
            down_payment_cents=_cents(row, "Down Payment"),
            installments=_optional_int(row, "Installments"),
            due_date=due_date,
            notes=notes,
            imported_from_batch_id=batch.id,
            as_of=as_of,
            commit=False,
        )
        if amount_paid > 0:
            record_payment(
                purchase.id,
                amount_paid,
                PAYMENT_METHOD_CASH,
                "Imported payment",
                actor,
                notes="Payment (imported)",
                imported_from_batch_id=batch.id,
                source_row_number=row_number,
                as_of=as_of,
                commit=False,
            )
        return ROW_CREATED

    return _run_batch(
        business_id=business_id,
        import_type=IMPORT_TYPE_PURCHASES,
        rows=rows,
        actor=actor,
        source_file_name=source_file_name,
        handle_row=handle_row,
    )


# =============================================================================
# PAYMENTS
# =============================================================================

def import_payments(
    *,
    business_id: int,
    rows: list[dict[str, Any]],
    actor: RecorderCapability,
    source_file_name: str | None = None,
    as_of=None,
) -> dict:
    """
    Columns: Shop Slug, Customer Phone, Purchase Number, Amount, Payment
    Method (default CASH; WALLET is not importable), Reference, Date, Notes.
    """
    shops = _shop_by_slug(business_id)

    def handle_row(row: dict, row_number: int, batch: ImportBatch) -> str:
        shop = _resolve_shop(shops, row)
        customer = _resolve_customer(shop, row)
        purchase_number = _required(row, "Purchase Number").upper()
        purchase = (
            db.session.query(Purchase)
            .filter_by(business_id=business_id, purchase_number=purchase_number, customer_id=customer.id)
            .first()
        )
        if not purchase:
            raise NotFoundError(
                f'Purchase "{purchase_number}" not found for customer "{customer.phone}"',
                field="Purchase Number",
            )

        amount = _cents(row, "Amount")
        if amount <= 0:
            raise ValidationError("Amount must be greater than 0", field="Amount")

        method = (_text(row.get("Payment Method")) or PAYMENT_METHOD_CASH).upper()
        if method not in IMPORTABLE_PAYMENT_METHODS:
            raise ValidationError(
                f'Invalid Payment Method "{method}". Use: {", ".join(IMPORTABLE_PAYMENT_METHODS)}',
                field="Payment Method",
            )

        paid_at = _paid_at(row.get("Date"))
        record_payment(
            purchase.id,
            amount,
            method,
            _text(row.get("Reference")) or None,
            actor,
            notes=_text(row.get("Notes")) or None,
            paid_at=paid_at,
            imported_from_batch_id=batch.id,
            source_row_number=row_number,
            as_of=as_of,
            commit=False,
        )
        return ROW_CREATED

    return _run_batch(
        business_id=business_id,
        import_type=IMPORT_TYPE_PAYMENTS,
        rows=rows,
        actor=actor,
        source_file_name=source_file_name,
        handle_row=handle_row,
    )


def _paid_at(value: Any) -> datetime | None:
    if value is None or _text(value) == "":
        return None
    if isinstance(value, datetime):
        return value
    text = _text(value)
    try:
        return parse_iso_datetime(text)
    except ValueError:
        pass
    parsed = parse_date(text)
    if parsed is None:
        raise ValidationError(f'Invalid Date "{text}"', field="Date")
    return datetime.combine(parsed, time.min)


# =============================================================================
# PRODUCTS
# =============================================================================

SHOP_COLUMN_RE = re.compile(r"^\[(?P<shop>.+)\]\s+(?P<kind>Assigned|Stock)$", re.IGNORECASE)


@dataclass(frozen=True)
class ShopColumn:
    """Per-shop assignment columns decoded from "[Shop Name] Assigned/Stock" headers."""
    shop_id: int
    shop_name: str
    assigned_key: str | None = None
    stock_key: str | None = None

    def read(self, row: dict) -> tuple[bool | None, int | None]:
        assigned = None
        if self.assigned_key is not None:
            assigned = _text(row.get(self.assigned_key)).upper() in ASSIGNED_VALUES
        stock = None
        if self.stock_key is not None and _text(row.get(self.stock_key)):
            try:
                stock = int(float(_text(row.get(self.stock_key))))
            except ValueError:
                raise ValidationError(f'Invalid stock for "{self.shop_name}"', field=self.stock_key)
            if stock < 0:
                raise ValidationError(f'Stock for "{self.shop_name}" cannot be negative', field=self.stock_key)
        return assigned, stock


def decode_shop_columns(headers: list[str], shops: list[Shop]) -> list[ShopColumn]:
    """
    Map "[Shop Name] Assigned" / "[Shop Name] Stock" headers to shops.

    Every shop named in a header must exist in the business; otherwise the
    whole file is refused before any row is applied.
    """
    by_name = {shop.name.lower(): shop for shop in shops}
    found: dict[int, dict[str, Any]] = {}
    unknown = []
    for header in headers:
        match = SHOP_COLUMN_RE.match((header or "").strip())
        if not match:
            continue
        shop = by_name.get(match.group("shop").strip().lower())
        if not shop:
            unknown.append(match.group("shop").strip())
            continue
        entry = found.setdefault(shop.id, {"shop_id": shop.id, "shop_name": shop.name})
        key = "assigned_key" if match.group("kind").lower() == "assigned" else "stock_key"
        entry[key] = header

    if unknown:
        raise ValidationError(
            f"Unknown shop column(s): {', '.join(sorted(set(unknown)))}",
            field="file",
            details={"unknown_shops": sorted(set(unknown))},
        )
    return [ShopColumn(**entry) for entry in found.values()]


def _apply_shop_columns(product: Product, columns: list[ShopColumn], row: dict, counters: dict) -> None:
    for column in columns:
        assigned, stock = column.read(row)
        existing = db.session.query(ShopProduct).filter_by(shop_id=column.shop_id, product_id=product.id).first()
        if assigned is None:
            if existing and stock is not None:
                existing.stock_quantity = stock
            continue
        if assigned:
            if existing:
                existing.is_active = True
                if stock is not None:
                    existing.stock_quantity = stock
            else:
                db.session.add(ShopProduct(
                    shop_id=column.shop_id,
                    product_id=product.id,
                    stock_quantity=stock or 0,
                    is_active=True,
                ))
            counters["shop_assignments"] += 1
        elif existing and existing.is_active:
            existing.is_active = False
            counters["shop_removals"] += 1


def import_products(
    *,
    business_id: int,
    rows: list[dict[str, Any]],
    actor: RecorderCapability,
    source_file_name: str | None = None,
) -> dict:
    """
    Columns: Product ID ("NEW"/empty creates), Name, SKU, Description, Cost
    Price, Cash Price, Layaway Price, Credit Price, Low Stock Threshold
    (default 5), Active ("NO" inactive, "DELETE" deactivates), plus per-shop
    "[Shop Name] Assigned" / "[Shop Name] Stock" columns.
    """
    headers: list[str] = []
    for row in rows:
        for key in row.keys():
            if key not in headers:
                headers.append(key)
    shops = db.session.query(Shop).filter(Shop.business_id == business_id).all()
    columns = decode_shop_columns(headers, shops)
    counters = {"deactivated": 0, "shop_assignments": 0, "shop_removals": 0}

    def _sku_taken(sku: str, exclude_id: int | None = None) -> bool:
        q = db.session.query(Product.id).filter(Product.business_id == business_id, Product.sku == sku)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        return q.first() is not None

    def handle_row(row: dict, row_number: int, batch: ImportBatch) -> str:
        product_ref = _text(row.get("Product ID"))
        name = _text(row.get("Name"))
        if not name and not product_ref:
            return ROW_SKIPPED

        active_value = _text(row.get("Active")).upper()
        is_new = not product_ref or product_ref.upper() == NEW_RECORD_MARKER

        existing = None
        if not is_new:
            existing = (
                db.session.query(Product)
                .filter(Product.business_id == business_id, Product.id == _record_id(product_ref, "Product ID"))
                .first()
            )
            if not existing:
                raise NotFoundError(f'Product ID "{product_ref}" not found', field="Product ID")

        if active_value == DELETE_MARKER:
            if existing is None:
                return ROW_SKIPPED
            existing.is_active = False
            counters["deactivated"] += 1
            append_audit_event(
                business_id=business_id,
                event_type="PRODUCT_DEACTIVATED",
                entity_type="product",
                entity_id=existing.id,
                actor_user_id=actor.user_id,
                import_batch_id=batch.id,
                source_row_number=row_number,
            )
            return ROW_UPDATED

        if not name:
            raise ValidationError("Product name is required", field="Name")

        sku = _text(row.get("SKU")) or None
        if sku and _sku_taken(sku, exclude_id=existing.id if existing else None):
            raise ValidationError(f'SKU "{sku}" already exists', field="SKU")

        threshold = _optional_int(row, "Low Stock Threshold")
        fields = {
            "name": name,
            "sku": sku,
            "description": _text(row.get("Description")) or None,
            "cost_price_cents": _cents(row, "Cost Price"),
            "cash_price_cents": _cents(row, "Cash Price"),
            "layaway_price_cents": _cents(row, "Layaway Price"),
            "credit_price_cents": _cents(row, "Credit Price"),
            "low_stock_threshold": threshold if threshold else 5,
            "is_active": active_value != "NO",
        }

        if existing is None:
            product = Product(business_id=business_id, imported_from_batch_id=batch.id, **fields)
            db.session.add(product)
            outcome = ROW_CREATED
        else:
            product = existing
            for key, value in fields.items():
                setattr(product, key, value)
            outcome = ROW_UPDATED
        db.session.flush()

        _apply_shop_columns(product, columns, row, counters)
        append_audit_event(
            business_id=business_id,
            event_type="PRODUCT_CREATED" if outcome == ROW_CREATED else "PRODUCT_UPDATED",
            entity_type="product",
            entity_id=product.id,
            actor_user_id=actor.user_id,
            import_batch_id=batch.id,
            source_row_number=row_number,
            payload={"name": name, "sku": sku},
        )
        return outcome

    return _run_batch(
        business_id=business_id,
        import_type=IMPORT_TYPE_PRODUCTS,
        rows=rows,
        actor=actor,
        source_file_name=source_file_name,
        handle_row=handle_row,
        summary_extra=counters,
    )


def _record_id(value: str, column: str) -> int:
    try:
        return int(float(value))
    except ValueError:
        raise NotFoundError(f'{column} "{value}" not found', field=column)


# =============================================================================
# CUSTOMERS
# =============================================================================

def import_customers(
    *,
    business_id: int,
    rows: list[dict[str, Any]],
    actor: RecorderCapability,
    source_file_name: str | None = None,
) -> dict:
    """
    Columns: Customer ID ("NEW"/empty creates), First Name, Last Name, Phone,
    Shop Slug (required); Email, Address, City, Region, Active ("NO"
    inactive, "DELETE" deactivates).

    Phone numbers stay unique per shop, since purchase and payment imports
    find customers by "Customer Phone".
    """
    shops = _shop_by_slug(business_id)
    counters = {"deactivated": 0}

    def _phone_taken(shop_id: int, phone: str, exclude_id: int | None = None) -> bool:
        q = db.session.query(Customer.id).filter(Customer.shop_id == shop_id, Customer.phone == phone)
        if exclude_id is not None:
            q = q.filter(Customer.id != exclude_id)
        return q.first() is not None

    def handle_row(row: dict, row_number: int, batch: ImportBatch) -> str:
        customer_ref = _text(row.get("Customer ID"))
        first_name = _text(row.get("First Name"))
        last_name = _text(row.get("Last Name"))
        if not first_name and not last_name and not customer_ref:
            return ROW_SKIPPED

        active_value = _text(row.get("Active")).upper()
        is_new = not customer_ref or customer_ref.upper() == NEW_RECORD_MARKER

        existing = None
        if not is_new:
            existing = (
                db.session.query(Customer)
                .filter(Customer.business_id == business_id, Customer.id == _record_id(customer_ref, "Customer ID"))
                .first()
            )
            if not existing:
                raise NotFoundError(f'Customer ID "{customer_ref}" not found', field="Customer ID")

        if active_value == DELETE_MARKER:
            if existing is None:
                return ROW_SKIPPED
            existing.is_active = False
            counters["deactivated"] += 1
            append_audit_event(
                business_id=business_id,
                event_type="CUSTOMER_DEACTIVATED",
                entity_type="customer",
                entity_id=existing.id,
                actor_user_id=actor.user_id,
                import_batch_id=batch.id,
                source_row_number=row_number,
            )
            return ROW_UPDATED

        first_name = _required(row, "First Name")
        last_name = _required(row, "Last Name")
        phone = _required(row, "Phone")
        shop = _resolve_shop(shops, row)
        if _phone_taken(shop.id, phone, exclude_id=existing.id if existing else None):
            raise ValidationError(f'Phone "{phone}" already exists in shop "{shop.name}"', field="Phone")

        fields = {
            "shop_id": shop.id,
            "first_name": first_name,
            "last_name": last_name,
            "phone": phone,
            "email": _text(row.get("Email")) or None,
            "address": _text(row.get("Address")) or None,
            "city": _text(row.get("City")) or None,
            "region": _text(row.get("Region")) or None,
            "is_active": active_value != "NO",
        }

        if existing is None:
            customer = Customer(business_id=business_id, **fields)
            db.session.add(customer)
            outcome = ROW_CREATED
        else:
            customer = existing
            for key, value in fields.items():
                setattr(customer, key, value)
            outcome = ROW_UPDATED
        db.session.flush()

        append_audit_event(
            business_id=business_id,
            event_type="CUSTOMER_CREATED" if outcome == ROW_CREATED else "CUSTOMER_UPDATED",
            entity_type="customer",
            entity_id=customer.id,
            actor_user_id=actor.user_id,
            import_batch_id=batch.id,
            source_row_number=row_number,
            payload={"phone": phone, "shop_slug": shop.shop_slug},
        )
        return outcome

    return _run_batch(
        business_id=business_id,
        import_type=IMPORT_TYPE_CUSTOMERS,
        rows=rows,
        actor=actor,
        source_file_name=source_file_name,
        handle_row=handle_row,
        summary_extra=counters,
    )


# =============================================================================
# BATCH QUERIES
# =============================================================================

def get_batch(batch_id: int, business_id: int) -> ImportBatch:
    batch = db.session.query(ImportBatch).filter_by(id=batch_id, business_id=business_id).first()
    if not batch:
        raise NotFoundError(f"Import batch {batch_id} not found")
    return batch


def list_batches(business_id: int, import_type: str | None = None, limit: int = 50) -> list[ImportBatch]:
    q = db.session.query(ImportBatch).filter(ImportBatch.business_id == business_id)
    if import_type:
        q = q.filter(ImportBatch.import_type == import_type.upper())
    return q.order_by(ImportBatch.created_at.desc(), ImportBatch.id.desc()).limit(limit).all()
