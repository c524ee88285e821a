# Overview: Purchase aggregate: pricing, creation, recomputation and queries.

"""
Purchase Service

LIFECYCLE:
1. Created (sale form, collector cash sale or bulk import) with subtotal and
   interest computed from the business policy
2. Recomputed under a row lock on every confirmed payment, processed refund
   or due-date change
3. Never deleted; only status-transitioned

STATUS (see reconciliation.derive_status):
- PENDING: no confirmed payment yet
- ACTIVE: at least one confirmed payment, balance left
- OVERDUE: due date passed with balance left
- COMPLETED: outstanding balance is exactly zero
"""

from __future__ import annotations

import math
from datetime import date
from typing import Any, Iterable

from ..constants import (
    DAYS_PER_INSTALLMENT,
    DEFAULT_INSTALLMENTS,
    DEFAULT_TENOR_DAYS,
    DELIVERABLE_PURCHASE_TYPES,
    DELIVERY_STATUS_PENDING,
    DOC_TYPE_PURCHASE,
    INTEREST_TYPE_FLAT,
    INTEREST_TYPE_MONTHLY,
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_WALLET,
    PURCHASE_NUMBER_PREFIX,
    PURCHASE_STATUS_ACTIVE,
    PURCHASE_STATUS_PENDING,
    PURCHASE_TYPE_CASH,
    VALID_PAYMENT_METHODS,
    VALID_PURCHASE_STATUSES,
    VALID_PURCHASE_TYPES,
)
from ..errors import NotFoundError, OverpaymentError, ValidationError
from ..extensions import db
from ..models import (
    BusinessPolicy,
    Customer,
    Payment,
    Product,
    Purchase,
    PurchaseItem,
    Refund,
    Shop,
    ShopProduct,
)
from .. import money
from hpledger.time_utils import add_days, utcnow
from .audit_service import append_audit_event
from .concurrency import lock_for_update, run_unit
from .document_service import next_document_number
from .permission_service import RecorderCapability
from .reconciliation import LedgerState, reconcile
from .wallet_service import debit_for_payment


# =============================================================================
# PRICING
# =============================================================================

def get_policy(business_id: int) -> BusinessPolicy | None:
    return db.session.query(BusinessPolicy).filter_by(business_id=business_id).first()


def compute_interest(
    subtotal_cents: int,
    purchase_type: str,
    policy: BusinessPolicy | None,
    installments: int,
) -> int:
    """
    Interest in cents.

    CASH or no policy -> 0
    FLAT    -> subtotal x rate
    MONTHLY -> subtotal x rate x installments
    """
    if purchase_type == PURCHASE_TYPE_CASH or policy is None:
        return 0
    rate_bps = int(policy.interest_rate_bps or 0)
    if rate_bps <= 0:
        return 0
    if policy.interest_type == INTEREST_TYPE_MONTHLY:
        return money.apply_rate_bps(subtotal_cents, rate_bps, periods=max(1, int(installments)))
    if policy.interest_type == INTEREST_TYPE_FLAT:
        return money.apply_rate_bps(subtotal_cents, rate_bps)
    raise ValidationError(f"Unknown interest type {policy.interest_type}", field="interest_type")


def resolve_tenor_days(tenor_days: int | None, policy: BusinessPolicy | None) -> int:
    if tenor_days is not None:
        tenor = int(tenor_days)
        if tenor <= 0:
            raise ValidationError("Tenor must be at least one day", field="tenor_days")
        return tenor
    if policy is not None and policy.max_tenor_days:
        return int(policy.max_tenor_days)
    return DEFAULT_TENOR_DAYS


def resolve_installments(
    purchase_type: str,
    installments: int | None,
    tenor_days: int | None,
    policy: BusinessPolicy | None,
) -> int:
    if purchase_type == PURCHASE_TYPE_CASH:
        return 1
    if installments is not None:
        count = int(installments)
        if count < 1:
            raise ValidationError("Installments must be at least 1", field="installments")
        return count
    if tenor_days:
        return max(1, math.ceil(int(tenor_days) / DAYS_PER_INSTALLMENT))
    if policy is not None and policy.default_installments:
        return int(policy.default_installments)
    return DEFAULT_INSTALLMENTS


def normalize_items(items: Iterable[dict[str, Any]] | None, business_id: int) -> list[dict[str, Any]]:
    """
    Validate line items and fill in product names.

    Each item: product_id (optional), product_name (required without a
    product), quantity >= 1, unit_price_cents >= 0.
    """
    items = list(items or [])
    if not items:
        raise ValidationError("At least one item is required", field="items")

    normalized = []
    for index, item in enumerate(items, start=1):
        try:
            quantity = int(item.get("quantity", 0))
        except (TypeError, ValueError):
            raise ValidationError(f"Item {index}: quantity must be a whole number", field="quantity")
        if quantity < 1:
            raise ValidationError(f"Item {index}: quantity must be at least 1", field="quantity")

        try:
            unit_price = int(item.get("unit_price_cents", 0))
        except (TypeError, ValueError):
            raise ValidationError(f"Item {index}: unit price must be a whole number of cents", field="unit_price")
        if unit_price < 0:
            raise ValidationError(f"Item {index}: unit price cannot be negative", field="unit_price")

        product_id = item.get("product_id")
        name = (item.get("product_name") or "").strip()
        if product_id:
            product = db.session.get(Product, int(product_id))
            if not product or product.business_id != business_id:
                raise NotFoundError(f"Item {index}: product {product_id} not found", field="product_id")
            name = name or product.name
            product_id = product.id
        elif not name:
            raise ValidationError(f"Item {index}: product is required", field="product_name")

        normalized.append({
            "product_id": product_id or None,
            "product_name": name,
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "line_total_cents": money.multiply(unit_price, quantity),
        })
    return normalized


def _decrement_stock(shop_id: int, items: list[dict[str, Any]]) -> None:
    """CASH sales hand goods over immediately, so stock leaves the shop now."""
    for item in items:
        if not item["product_id"]:
            continue
        shop_product = lock_for_update(
            db.session.query(ShopProduct).filter_by(shop_id=shop_id, product_id=item["product_id"])
        ).first()
        if not shop_product or not shop_product.is_active:
            raise ValidationError(f"{item['product_name']} is not stocked in this shop", field="items")
        if shop_product.stock_quantity < item["quantity"]:
            raise ValidationError(
                f"Insufficient stock for {item['product_name']} "
                f"(available {shop_product.stock_quantity}, requested {item['quantity']})",
                field="items",
            )
        shop_product.stock_quantity -= item["quantity"]


# =============================================================================
# RECOMPUTATION
# =============================================================================

def lock_purchase(purchase_id: int, business_id: int | None = None) -> Purchase:
    q = db.session.query(Purchase).filter(Purchase.id == purchase_id)
    if business_id is not None:
        q = q.filter(Purchase.business_id == business_id)
    purchase = lock_for_update(q).first()
    if not purchase:
        raise NotFoundError(f"Purchase {purchase_id} not found", field="purchase_id")
    return purchase


def ledger_state(purchase: Purchase, as_of: date | None = None) -> LedgerState:
    payments = db.session.query(Payment).filter(Payment.purchase_id == purchase.id).all()
    refunds = db.session.query(Refund).filter(Refund.purchase_id == purchase.id).all()
    return reconcile(
        purchase.total_cents,
        payments,
        refunds,
        purchase.due_date,
        as_of or utcnow().date(),
        purchase_type=purchase.purchase_type,
    )


def recalculate_locked(purchase: Purchase, as_of: date | None = None) -> LedgerState:
    """
    Re-derive paid/refunded/outstanding/status on an already locked purchase.

    Idempotent: unchanged inputs write unchanged values, which SQLAlchemy does
    not turn into an UPDATE.
    """
    state = ledger_state(purchase, as_of)
    purchase.amount_paid_cents = state.amount_paid_cents
    purchase.refunded_cents = state.refunded_cents
    purchase.outstanding_cents = state.outstanding_cents
    purchase.status = state.status
    purchase.waybill_eligible = state.waybill_eligible
    if purchase.purchase_type in DELIVERABLE_PURCHASE_TYPES and purchase.delivery_status is None:
        purchase.delivery_status = DELIVERY_STATUS_PENDING
    db.session.flush()
    return state


def recalculate_purchase(purchase_id: int, as_of: date | None = None, commit: bool = True) -> Purchase:
    def _op() -> Purchase:
        purchase = lock_purchase(purchase_id)
        before = (purchase.status, purchase.outstanding_cents)
        state = recalculate_locked(purchase, as_of)
        if before != (state.status, state.outstanding_cents):
            append_audit_event(
                business_id=purchase.business_id,
                event_type="PURCHASE_RECALCULATED",
                entity_type="purchase",
                entity_id=purchase.id,
                purchase_id=purchase.id,
                payload={"status": state.status, "outstanding_cents": state.outstanding_cents},
            )
        return purchase

    return run_unit(_op, commit=commit)


def mark_overdue_purchases(business_id: int | None = None, as_of: date | None = None, commit: bool = True) -> int:
    """Scheduled sweep: flip PENDING/ACTIVE purchases past their due date to OVERDUE."""
    as_of = as_of or utcnow().date()

    def _op() -> int:
        q = (
            db.session.query(Purchase.id)
            .filter(Purchase.status.in_([PURCHASE_STATUS_PENDING, PURCHASE_STATUS_ACTIVE]))
            .filter(Purchase.due_date < as_of)
            .filter(Purchase.outstanding_cents > 0)
        )
        if business_id is not None:
            q = q.filter(Purchase.business_id == business_id)

        flipped = 0
        for (purchase_id,) in q.order_by(Purchase.id.asc()).all():
            purchase = lock_purchase(purchase_id)
            previous = purchase.status
            state = recalculate_locked(purchase, as_of)
            if state.status != previous:
                flipped += 1
                append_audit_event(
                    business_id=purchase.business_id,
                    event_type="PURCHASE_OVERDUE",
                    entity_type="purchase",
                    entity_id=purchase.id,
                    purchase_id=purchase.id,
                    payload={"from": previous, "to": state.status, "as_of": as_of.isoformat()},
                )
        return flipped

    return run_unit(_op, commit=commit)


# =============================================================================
# CREATION
# =============================================================================

def create_purchase(
    *,
    business_id: int,
    shop_id: int,
    customer_id: int,
    items: list[dict[str, Any]],
    creator: RecorderCapability,
    purchase_type: str = "CREDIT",
    down_payment_cents: int = 0,
    down_payment_method: str = PAYMENT_METHOD_CASH,
    tenor_days: int | None = None,
    installments: int | None = None,
    start_date: date | None = None,
    due_date: date | None = None,
    notes: str | None = None,
    imported_from_batch_id: int | None = None,
    as_of: date | None = None,
    commit: bool = True,
) -> Purchase:
    """
    Create a purchase, its items and its down payment in one transaction.

    total = subtotal + interest; the down payment is stored as an already
    confirmed Payment so it flows through the same reconciliation as every
    later payment.
    """
    purchase_type = (purchase_type or "").strip().upper()
    if purchase_type not in VALID_PURCHASE_TYPES:
        raise ValidationError(f"Invalid purchase type: {purchase_type or '(empty)'}", field="purchase_type")
    down_payment_cents = int(down_payment_cents or 0)
    if down_payment_cents < 0:
        raise ValidationError("Down payment cannot be negative", field="down_payment")
    down_payment_method = (down_payment_method or PAYMENT_METHOD_CASH).strip().upper()
    if down_payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {down_payment_method}", field="payment_method")

    def _op() -> Purchase:
        shop = db.session.get(Shop, shop_id)
        if not shop or shop.business_id != business_id:
            raise NotFoundError(f"Shop {shop_id} not found", field="shop_id")
        customer = db.session.get(Customer, customer_id)
        if not customer or customer.business_id != business_id:
            raise NotFoundError(f"Customer {customer_id} not found", field="customer_id")
        if customer.shop_id != shop.id:
            raise ValidationError("Customer does not belong to this shop", field="customer_id")

        lines = normalize_items(items, business_id)
        policy = get_policy(business_id)
        tenor = resolve_tenor_days(tenor_days, policy)
        count = resolve_installments(purchase_type, installments, tenor_days, policy)

        subtotal = money.sum_cents(line["line_total_cents"] for line in lines)
        interest = compute_interest(subtotal, purchase_type, policy, count)
        total = money.add(subtotal, interest)
        if down_payment_cents > total:
            raise OverpaymentError(
                "Down payment exceeds the purchase total",
                field="down_payment",
                details={"total_cents": total, "down_payment_cents": down_payment_cents},
            )

        start = start_date or utcnow().date()
        due = due_date or add_days(start, tenor)
        if due < start:
            raise ValidationError("Due date cannot be before the start date", field="due_date")

        if purchase_type == PURCHASE_TYPE_CASH:
            _decrement_stock(shop.id, lines)

        purchase = Purchase(
            business_id=business_id,
            shop_id=shop.id,
            customer_id=customer.id,
            purchase_number=next_document_number(
                business_id=business_id,
                document_type=DOC_TYPE_PURCHASE,
                prefix=PURCHASE_NUMBER_PREFIX,
            ),
            purchase_type=purchase_type,
            status=PURCHASE_STATUS_PENDING,
            subtotal_cents=subtotal,
            interest_cents=interest,
            total_cents=total,
            down_payment_cents=down_payment_cents,
            outstanding_cents=total,
            interest_type=policy.interest_type if policy and interest else None,
            interest_rate_bps=int(policy.interest_rate_bps or 0) if policy and interest else 0,
            installments=count,
            tenor_days=tenor,
            start_date=start,
            due_date=due,
            notes=notes,
            delivery_status=DELIVERY_STATUS_PENDING if purchase_type in DELIVERABLE_PURCHASE_TYPES else None,
            created_by_user_id=creator.user_id,
            imported_from_batch_id=imported_from_batch_id,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            db.session.add(PurchaseItem(purchase_id=purchase.id, **line))

        if down_payment_cents > 0:
            now = utcnow()
            payment = Payment(
                purchase_id=purchase.id,
                amount_cents=down_payment_cents,
                payment_method=down_payment_method,
                reference="Down payment",
                paid_at=now,
                is_down_payment=True,
                recorded_by_user_id=creator.user_id,
                recorded_by_role=creator.role,
                is_confirmed=True,
                confirmed_at=now,
                confirmed_by_user_id=creator.user_id,
                imported_from_batch_id=imported_from_batch_id,
            )
            db.session.add(payment)
            db.session.flush()
            if down_payment_method == PAYMENT_METHOD_WALLET:
                debit_for_payment(customer, down_payment_cents, payment.id, creator.user_id, purchase.purchase_number)

        state = recalculate_locked(purchase, as_of)
        append_audit_event(
            business_id=business_id,
            event_type="PURCHASE_CREATED",
            entity_type="purchase",
            entity_id=purchase.id,
            actor_user_id=creator.user_id,
            purchase_id=purchase.id,
            import_batch_id=imported_from_batch_id,
            payload={
                "purchase_number": purchase.purchase_number,
                "total_cents": total,
                "down_payment_cents": down_payment_cents,
                "status": state.status,
            },
        )
        return purchase

    return run_unit(_op, commit=commit)


def update_purchase_details(
    purchase_id: int,
    actor: RecorderCapability,
    *,
    notes: str | None = None,
    due_date: date | None = None,
    as_of: date | None = None,
    commit: bool = True,
) -> Purchase:
    """Edit the non-financial fields. Totals and payments are never touched here."""

    def _op() -> Purchase:
        purchase = lock_purchase(purchase_id, actor.business_id)
        changed = {}
        if notes is not None and notes != (purchase.notes or ""):
            purchase.notes = notes
            changed["notes"] = notes
        if due_date is not None and due_date != purchase.due_date:
            if due_date < purchase.start_date:
                raise ValidationError("Due date cannot be before the start date", field="due_date")
            purchase.due_date = due_date
            changed["due_date"] = due_date.isoformat()
        if changed:
            recalculate_locked(purchase, as_of)
            append_audit_event(
                business_id=purchase.business_id,
                event_type="PURCHASE_UPDATED",
                entity_type="purchase",
                entity_id=purchase.id,
                actor_user_id=actor.user_id,
                purchase_id=purchase.id,
                payload=changed,
            )
        return purchase

    return run_unit(_op, commit=commit)


# =============================================================================
# QUERIES
# =============================================================================

def get_purchase(purchase_id: int, business_id: int | None = None) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if not purchase or (business_id is not None and purchase.business_id != business_id):
        raise NotFoundError(f"Purchase {purchase_id} not found", field="purchase_id")
    return purchase


def find_purchase_by_number(business_id: int, purchase_number: str) -> Purchase | None:
    return (
        db.session.query(Purchase)
        .filter_by(business_id=business_id, purchase_number=(purchase_number or "").strip())
        .first()
    )


def get_purchase_summary(purchase_id: int, business_id: int | None = None) -> dict:
    purchase = get_purchase(purchase_id, business_id)
    data = purchase.to_dict()
    data["customer"] = purchase.customer.to_dict() if purchase.customer else None
    data["shop"] = purchase.shop.to_dict() if purchase.shop else None
    data["items"] = [item.to_dict() for item in purchase.items]
    data["payments"] = [p.to_dict() for p in purchase.payments]
    data["refunds"] = [r.to_dict() for r in purchase.refunds]
    data["waybill"] = purchase.waybill.to_dict() if purchase.waybill else None
    return data


def list_purchases(
    business_id: int,
    status: str | None = None,
    shop_id: int | None = None,
    customer_id: int | None = None,
    purchase_type: str | None = None,
) -> list[Purchase]:
    q = db.session.query(Purchase).filter(Purchase.business_id == business_id)
    if status:
        status = status.upper()
        if status not in VALID_PURCHASE_STATUSES:
            raise ValidationError(f"Invalid status filter: {status}", field="status")
        q = q.filter(Purchase.status == status)
    if shop_id is not None:
        q = q.filter(Purchase.shop_id == shop_id)
    if customer_id is not None:
        q = q.filter(Purchase.customer_id == customer_id)
    if purchase_type:
        q = q.filter(Purchase.purchase_type == purchase_type.upper())
    return q.order_by(Purchase.created_at.desc(), Purchase.id.desc()).all()
