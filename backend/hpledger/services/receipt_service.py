# Overview: Structured receipt data for payments and wallet deposits (rendering happens elsewhere).

from __future__ import annotations

from ..constants import PAYMENT_STATE_CONFIRMED, REFUND_STATUS_PROCESSED, WALLET_TXN_DEPOSIT
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Business, Payment, Refund, Shop, User
from .. import money
from hpledger.time_utils import to_iso_date, to_utc_z
from .wallet_service import get_wallet_transaction


def _person(user_id: int | None) -> dict | None:
    if not user_id:
        return None
    user = db.session.get(User, user_id)
    if not user:
        return None
    return {"id": user.id, "name": user.name, "role": user.role}


def _amount(cents: int) -> dict:
    return {"cents": int(cents), "formatted": money.format_amount(cents)}


def _balance_before(payment: Payment) -> int:
    """
    Outstanding balance just before a confirmed payment was applied.

    Replays confirmed payments (ordered by confirmation time) and processed
    refunds up to the moment this payment was confirmed.
    """
    purchase = payment.purchase
    earlier_payments = [
        p for p in purchase.payments
        if p.state == PAYMENT_STATE_CONFIRMED
        and p.id != payment.id
        and (p.confirmed_at, p.id) < (payment.confirmed_at, payment.id)
    ]
    earlier_refunds = (
        db.session.query(Refund)
        .filter(Refund.purchase_id == purchase.id)
        .filter(Refund.status == REFUND_STATUS_PROCESSED)
        .filter(Refund.processed_at <= payment.confirmed_at)
        .all()
    )
    paid = money.sum_cents(p.amount_cents for p in earlier_payments)
    refunded = money.sum_cents(r.amount_cents for r in earlier_refunds)
    return max(0, purchase.total_cents - paid - refunded)


def build_payment_receipt(payment_id: int, business_id: int | None = None) -> dict:
    payment = db.session.get(Payment, payment_id)
    if not payment or (business_id is not None and payment.purchase.business_id != business_id):
        raise NotFoundError(f"Payment {payment_id} not found", field="payment_id")

    purchase = payment.purchase
    customer = purchase.customer
    shop = db.session.get(Shop, purchase.shop_id)
    business = db.session.get(Business, purchase.business_id)

    if payment.state == PAYMENT_STATE_CONFIRMED:
        previous = _balance_before(payment)
        new_balance = max(0, previous - payment.amount_cents)
    else:
        # Not applied yet; the receipt shows the balance it will reduce.
        previous = purchase.outstanding_cents
        new_balance = purchase.outstanding_cents

    return {
        "receipt_type": "PAYMENT",
        "receipt_number": f"{purchase.purchase_number}-P{payment.id}",
        "business": {"id": business.id, "name": business.name},
        "shop": {"id": shop.id, "name": shop.name, "slug": shop.shop_slug},
        "customer": {
            "id": customer.id,
            "name": customer.full_name,
            "phone": customer.phone,
            "address": customer.address,
            "city": customer.city,
            "region": customer.region,
        },
        "purchase": {
            "id": purchase.id,
            "purchase_number": purchase.purchase_number,
            "purchase_type": purchase.purchase_type,
            "total": _amount(purchase.total_cents),
            "due_date": to_iso_date(purchase.due_date),
            "status": purchase.status,
        },
        "items": [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": _amount(item.unit_price_cents),
                "line_total": _amount(item.line_total_cents),
            }
            for item in purchase.items
        ],
        "payment": {
            "id": payment.id,
            "amount": _amount(payment.amount_cents),
            "method": payment.payment_method,
            "reference": payment.reference,
            "state": payment.state,
            "paid_at": to_utc_z(payment.paid_at),
            "confirmed_at": to_utc_z(payment.confirmed_at),
            "notes": payment.notes,
        },
        "previous_balance": _amount(previous),
        "new_balance": _amount(new_balance),
        "recorded_by": _person(payment.recorded_by_user_id),
        "recorded_by_role": payment.recorded_by_role,
        "confirmed_by": _person(payment.confirmed_by_user_id),
        "waybill_number": purchase.waybill.waybill_number if purchase.waybill else None,
    }


def build_wallet_deposit_receipt(transaction_id: int, business_id: int | None = None) -> dict:
    txn = get_wallet_transaction(transaction_id, business_id)
    if txn.type != WALLET_TXN_DEPOSIT:
        raise ValidationError("Receipts are only issued for wallet deposits", field="transaction_id")

    customer = txn.customer
    shop = db.session.get(Shop, txn.shop_id)
    business = db.session.get(Business, customer.business_id)
    before = txn.balance_before_cents if txn.balance_before_cents is not None else customer.wallet_balance_cents
    after = txn.balance_after_cents if txn.balance_after_cents is not None else customer.wallet_balance_cents

    return {
        "receipt_type": "WALLET_DEPOSIT",
        "receipt_number": f"WD-{txn.id:06d}",
        "business": {"id": business.id, "name": business.name},
        "shop": {"id": shop.id, "name": shop.name, "slug": shop.shop_slug},
        "customer": {"id": customer.id, "name": customer.full_name, "phone": customer.phone},
        "amount": _amount(txn.amount_cents),
        "previous_balance": _amount(before),
        "new_balance": _amount(after),
        "status": txn.status,
        "reference": txn.reference,
        "description": txn.description,
        "recorded_by": _person(txn.created_by_user_id),
        "confirmed_by": _person(txn.confirmed_by_user_id),
        "created_at": to_utc_z(txn.created_at),
        "confirmed_at": to_utc_z(txn.confirmed_at),
    }
