"""
Tests for purchase creation, pricing and recomputation.
"""

from datetime import date

import pytest

from hpledger.constants import INTEREST_TYPE_MONTHLY
from hpledger.errors import NotFoundError, OverpaymentError, ValidationError
from hpledger.models import BusinessPolicy, Customer, Purchase, ShopProduct
from hpledger.services import audit_service, purchase_service


class TestCreatePurchase:
    """Pricing and initial state."""

    def test_credit_purchase_with_flat_interest(self, make_purchase):
        """100000 subtotal at FLAT 10% -> 110000 total, nothing paid yet."""
        purchase = make_purchase()

        assert purchase.purchase_number == "HP-000001"
        assert purchase.subtotal_cents == 100000
        assert purchase.interest_cents == 10000
        assert purchase.total_cents == 110000
        assert purchase.outstanding_cents == 110000
        assert purchase.amount_paid_cents == 0
        assert purchase.status == "PENDING"
        assert purchase.installments == 3
        assert purchase.due_date == date(2026, 5, 30)

    def test_numbers_are_sequential(self, make_purchase):
        first = make_purchase()
        second = make_purchase()
        assert (first.purchase_number, second.purchase_number) == ("HP-000001", "HP-000002")

    def test_monthly_interest_scales_with_installments(self, db_session, business, make_purchase):
        policy = db_session.query(BusinessPolicy).filter_by(business_id=business.id).one()
        policy.interest_type = INTEREST_TYPE_MONTHLY
        policy.interest_rate_bps = 200
        db_session.commit()

        purchase = make_purchase(installments=4)

        assert purchase.interest_cents == 8000
        assert purchase.total_cents == 108000

    def test_installments_derived_from_tenor(self, make_purchase):
        purchase = make_purchase(tenor_days=75)
        assert purchase.installments == 3
        assert purchase.tenor_days == 75

    def test_down_payment_is_a_confirmed_payment(self, make_purchase):
        purchase = make_purchase(down_payment_cents=30000)

        assert purchase.amount_paid_cents == 30000
        assert purchase.outstanding_cents == 80000
        assert purchase.status == "ACTIVE"
        assert len(purchase.payments) == 1
        assert purchase.payments[0].is_down_payment
        assert purchase.payments[0].state == "CONFIRMED"

    def test_down_payment_above_total_is_refused(self, db_session, make_purchase):
        with pytest.raises(OverpaymentError):
            make_purchase(down_payment_cents=120000)
        db_session.rollback()

        assert db_session.query(Purchase).count() == 0

    def test_cash_purchase_has_no_interest_and_takes_stock(self, db_session, shop, product, make_purchase):
        purchase = make_purchase(
            purchase_type="CASH",
            items=[{"product_id": product.id, "quantity": 2, "unit_price_cents": 50000}],
        )

        assert purchase.interest_cents == 0
        assert purchase.total_cents == 100000
        assert purchase.installments == 1
        assert purchase.delivery_status == "PENDING"
        assert purchase.items[0].product_name == "Solar Lamp"
        stock = db_session.query(ShopProduct).filter_by(shop_id=shop.id, product_id=product.id).one()
        assert stock.stock_quantity == 8

    def test_cash_purchase_beyond_stock_is_refused(self, db_session, product, make_purchase):
        with pytest.raises(ValidationError) as exc:
            make_purchase(
                purchase_type="CASH",
                items=[{"product_id": product.id, "quantity": 11, "unit_price_cents": 50000}],
            )
        db_session.rollback()

        assert "Insufficient stock" in exc.value.message

    def test_customer_must_belong_to_shop(self, second_shop, make_purchase):
        with pytest.raises(ValidationError) as exc:
            make_purchase(shop_id=second_shop.id)
        assert exc.value.field == "customer_id"

    def test_customer_of_another_business_is_not_found(self, db_session, other_business, make_purchase):
        foreign_shop = other_business.shops[0]
        stranger = Customer(
            business_id=other_business.id,
            shop_id=foreign_shop.id,
            first_name="Sam",
            last_name="Stranger",
            phone="0799999999",
        )
        db_session.add(stranger)
        db_session.commit()

        with pytest.raises(NotFoundError):
            make_purchase(customer_id=stranger.id)

    @pytest.mark.parametrize("items", [
        [],
        [{"product_name": "Fridge", "quantity": 0, "unit_price_cents": 100}],
        [{"product_name": "", "quantity": 1, "unit_price_cents": 100}],
        [{"product_name": "Fridge", "quantity": 1, "unit_price_cents": -1}],
    ])
    def test_invalid_items(self, make_purchase, items):
        with pytest.raises(ValidationError):
            make_purchase(items=items)

    def test_creation_is_audited(self, business, make_purchase):
        purchase = make_purchase()
        events = audit_service.list_audit_events(business_id=business.id, purchase_id=purchase.id)
        assert [e.event_type for e in events] == ["PURCHASE_CREATED"]


class TestRecalculation:

    def test_recalculate_is_idempotent(self, make_purchase, as_of):
        purchase = make_purchase(down_payment_cents=10000)
        version = purchase.version_id

        again = purchase_service.recalculate_purchase(purchase.id, as_of=as_of)

        assert again.outstanding_cents == 100000
        assert again.status == "ACTIVE"
        assert again.version_id == version

    def test_mark_overdue(self, business, make_purchase):
        late = make_purchase()
        paid = make_purchase(down_payment_cents=110000)

        flipped = purchase_service.mark_overdue_purchases(business_id=business.id, as_of=date(2026, 6, 15))

        assert flipped == 1
        assert purchase_service.get_purchase(late.id).status == "OVERDUE"
        assert purchase_service.get_purchase(paid.id).status == "COMPLETED"

    def test_extending_due_date_clears_overdue(self, admin, make_purchase):
        purchase = make_purchase()
        purchase_service.mark_overdue_purchases(as_of=date(2026, 6, 15))

        updated = purchase_service.update_purchase_details(
            purchase.id, admin, due_date=date(2026, 7, 31), as_of=date(2026, 6, 15)
        )

        assert updated.status == "PENDING"
        assert updated.due_date == date(2026, 7, 31)

    def test_due_date_before_start_is_refused(self, admin, make_purchase):
        purchase = make_purchase()
        with pytest.raises(ValidationError):
            purchase_service.update_purchase_details(purchase.id, admin, due_date=date(2026, 1, 1))


class TestQueries:

    def test_list_filters_by_status(self, business, make_purchase):
        make_purchase()
        make_purchase(down_payment_cents=110000)

        completed = purchase_service.list_purchases(business.id, status="completed")

        assert len(completed) == 1
        assert completed[0].status == "COMPLETED"

    def test_get_purchase_is_tenant_scoped(self, other_business, make_purchase):
        purchase = make_purchase()
        with pytest.raises(NotFoundError):
            purchase_service.get_purchase(purchase.id, other_business.id)

    def test_summary_includes_children(self, make_purchase):
        purchase = make_purchase(down_payment_cents=5000)
        summary = purchase_service.get_purchase_summary(purchase.id)

        assert summary["customer"]["phone"] == "0700000001"
        assert len(summary["items"]) == 1
        assert len(summary["payments"]) == 1
        assert summary["waybill"] is None
