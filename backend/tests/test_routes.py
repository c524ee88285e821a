"""
HTTP boundary tests: identity, permission checks and error mapping.
"""

import io

from hpledger.services import payment_service


def _create_purchase(client, headers, user, shop, customer, **extra):
    body = {
        "shop_id": shop.id,
        "customer_id": customer.id,
        "items": [{"product_name": "Fridge", "quantity": 1, "unit_price": "1000.00"}],
    }
    body.update(extra)
    return client.post("/api/purchases/", json=body, headers=headers(user))


class TestIdentity:

    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "ok"

    def test_missing_header_is_401(self, client, db_session):
        response = client.get("/api/purchases/")
        assert response.status_code == 401

    def test_inactive_user_is_401(self, client, db_session, collector_user):
        collector_user.is_active = False
        db_session.commit()

        response = client.get("/api/purchases/", headers={"X-User-Id": str(collector_user.id)})

        assert response.status_code == 401


class TestPurchaseRoutes:

    def test_create_and_fetch(self, client, headers, admin_user, shop, customer):
        response = _create_purchase(client, headers, admin_user, shop, customer, down_payment="100")

        assert response.status_code == 201
        purchase = response.get_json()["purchase"]
        assert purchase["total_cents"] == 110000
        assert purchase["amount_paid_cents"] == 10000
        assert purchase["items"][0]["unit_price_cents"] == 100000

        fetched = client.get(f"/api/purchases/{purchase['id']}", headers=headers(admin_user))
        assert fetched.get_json()["purchase"]["purchase_number"] == "HP-000001"

    def test_validation_error_is_400(self, client, headers, admin_user, shop, customer):
        response = _create_purchase(client, headers, admin_user, shop, customer, items=[])

        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_down_payment_over_total_is_409(self, client, headers, admin_user, shop, customer):
        response = _create_purchase(client, headers, admin_user, shop, customer, down_payment_cents=200000)

        assert response.status_code == 409
        assert response.get_json()["code"] == "OVERPAYMENT"

    def test_other_tenant_sees_404(self, client, headers, make_purchase, other_business):
        purchase = make_purchase()

        response = client.get(f"/api/purchases/{purchase.id}", headers=headers(other_business.users[0]))

        assert response.status_code == 404


class TestPaymentRoutes:

    def test_collector_records_and_accountant_confirms(
        self, client, headers, make_purchase, collector_user, accountant_user
    ):
        purchase = make_purchase()

        recorded = client.post(
            "/api/payments/",
            json={"purchase_id": purchase.id, "amount": "500", "method": "MOBILE_MONEY", "reference": "MP-1"},
            headers=headers(collector_user),
        )
        assert recorded.status_code == 201
        payment = recorded.get_json()["payment"]
        assert payment["state"] == "UNCONFIRMED"

        denied = client.post(f"/api/payments/{payment['id']}/confirm", headers=headers(collector_user))
        assert denied.status_code == 403
        assert denied.get_json()["code"] == "PERMISSION_DENIED"

        confirmed = client.post(f"/api/payments/{payment['id']}/confirm", headers=headers(accountant_user))
        assert confirmed.status_code == 200
        assert confirmed.get_json()["payment"]["state"] == "CONFIRMED"

        again = client.post(f"/api/payments/{payment['id']}/confirm", headers=headers(accountant_user))
        assert again.status_code == 409
        assert again.get_json()["code"] == "ALREADY_PROCESSED"

        summary = client.get(f"/api/payments/purchase/{purchase.id}/summary", headers=headers(accountant_user))
        assert summary.get_json()["summary"]["outstanding_cents"] == 60000

    def test_overpayment_is_409(self, client, headers, make_purchase, admin_user):
        purchase = make_purchase()

        response = client.post(
            "/api/payments/",
            json={"purchase_id": purchase.id, "amount_cents": 120000},
            headers=headers(admin_user),
        )

        assert response.status_code == 409
        assert response.get_json()["details"]["outstanding_cents"] == 110000

    def test_non_finite_amount_is_400(self, client, headers, make_purchase, admin_user):
        purchase = make_purchase()

        response = client.post(
            "/api/payments/",
            json={"purchase_id": purchase.id, "amount": "-inf"},
            headers=headers(admin_user),
        )

        assert response.status_code == 400
        assert response.get_json()["code"] == "VALIDATION_ERROR"

    def test_non_numeric_purchase_id_is_400(self, client, headers, admin_user, db_session):
        response = client.post("/api/payments/", json={"purchase_id": "abc", "amount": 1}, headers=headers(admin_user))
        assert response.status_code == 400

    def test_receipt(self, client, headers, make_purchase, admin, admin_user, as_of):
        purchase = make_purchase()
        payment = payment_service.record_payment(purchase.id, 10000, "CASH", None, admin, as_of=as_of)

        response = client.get(f"/api/receipts/payments/{payment.id}", headers=headers(admin_user))

        assert response.status_code == 200
        assert response.get_json()["receipt"]["new_balance"]["cents"] == 100000


class TestRefundRoutes:

    def test_refund_lifecycle(self, client, headers, make_purchase, collector_user, accountant_user):
        purchase = make_purchase(down_payment_cents=50000)

        created = client.post(
            "/api/refunds/",
            json={
                "purchase_id": purchase.id,
                "customer_id": purchase.customer_id,
                "reason": "PRODUCT_DEFECT",
                "amount": "200",
            },
            headers=headers(collector_user),
        )
        assert created.status_code == 201
        refund_id = created.get_json()["refund"]["id"]

        assert client.post(f"/api/refunds/{refund_id}/approve", headers=headers(collector_user)).status_code == 403
        assert client.post(f"/api/refunds/{refund_id}/approve", headers=headers(accountant_user)).status_code == 200

        processed = client.post(
            f"/api/refunds/{refund_id}/process",
            json={"transaction_reference": "MPESA123"},
            headers=headers(collector_user),
        )
        assert processed.status_code == 200
        assert processed.get_json()["refund"]["status"] == "PROCESSED"


class TestImportRoutes:

    def test_csv_upload(self, client, headers, admin_user, customer):
        csv_text = (
            "Shop Slug,Customer Phone,Products,Quantities,Unit Prices\n"
            "main,0700000001,Fridge,1,1000\n"
            "ghost,0700000001,Fridge,1,1000\n"
        )

        response = client.post(
            "/api/imports/purchases",
            data={"file": (io.BytesIO(csv_text.encode("utf-8")), "book.csv"), "as_of": "2026-03-01"},
            headers=headers(admin_user),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        summary = response.get_json()["summary"]
        assert summary["created"] == 1
        assert summary["errors"] == ['Row 3: Shop "ghost" not found']

        batches = client.get("/api/imports/batches", headers=headers(admin_user)).get_json()["batches"]
        assert batches[0]["id"] == summary["batch_id"]

    def test_missing_file(self, client, headers, admin_user):
        response = client.post("/api/imports/purchases", data={}, headers=headers(admin_user))
        assert response.status_code == 400

    def test_customer_upload(self, client, headers, admin_user, shop, customer):
        csv_text = (
            "Customer ID,First Name,Last Name,Phone,Shop Slug\n"
            "NEW,Peter,Otieno,0711000002,main\n"
            "NEW,Copy,Jane,0700000001,main\n"
        )

        response = client.post(
            "/api/imports/customers",
            data={"file": (io.BytesIO(csv_text.encode("utf-8")), "customers.csv")},
            headers=headers(admin_user),
            content_type="multipart/form-data",
        )

        assert response.status_code == 200
        summary = response.get_json()["summary"]
        assert summary["created"] == 1
        assert summary["errors"] == ['Row 3: Phone "0700000001" already exists in shop "Main Shop"']

        export = client.get("/api/imports/exports/customers", headers=headers(admin_user))
        assert export.status_code == 200
        assert "customers-" in export.headers["Content-Disposition"]

    def test_product_export_download(self, client, headers, admin_user, product):
        response = client.get("/api/imports/exports/products", headers=headers(admin_user))

        assert response.status_code == 200
        assert response.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert "attachment" in response.headers["Content-Disposition"]
