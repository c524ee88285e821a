"""
Tests for spreadsheet exports and the shared reader.
"""

import io

import pytest
from openpyxl import load_workbook

from hpledger.errors import ValidationError
from hpledger.services import export_service, payment_service
from hpledger.spreadsheet import TEMPLATE_SHEET_TITLE, read_rows


class TestExports:

    def test_purchase_export_has_template_sheet(self, business, make_purchase):
        make_purchase(notes="Blue fridge")

        payload = export_service.export_purchases(business.id)
        wb = load_workbook(io.BytesIO(payload))

        assert wb.sheetnames == ["Purchases", TEMPLATE_SHEET_TITLE]
        rows = read_rows(payload, "purchases.xlsx")
        assert len(rows) == 1
        assert rows[0]["Purchase Number"] == "HP-000001"
        assert rows[0]["Total Amount"] == 1100
        assert rows[0]["Products"] == "Fridge"
        assert rows[0]["Unit Prices"] == "1000.00"
        assert rows[0]["Notes"] == "Blue fridge"

    def test_purchase_export_filters_by_status(self, business, make_purchase):
        make_purchase()
        make_purchase(down_payment_cents=110000)

        rows = export_service.purchase_rows(business.id, status="COMPLETED")

        assert [r[0] for r in rows] == ["HP-000002"]

    def test_payment_export(self, business, make_purchase, collector, as_of):
        purchase = make_purchase()
        payment_service.record_payment(purchase.id, 2500, "CARD", "C-1", collector, as_of=as_of)

        rows = read_rows(export_service.export_payments(business.id), "payments.xlsx")

        assert rows[0]["Purchase Number"] == purchase.purchase_number
        assert rows[0]["Amount"] == 25
        assert rows[0]["Status"] == "UNCONFIRMED"
        assert rows[0]["Recorded By"] == "Dan Collector"

    def test_product_export_has_shop_columns(self, business, shop, second_shop, product):
        headers, rows = export_service.product_sheet(business.id)

        assert "[Main Shop] Assigned" in headers
        assert "[Town Branch] Stock" in headers
        row = dict(zip(headers, rows[0]))
        assert row["Product ID"] == product.id
        assert row["[Main Shop] Assigned"] == "✓"
        assert row["[Main Shop] Stock"] == 10
        assert row["[Town Branch] Assigned"] == ""
        assert row["Credit Price"] == 550.0

    def test_customer_export_lists_shops(self, business, shop, second_shop, customer):
        payload = export_service.export_customers(business.id)
        wb = load_workbook(io.BytesIO(payload))

        assert wb.sheetnames == ["Customers", "Shops", TEMPLATE_SHEET_TITLE]
        assert [c.value for c in wb["Shops"][2]] == ["Main Shop", "main"]
        rows = read_rows(payload, "customers.xlsx")
        assert rows[0]["Customer ID"] == customer.id
        assert rows[0]["Phone"] == "0700000001"
        assert rows[0]["Shop Slug"] == "main"
        assert rows[0]["Active"] == "YES"

    def test_customer_export_filters_by_shop(self, business, second_shop, customer):
        assert export_service.customer_rows(business.id, shop_id=second_shop.id) == []


class TestReadRows:

    def test_csv_with_bom_and_blank_lines(self):
        data = "\ufeffShop Slug,Amount\nmain,100\n,\nmain,200\n".encode("utf-8")

        rows = read_rows(data, "payments.csv")

        assert rows == [{"Shop Slug": "main", "Amount": "100"}, {"Shop Slug": "main", "Amount": "200"}]

    def test_unsupported_extension(self):
        with pytest.raises(ValidationError):
            read_rows(b"whatever", "payments.pdf")
