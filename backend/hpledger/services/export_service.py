# Overview: Read-only spreadsheet exports of purchases, payments, products and customers.

from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import Customer, Payment, Product, Purchase, Shop, ShopProduct, User
from .. import money
from ..spreadsheet import SheetSpec, TEMPLATE_SHEET_TITLE, build_workbook
from hpledger.time_utils import to_iso_date, to_utc_z

PURCHASE_COLUMNS = [
    "Purchase Number", "Shop Slug", "Shop Name", "Customer Name", "Customer Phone",
    "Products", "SKUs", "Quantities", "Unit Prices", "Purchase Type",
    "Subtotal", "Interest Amount", "Total Amount", "Down Payment", "Amount Paid",
    "Outstanding", "Installments", "Status", "Start Date", "Due Date", "Notes", "Created At",
]

PAYMENT_COLUMNS = [
    "Shop Slug", "Customer Phone", "Purchase Number", "Amount", "Payment Method",
    "Reference", "Date", "Notes", "Status", "Recorded By", "Confirmed By", "Confirmed At",
]

PRODUCT_COLUMNS = [
    "Product ID", "Name", "SKU", "Description", "Cost Price", "Cash Price",
    "Layaway Price", "Credit Price", "Low Stock Threshold", "Active",
]

CUSTOMER_COLUMNS = [
    "Customer ID", "First Name", "Last Name", "Phone", "Email", "Address", "City",
    "Region", "Shop Name", "Shop Slug", "Wallet Balance", "Active", "Created At",
]

# (column, required, description) rows for the "Import Template" sheet
PURCHASE_TEMPLATE = [
    ("Shop Slug", "Required", "Slug of the shop the customer belongs to"),
    ("Customer Phone", "Required", "Phone number of an existing customer in that shop"),
    ("Products", "Required", "Product names separated by semicolons"),
    ("Quantities", "Required", "Quantities in the same order (missing entries default to 1)"),
    ("Unit Prices", "Required", "Unit prices in the same order (missing entries default to 0)"),
    ("Purchase Type", "Optional", "CASH, LAYAWAY or CREDIT (default CREDIT)"),
    ("Down Payment", "Optional", "Amount paid at sale time"),
    ("Amount Paid", "Optional", "Further amount already collected"),
    ("Installments", "Optional", "Number of installments (default from policy)"),
    ("Due Date", "Optional", "YYYY-MM-DD (default start date + policy tenor)"),
    ("Notes", "Optional", "Free text"),
    ("Purchase Number", "Optional", "Existing number: only Notes and Due Date are updated"),
]

PAYMENT_TEMPLATE = [
    ("Shop Slug", "Required", "Slug of the shop"),
    ("Customer Phone", "Required", "Phone number of the customer"),
    ("Purchase Number", "Required", "Purchase the payment applies to"),
    ("Amount", "Required", "Greater than 0 and not above the outstanding balance"),
    ("Payment Method", "Optional", "CASH, MOBILE_MONEY, BANK_TRANSFER or CARD (default CASH)"),
    ("Reference", "Optional", "Transaction reference"),
    ("Date", "Optional", "YYYY-MM-DD (default today)"),
    ("Notes", "Optional", "Free text"),
]

PRODUCT_TEMPLATE = [
    ("Product ID", "Optional", "NEW or empty creates a product; an existing ID updates it"),
    ("Name", "Required", "Product name"),
    ("SKU", "Optional", "Unique within the business"),
    ("Description", "Optional", "Free text"),
    ("Cost Price", "Optional", "Default 0"),
    ("Cash Price", "Optional", "Default 0"),
    ("Layaway Price", "Optional", "Default 0"),
    ("Credit Price", "Optional", "Default 0"),
    ("Low Stock Threshold", "Optional", "Default 5"),
    ("Active", "Optional", "YES, NO, or DELETE to deactivate"),
    ("[Shop Name] Assigned", "Optional", "✓, Y, YES, 1 or TRUE assigns the product to that shop"),
    ("[Shop Name] Stock", "Optional", "Stock quantity in that shop"),
]

CUSTOMER_TEMPLATE = [
    ("Customer ID", "Optional", "NEW or empty creates a customer; an existing ID updates it"),
    ("First Name", "Required", "Customer first name"),
    ("Last Name", "Required", "Customer last name"),
    ("Phone", "Required", "Unique within the shop"),
    ("Email", "Optional", "Contact email"),
    ("Address", "Optional", "Street address"),
    ("City", "Optional", "City or town"),
    ("Region", "Optional", "County or region"),
    ("Shop Slug", "Required", "Slug of the shop the customer belongs to (see the Shops sheet)"),
    ("Active", "Optional", "YES, NO, or DELETE to deactivate"),
]


def _amount(cents: int | None) -> float:
    return float(money.from_cents(cents or 0))


def _price_text(cents: int) -> str:
    return f"{money.from_cents(cents):.2f}"


def _template_sheet(rows: list[tuple[str, str, str]]) -> SheetSpec:
    return SheetSpec(
        title=TEMPLATE_SHEET_TITLE,
        headers=["Column", "Required", "Description"],
        rows=[list(r) for r in rows],
        widths=[24, 12, 70],
    )


# =============================================================================
# PURCHASES
# =============================================================================

def purchase_rows(business_id: int, status: str | None = None, shop_id: int | None = None) -> list[list[Any]]:
    q = (
        db.session.query(Purchase, Shop, Customer)
        .join(Shop, Purchase.shop_id == Shop.id)
        .join(Customer, Purchase.customer_id == Customer.id)
        .filter(Purchase.business_id == business_id)
    )
    if status:
        q = q.filter(Purchase.status == status.upper())
    if shop_id is not None:
        q = q.filter(Purchase.shop_id == shop_id)

    rows = []
    for purchase, shop, customer in q.order_by(Purchase.id.asc()).all():
        items = purchase.items
        rows.append([
            purchase.purchase_number,
            shop.shop_slug,
            shop.name,
            customer.full_name,
            customer.phone,
            "; ".join(item.product_name for item in items),
            "; ".join((item.product.sku or "") if item.product else "" for item in items),
            "; ".join(str(item.quantity) for item in items),
            "; ".join(_price_text(item.unit_price_cents) for item in items),
            purchase.purchase_type,
            _amount(purchase.subtotal_cents),
            _amount(purchase.interest_cents),
            _amount(purchase.total_cents),
            _amount(purchase.down_payment_cents),
            _amount(purchase.amount_paid_cents),
            _amount(purchase.outstanding_cents),
            purchase.installments,
            purchase.status,
            to_iso_date(purchase.start_date),
            to_iso_date(purchase.due_date),
            purchase.notes or "",
            to_utc_z(purchase.created_at),
        ])
    return rows


def export_purchases(business_id: int, status: str | None = None, shop_id: int | None = None) -> bytes:
    return build_workbook([
        SheetSpec(
            title="Purchases",
            headers=PURCHASE_COLUMNS,
            rows=purchase_rows(business_id, status=status, shop_id=shop_id),
        ),
        _template_sheet(PURCHASE_TEMPLATE),
    ])


# =============================================================================
# PAYMENTS
# =============================================================================

def payment_rows(business_id: int, shop_id: int | None = None) -> list[list[Any]]:
    q = (
        db.session.query(Payment, Purchase, Shop, Customer)
        .join(Purchase, Payment.purchase_id == Purchase.id)
        .join(Shop, Purchase.shop_id == Shop.id)
        .join(Customer, Purchase.customer_id == Customer.id)
        .filter(Purchase.business_id == business_id)
    )
    if shop_id is not None:
        q = q.filter(Purchase.shop_id == shop_id)

    names = {u.id: u.name for u in db.session.query(User).filter(User.business_id == business_id).all()}
    rows = []
    for payment, purchase, shop, customer in q.order_by(Payment.paid_at.asc(), Payment.id.asc()).all():
        rows.append([
            shop.shop_slug,
            customer.phone,
            purchase.purchase_number,
            _amount(payment.amount_cents),
            payment.payment_method,
            payment.reference or "",
            to_iso_date(payment.paid_at),
            payment.notes or "",
            payment.state,
            names.get(payment.recorded_by_user_id, ""),
            names.get(payment.confirmed_by_user_id, ""),
            to_utc_z(payment.confirmed_at) or "",
        ])
    return rows


def export_payments(business_id: int, shop_id: int | None = None) -> bytes:
    return build_workbook([
        SheetSpec(title="Payments", headers=PAYMENT_COLUMNS, rows=payment_rows(business_id, shop_id=shop_id)),
        _template_sheet(PAYMENT_TEMPLATE),
    ])


# =============================================================================
# PRODUCTS
# =============================================================================

def product_sheet(business_id: int) -> tuple[list[str], list[list[Any]]]:
    shops = db.session.query(Shop).filter(Shop.business_id == business_id).order_by(Shop.name.asc()).all()
    headers = list(PRODUCT_COLUMNS)
    for shop in shops:
        headers += [f"[{shop.name}] Assigned", f"[{shop.name}] Stock"]

    assignments: dict[tuple[int, int], ShopProduct] = {
        (sp.product_id, sp.shop_id): sp
        for sp in (
            db.session.query(ShopProduct)
            .join(Product, ShopProduct.product_id == Product.id)
            .filter(Product.business_id == business_id)
            .all()
        )
    }

    rows = []
    products = db.session.query(Product).filter(Product.business_id == business_id).order_by(Product.name.asc(), Product.id.asc()).all()
    for product in products:
        row = [
            product.id,
            product.name,
            product.sku or "",
            product.description or "",
            _amount(product.cost_price_cents),
            _amount(product.cash_price_cents),
            _amount(product.layaway_price_cents),
            _amount(product.credit_price_cents),
            product.low_stock_threshold,
            "YES" if product.is_active else "NO",
        ]
        for shop in shops:
            sp = assignments.get((product.id, shop.id))
            active = sp is not None and sp.is_active
            row += ["✓" if active else "", sp.stock_quantity if active else 0]
        rows.append(row)
    return headers, rows


def export_products(business_id: int) -> bytes:
    headers, rows = product_sheet(business_id)
    return build_workbook([
        SheetSpec(title="Products", headers=headers, rows=rows),
        _template_sheet(PRODUCT_TEMPLATE),
    ])


# =============================================================================
# CUSTOMERS
# =============================================================================

def customer_rows(business_id: int, shop_id: int | None = None) -> list[list[Any]]:
    q = (
        db.session.query(Customer, Shop)
        .join(Shop, Customer.shop_id == Shop.id)
        .filter(Customer.business_id == business_id)
    )
    if shop_id is not None:
        q = q.filter(Customer.shop_id == shop_id)

    rows = []
    for customer, shop in q.order_by(Customer.last_name.asc(), Customer.first_name.asc(), Customer.id.asc()).all():
        rows.append([
            customer.id,
            customer.first_name,
            customer.last_name,
            customer.phone,
            customer.email or "",
            customer.address or "",
            customer.city or "",
            customer.region or "",
            shop.name,
            shop.shop_slug,
            _amount(customer.wallet_balance_cents),
            "YES" if customer.is_active else "NO",
            to_utc_z(customer.created_at),
        ])
    return rows


def export_customers(business_id: int, shop_id: int | None = None) -> bytes:
    """Customers sheet plus a Shops lookup so edited rows can be re-imported as-is."""
    shops = db.session.query(Shop).filter(Shop.business_id == business_id).order_by(Shop.name.asc()).all()
    return build_workbook([
        SheetSpec(title="Customers", headers=CUSTOMER_COLUMNS, rows=customer_rows(business_id, shop_id=shop_id)),
        SheetSpec(
            title="Shops",
            headers=["Shop Name", "Shop Slug"],
            rows=[[shop.name, shop.shop_slug] for shop in shops],
            widths=[30, 20],
        ),
        _template_sheet(CUSTOMER_TEMPLATE),
    ])
