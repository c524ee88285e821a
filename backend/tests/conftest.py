"""
Pytest fixtures for hpledger backend tests.

Provides the test database, a small business "world" (policy, shop, users of
every confirm level, a customer and a stocked product) and the test client.
"""

from datetime import date

import pytest

from hpledger import create_app
from hpledger.constants import (
    INTEREST_TYPE_FLAT,
    ROLE_ACCOUNTANT,
    ROLE_BUSINESS_ADMIN,
    ROLE_DEBT_COLLECTOR,
)
from hpledger.extensions import db
from hpledger.models import Business, BusinessPolicy, Customer, Product, Shop, ShopProduct, User
from hpledger.services.permission_service import capability_for


AS_OF = date(2026, 3, 1)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def business(db_session):
    """Business with a FLAT 10% policy, 90 day tenor, 3 installments."""
    business = Business(name="Acme Traders", slug="acme")
    db_session.add(business)
    db_session.flush()
    db_session.add(BusinessPolicy(
        business_id=business.id,
        interest_type=INTEREST_TYPE_FLAT,
        interest_rate_bps=1000,
        max_tenor_days=90,
        default_installments=3,
    ))
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def other_business(db_session):
    """Second tenant, used for isolation checks."""
    business = Business(name="Beta Stores", slug="beta")
    db_session.add(business)
    db_session.flush()
    shop = Shop(business_id=business.id, name="Beta Main", shop_slug="main")
    db_session.add(shop)
    db_session.flush()
    db_session.add(User(business_id=business.id, name="Beta Admin", role=ROLE_BUSINESS_ADMIN))
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def shop(db_session, business):
    shop = Shop(business_id=business.id, name="Main Shop", shop_slug="main")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def second_shop(db_session, business):
    shop = Shop(business_id=business.id, name="Town Branch", shop_slug="town")
    db_session.add(shop)
    db_session.commit()
    return shop


def _user(db_session, business, shop, name, role, can_confirm=False, is_active=True):
    user = User(
        business_id=business.id,
        shop_id=shop.id if shop else None,
        name=name,
        email=f"{name.lower().replace(' ', '.')}@acme.test",
        role=role,
        can_confirm_payments=can_confirm,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, business):
    """Business admin: always confirms."""
    return _user(db_session, business, None, "Alice Admin", ROLE_BUSINESS_ADMIN)


@pytest.fixture(scope='function')
def accountant_user(db_session, business, shop):
    """Accountant with the confirm flag."""
    return _user(db_session, business, shop, "Carl Accountant", ROLE_ACCOUNTANT, can_confirm=True)


@pytest.fixture(scope='function')
def plain_accountant_user(db_session, business, shop):
    """Accountant without the confirm flag."""
    return _user(db_session, business, shop, "Paula Accountant", ROLE_ACCOUNTANT)


@pytest.fixture(scope='function')
def collector_user(db_session, business, shop):
    """Debt collector: never confirms."""
    return _user(db_session, business, shop, "Dan Collector", ROLE_DEBT_COLLECTOR)


@pytest.fixture(scope='function')
def admin(admin_user):
    return capability_for(admin_user)


@pytest.fixture(scope='function')
def accountant(accountant_user):
    return capability_for(accountant_user)


@pytest.fixture(scope='function')
def plain_accountant(plain_accountant_user):
    return capability_for(plain_accountant_user)


@pytest.fixture(scope='function')
def collector(collector_user):
    return capability_for(collector_user)


@pytest.fixture(scope='function')
def customer(db_session, business, shop):
    customer = Customer(
        business_id=business.id,
        shop_id=shop.id,
        first_name="Jane",
        last_name="Wanjiru",
        phone="0700000001",
        address="Moi Avenue 12",
        city="Nairobi",
        region="Nairobi",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def product(db_session, business, shop):
    """Product stocked with 10 units in the main shop."""
    product = Product(
        business_id=business.id,
        name="Solar Lamp",
        sku="SL-01",
        cost_price_cents=30000,
        cash_price_cents=50000,
        layaway_price_cents=52000,
        credit_price_cents=55000,
    )
    db_session.add(product)
    db_session.flush()
    db_session.add(ShopProduct(shop_id=shop.id, product_id=product.id, stock_quantity=10))
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def make_purchase(business, shop, customer, admin):
    """
    Factory for purchases in the main shop.

    Defaults to a CREDIT purchase with a 100000 cent subtotal, which the FLAT
    10% policy turns into a 110000 cent total.
    """
    from hpledger.services import purchase_service

    def _make(**overrides):
        params = {
            "business_id": business.id,
            "shop_id": shop.id,
            "customer_id": customer.id,
            "items": [{"product_name": "Fridge", "quantity": 1, "unit_price_cents": 100000}],
            "creator": admin,
            "start_date": AS_OF,
            "as_of": AS_OF,
        }
        params.update(overrides)
        return purchase_service.create_purchase(**params)

    return _make


@pytest.fixture(scope='function')
def as_of():
    """Fixed reference date for status derivation."""
    return AS_OF


@pytest.fixture(scope='function')
def headers():
    """Build request headers identifying a user."""
    def _headers(user):
        return {"X-User-Id": str(user.id)}
    return _headers
