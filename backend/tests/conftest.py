"""
Pytest fixtures for the Equatorial back-office tests.

Provides the app on an in-memory database, a per-test clean schema, users
with bearer tokens, and a small coffee catalog.
"""

import pytest

from equatorial import create_app
from equatorial.extensions import db
from equatorial.models import Customer, Order, OrderItem, POSTransaction, POSTransactionItem, Product, User
from equatorial.services import session_service
from equatorial.services.auth_service import hash_password


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt is deliberately slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


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


# =============================================================================
# USERS
# =============================================================================

def make_user(db_session, password_hash, *, email, role, name=None, is_active=True) -> User:
    user = User(
        email=email,
        name=name or email.split("@")[0].title(),
        role=role,
        password_hash=password_hash,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return make_user(db_session, password_hash, email="admin@equatorial.test", role="admin")


@pytest.fixture(scope='function')
def staff_user(db_session, password_hash):
    return make_user(db_session, password_hash, email="counter@equatorial.test", role="staff")


@pytest.fixture(scope='function')
def admin_token(admin_user):
    _, token = session_service.create_session(admin_user.id)
    return token


@pytest.fixture(scope='function')
def staff_token(staff_user):
    _, token = session_service.create_session(staff_user.id)
    return token


# =============================================================================
# CATALOG / CUSTOMERS
# =============================================================================

def make_product(db_session, **overrides) -> Product:
    values = dict(
        name="Ristretto Intenso",
        brand="Equatorial",
        product_type="capsules",
        price_cents=999,
        cost_price_cents=500,
        tax_rate_bps=1500,
        current_stock=10,
        min_stock_level=5,
    )
    values.update(overrides)
    values.setdefault("in_stock", values["current_stock"] > 0)
    product = Product(**values)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product(db_session):
    """999 cents at 15% tax, 10 in stock."""
    return make_product(db_session)


@pytest.fixture(scope='function')
def beans(db_session):
    return make_product(
        db_session,
        name="Seychelles Estate Beans",
        product_type="beans",
        price_cents=2500,
        cost_price_cents=1400,
        current_stock=3,
        barcode="4006381333931",
    )


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(
        name="Marie Laporte",
        email="marie@example.sc",
        phone="+248 2 511 111",
        loyalty_points=0,
        customer_group="regular",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_token):
    return auth_headers(admin_token)


@pytest.fixture(scope='function')
def staff_headers(staff_token):
    return auth_headers(staff_token)


# =============================================================================
# HISTORY (rows with explicit timestamps for the aggregators)
# =============================================================================

def make_order(db_session, *, created_at, total_cents, payment_status="paid", status="pending",
               customer=None, items=()):
    """items: (product, quantity) pairs."""
    count = db_session.query(Order).count() + 1
    order = Order(
        order_number=f"ORD-TEST-{count:06d}",
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else "Walk-in Guest",
        customer_email=customer.email if customer else None,
        customer_phone=customer.phone if customer else "+248 0 000 000",
        delivery_address="Beau Vallon, Mahé",
        status=status,
        payment_status=payment_status,
        subtotal_cents=total_cents,
        total_cents=total_cents,
        created_at=created_at,
    )
    for item_product, quantity in items:
        order.items.append(OrderItem(
            product_id=item_product.id,
            product_name=item_product.name,
            quantity=quantity,
            unit_price_cents=item_product.price_cents,
            line_total_cents=item_product.price_cents * quantity,
        ))
    db_session.add(order)
    db_session.commit()
    return order


def make_pos_row(db_session, staff_user, *, created_at, total_cents, transaction_type="sale",
                 status="completed", payment_method="card", customer=None, items=()):
    """items: (product, quantity) pairs; quantities are negative on refunds."""
    count = db_session.query(POSTransaction).count() + 1
    txn = POSTransaction(
        transaction_number=f"POS-TEST-{count:06d}",
        transaction_type=transaction_type,
        customer_id=customer.id if customer else None,
        staff_id=staff_user.id,
        subtotal_cents=total_cents,
        total_cents=total_cents,
        payment_method=payment_method,
        status=status,
        created_at=created_at,
    )
    db_session.add(txn)
    db_session.flush()
    for item_product, quantity in items:
        db_session.add(POSTransactionItem(
            transaction_id=txn.id,
            product_id=item_product.id,
            quantity=quantity,
            unit_price_cents=item_product.price_cents,
            line_total_cents=item_product.price_cents * quantity,
            tax_rate_bps=item_product.tax_rate_bps,
        ))
    db_session.commit()
    return txn
