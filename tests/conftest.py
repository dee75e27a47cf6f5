"""
Pytest fixtures and configuration for the Tea Trade backend tests

Every test gets its own application with a fresh in-memory SQLite
database. Authentication is replaced through ``app.dependency_overrides``.
"""
import pytest
from fastapi.testclient import TestClient

from teatrade.core.auth import TokenUser, get_current_user
from teatrade.core.config import Settings
from teatrade.core.database import Database
from teatrade.main import create_app
from teatrade.models import Admin, Stock, User

ADMIN_ID = "admin-sub-0001"
USER_ID = "user-sub-0001"
OTHER_USER_ID = "user-sub-0002"


@pytest.fixture
def settings():
    """
    Settings pointing at an in-memory database

    Scope: function (new database per test)
    """
    return Settings(
        DATABASE_URL="sqlite://",
        LOG_LEVEL="WARNING",
        COGNITO_USER_POOL_ID="us-east-1_test",
        COGNITO_APP_CLIENT_ID="test-client",
        CONTACT_RATE_LIMIT=5,
        CONTACT_RATE_WINDOW_SECONDS=60,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    """
    TestClient with the application lifespan running

    The database, rate limiters and token verifier exist only inside the
    ``with`` block.
    """
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def database(client) -> Database:
    return client.app.state.database


@pytest.fixture
def db_session(database):
    """
    Session for arranging and inspecting data directly

    Scope: function (closed after the test)
    """
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def admin_user():
    return TokenUser(id=ADMIN_ID, role="admin", email="admin@example.com")


@pytest.fixture
def regular_user():
    return TokenUser(id=USER_ID, role="user", email="buyer@example.com")


@pytest.fixture
def login(app):
    """
    Authenticate subsequent requests as the given TokenUser

    Usage:
        login(admin_user)
    """
    def _login(user: TokenUser):
        app.dependency_overrides[get_current_user] = lambda: user
    return _login


@pytest.fixture
def as_admin(client, login, admin_user):
    login(admin_user)
    return client


@pytest.fixture
def as_user(client, login, regular_user):
    login(regular_user)
    return client


@pytest.fixture
def accounts(db_session):
    """Registered admin and two buyers"""
    db_session.add_all([
        Admin(admin_cognito_id=ADMIN_ID, name="Admin", email="admin@example.com"),
        User(user_cognito_id=USER_ID, name="Buyer", email="buyer@example.com"),
        User(user_cognito_id=OTHER_USER_ID, name="Other", email="other@example.com"),
    ])
    db_session.commit()


@pytest.fixture
def sample_stock_data():
    """
    Provides sample stock data (camelCase, as clients send it)
    """
    return {
        "saleCode": "2024-12",
        "broker": "CENT",
        "lotNo": "LOT-1001",
        "mark": "KAPCHORUA",
        "grade": "BP1",
        "invoiceNo": "INV-55",
        "bags": 10,
        "weight": 500.0,
        "purchaseValue": 1250.5,
    }


@pytest.fixture
def make_stock(db_session):
    """Insert a stock lot directly and return its ID"""
    counter = {"n": 0}

    def _make_stock(bags: int = 10, weight: float = 500.0, **overrides) -> int:
        counter["n"] += 1
        data = {
            "sale_code": "2024-12",
            "broker": "CENT",
            "lot_no": f"LOT-{counter['n']:04d}",
            "mark": "KAPCHORUA",
            "grade": "BP1",
            "invoice_no": f"INV-{counter['n']}",
            "bags": bags,
            "weight": weight,
            "purchase_value": 100.0,
            "admin_cognito_id": ADMIN_ID,
        }
        data.update(overrides)
        stock = Stock(**data)
        db_session.add(stock)
        db_session.commit()
        return stock.id

    return _make_stock


@pytest.fixture
def sample_catalog_data():
    return {
        "saleCode": "2024-12",
        "category": "M1",
        "broker": "AMBR",
        "lotNo": "C-001",
        "sellingMark": "GACHARAGE",
        "grade": "PF1",
        "invoiceNo": "INV-900",
        "bags": 20,
        "netWeight": 1200,
        "totalWeight": 1230,
        "reprint": "No",
        "manufactureDate": "2024-11-02",
        "askingPrice": 3.4,
        "producerCountry": "Kenya",
    }
