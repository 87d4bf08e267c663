"""
Test configuration and fixtures
"""

import os

# Set test environment variables BEFORE importing app modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-only-32chars"
os.environ["JWT_ALGORITHM"] = "HS256"
os.environ["ACCESS_TOKEN_EXPIRE_MINUTES"] = "60"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"  # Lower rounds for faster tests
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["API_PREFIX"] = "/api"

from typing import Callable, Dict, List, Optional  # noqa: E402
from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from splittat.app import app  # noqa: E402
from splittat.database import get_db  # noqa: E402
from splittat.dependencies import get_image_store  # noqa: E402
from splittat.models import Base  # noqa: E402
from splittat.storage import LocalImageStore  # noqa: E402

# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEFAULT_PASSWORD = "secret123"
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def image_store(tmp_path):
    """Image store writing into the test's temporary directory"""
    return LocalImageStore(root_dir=str(tmp_path / "uploads"), url_prefix="/uploads")


@pytest.fixture(scope="function")
def client(db_session, image_store):
    """Create a test client with database and storage overrides"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Mock init_db to prevent creating tables on the module-level engine
    with patch("splittat.app.init_db"):
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_image_store] = lambda: image_store
        with TestClient(app) as test_client:
            yield test_client
        app.dependency_overrides.clear()


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def register_user(client) -> Callable[..., Dict]:
    """Register a user and return the auth response body"""

    def _register(
        email: str,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> Dict:
        response = client.post(
            "/api/auth/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        assert response.status_code == 201, response.text
        body = response.json()
        body["headers"] = auth_headers(body["token"])
        return body

    return _register


@pytest.fixture
def alice(register_user) -> Dict:
    return register_user("alice@example.com", first_name="Alice", last_name="Archer")


@pytest.fixture
def bob(register_user) -> Dict:
    return register_user("bob@example.com", first_name="Bob", last_name="Baker")


@pytest.fixture
def upload_receipt(client) -> Callable[..., Dict]:
    """Upload a small JPEG and return the receipt body"""

    def _upload(headers: Dict[str, str]) -> Dict:
        response = client.post(
            "/api/receipts",
            files={"file": ("receipt.jpg", JPEG_BYTES, "image/jpeg")},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _upload


@pytest.fixture
def ready_receipt(client, upload_receipt) -> Callable[..., Dict]:
    """Upload a receipt and enter its items by hand so it is Ready"""

    def _ready(
        headers: Dict[str, str],
        items: Optional[List[Dict]] = None,
        tax: Optional[float] = None,
        tip: Optional[float] = None,
    ) -> Dict:
        receipt = upload_receipt(headers)
        payload: Dict = {
            "items": items
            if items is not None
            else [{"name": "Pasta", "price": 10.00}, {"name": "Pizza", "price": 20.00}]
        }
        if tax is not None:
            payload["tax"] = tax
        if tip is not None:
            payload["tip"] = tip
        response = client.put(
            f"/api/receipts/{receipt['id']}/items", json=payload, headers=headers
        )
        assert response.status_code == 200, response.text
        return response.json()

    return _ready
