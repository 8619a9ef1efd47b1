import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from shopdesk.core_settings import Settings
from shopdesk.domain.models import Base, Product
from shopdesk.infrastructure.db import build_engine, get_db
from shopdesk.infrastructure.pathao import ORDERS_PATH, STORES_PATH, TOKEN_PATH, PathaoClientRegistry
from shopdesk.infrastructure.rate_limit import InMemoryRateLimitStore
from shopdesk.main import create_app

PATHAO_TEST_URL = "https://pathao.test"

class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

class FakePathao:
    """Stands in for the courier API behind an httpx.MockTransport."""

    def __init__(self):
        self.requests = []
        self.token_calls = 0
        self.token_response = None
        self.expires_in = 3600
        self.order_response = (200, {"data": {"consignment_id": "CN-1001", "order_status": "Pending"}})
        self.status_response = (200, {"data": {"order_status": "Delivered"}})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == TOKEN_PATH:
            self.token_calls += 1
            if self.token_response is not None:
                status, body = self.token_response
                return httpx.Response(status, json=body)
            return httpx.Response(200, json={
                "access_token": f"token-{self.token_calls}",
                "expires_in": self.expires_in,
            })
        if path == ORDERS_PATH and request.method == "POST":
            status, body = self.order_response
            return httpx.Response(status, json=body)
        if path.startswith(ORDERS_PATH) and path.endswith("/info"):
            status, body = self.status_response
            return httpx.Response(status, json=body)
        if path == STORES_PATH:
            return httpx.Response(200, json={"data": {"data": [{"store_id": 42, "store_name": "Main"}]}})
        return httpx.Response(404, json={"message": "not found"})

    def sent_orders(self):
        return [json.loads(r.content) for r in self.requests if r.url.path == ORDERS_PATH and r.method == "POST"]

    def bearer_tokens(self):
        return [r.headers.get("Authorization") for r in self.requests if r.url.path != TOKEN_PATH]

def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite://",
        PATHAO_BASE_URL=PATHAO_TEST_URL,
        PATHAO_DCC_CLIENT_ID="dcc-id",
        PATHAO_DCC_CLIENT_SECRET="dcc-secret",
        PATHAO_DCC_USERNAME="dcc@example.com",
        PATHAO_DCC_PASSWORD="dcc-pass",
        PATHAO_DCC_STORE_ID="42",
        PATHAO_GOBABY_CLIENT_ID="gb-id",
        PATHAO_GOBABY_CLIENT_SECRET="gb-secret",
        PATHAO_GOBABY_USERNAME="gb@example.com",
        PATHAO_GOBABY_PASSWORD="gb-pass",
        PATHAO_GOBABY_STORE_ID="77",
        RATE_LIMIT_REQUESTS=10_000,
    )
    values.update(overrides)
    return Settings(**values)

@pytest.fixture
def settings():
    return make_settings()

@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    """Sessions for arranging and inspecting data; close them before calling the API."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def fake_pathao():
    return FakePathao()

@pytest.fixture
def pathao_http(fake_pathao):
    http = httpx.Client(base_url=PATHAO_TEST_URL, transport=httpx.MockTransport(fake_pathao))
    yield http
    http.close()

@pytest.fixture
def pathao_registry(settings, pathao_http, clock):
    return PathaoClientRegistry(settings, http=pathao_http, clock=clock)

@pytest.fixture
def build_app(engine, session_factory, pathao_registry):
    def build(settings: Settings):
        app = create_app(
            settings=settings,
            rate_limit_store=InMemoryRateLimitStore(settings.RATE_LIMIT_WINDOW_SECONDS),
            pathao_registry=pathao_registry,
            engine=engine,
        )

        def override_get_db():
            session = session_factory()
            try:
                yield session
            finally:
                session.close()

        app.dependency_overrides[get_db] = override_get_db
        return app
    return build

@pytest.fixture
def app(build_app, settings):
    return build_app(settings)

@pytest.fixture
def client(app):
    return TestClient(app)

@pytest.fixture
def make_product(session_factory):
    counter = {"n": 0}

    def make(**overrides) -> Product:
        counter["n"] += 1
        values = dict(
            sku=f"TEST-{counter['n']:03d}",
            title=f"Product {counter['n']}",
            category="Toys",
            brand="Go Baby",
            buy_price=30.0,
            sell_price=50.0,
            stock=10,
            min_stock=5,
            sales_count=0,
            is_active=True,
            images=[],
            tags=[],
        )
        values.update(overrides)
        with session_factory() as session:
            product = Product(**values)
            session.add(product)
            session.commit()
            session.refresh(product)
        return product
    return make

@pytest.fixture
def order_payload():
    def build(items, **overrides):
        payload = {
            "customer": {
                "name": "Rahima Akter",
                "phone": "01711000000",
                "email": "rahima@example.com",
                "address": {"street": "House 12, Road 5", "city": "Dhaka", "state": "Dhaka", "zipCode": "1207"},
            },
            "items": items,
            "paymentMethod": "cash",
            "deliveryMethod": "pathao",
            "brand": "Go Baby",
            "courierCharge": 0,
            "paidAmount": 0,
        }
        payload.update(overrides)
        return payload
    return build
