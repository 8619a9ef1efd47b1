import httpx
import pytest

from shopdesk.domain.address import PlainAddress, StructuredAddress
from shopdesk.domain.errors import AuthenticationError, UpstreamError, ValidationError
from shopdesk.infrastructure.pathao import (
    TOKEN_PATH,
    OrderSnapshot,
    PathaoClient,
    PathaoCredentials,
    item_description,
)
from conftest import make_settings

CREDENTIALS = PathaoCredentials(
    client_id="id", client_secret="secret", username="ops@example.com", password="pw", store_id="42"
)

def _snapshot(**overrides):
    values = dict(
        order_number="ORD-0001",
        recipient_name="Rahima Akter",
        recipient_phone="01711000000",
        address=StructuredAddress(street="House 12, Road 5", city="Dhaka", zip_code="1207"),
        total_amount=220.5,
        due_amount=70.0,
        items=[("Feeding Bottle", 2), ("Bib", 1)],
        notes="Call before delivery",
    )
    values.update(overrides)
    return OrderSnapshot(**values)

@pytest.fixture
def pathao_client(pathao_http, clock):
    return PathaoClient("Go Baby", CREDENTIALS, pathao_http, clock=clock)

class TestTokenCache:
    """Access tokens are reused until five minutes before expiry"""

    def test_token_is_reused(self, pathao_client, fake_pathao):
        pathao_client.get_stores()
        pathao_client.get_stores()

        assert fake_pathao.token_calls == 1
        assert fake_pathao.bearer_tokens() == ["Bearer token-1", "Bearer token-1"]

    def test_token_refreshed_inside_safety_margin(self, pathao_client, fake_pathao, clock):
        pathao_client.get_access_token()

        clock.advance(3600 - 300 - 1)
        assert pathao_client.has_valid_token
        assert pathao_client.get_access_token() == "token-1"

        clock.advance(1)
        assert not pathao_client.has_valid_token
        assert pathao_client.get_access_token() == "token-2"
        assert fake_pathao.token_calls == 2

    def test_password_grant_body(self, pathao_client, fake_pathao):
        pathao_client.get_access_token()

        request = fake_pathao.requests[0]
        assert request.url.path == TOKEN_PATH
        assert request.method == "POST"
        body = httpx.Response(200, content=request.content).json()
        assert body["grant_type"] == "password"
        assert body["username"] == "ops@example.com"

    def test_rejected_credentials(self, pathao_client, fake_pathao):
        fake_pathao.token_response = (401, {"message": "Unauthorized"})

        with pytest.raises(AuthenticationError) as excinfo:
            pathao_client.get_access_token()

        assert excinfo.value.upstream_status == 401
        assert "Unauthorized" in excinfo.value.upstream_body
        assert not pathao_client.has_valid_token

    def test_missing_token_field(self, pathao_client, fake_pathao):
        fake_pathao.token_response = (200, {"expires_in": 3600})

        with pytest.raises(AuthenticationError):
            pathao_client.get_access_token()

    def test_unconfigured_credentials(self, pathao_http, fake_pathao):
        client = PathaoClient("Go Baby", PathaoCredentials(store_id="42"), pathao_http)

        with pytest.raises(AuthenticationError):
            client.get_access_token()
        assert fake_pathao.requests == []

class TestCreateOrder:
    def test_payload(self, pathao_client, fake_pathao):
        result = pathao_client.create_order(_snapshot())

        assert result["data"]["consignment_id"] == "CN-1001"
        (payload,) = fake_pathao.sent_orders()
        assert payload == {
            "store_id": 42,
            "merchant_order_id": "ORD-0001",
            "recipient_name": "Rahima Akter",
            "recipient_phone": "01711000000",
            "recipient_address": "House 12, Road 5, Dhaka, 1207",
            "delivery_type": 48,
            "item_type": 2,
            "item_quantity": 3,
            "item_weight": 0.5,
            "amount_to_collect": 221,
            "item_description": "Feeding Bottle x 2, Bib x 1",
            "special_instruction": "Call before delivery",
        }

    def test_nothing_to_collect_when_paid(self, pathao_client):
        payload = pathao_client.build_order_payload(_snapshot(due_amount=0))
        assert payload["amount_to_collect"] == 0

    def test_overpaid_order_collects_nothing(self, pathao_client):
        assert pathao_client.build_order_payload(_snapshot(due_amount=-30))["amount_to_collect"] == 0

    def test_item_quantity_is_at_least_one(self, pathao_client):
        payload = pathao_client.build_order_payload(_snapshot(items=[]))
        assert payload["item_quantity"] == 1
        assert payload["item_description"] == ""

    def test_plain_address_passes_through(self, pathao_client):
        payload = pathao_client.build_order_payload(_snapshot(address=PlainAddress("Flat 3B, Dhanmondi, Dhaka")))
        assert payload["recipient_address"] == "Flat 3B, Dhanmondi, Dhaka"

    def test_short_address_fails_before_network(self, pathao_client, fake_pathao):
        with pytest.raises(ValidationError):
            pathao_client.create_order(_snapshot(address=PlainAddress("Dhaka")))
        assert fake_pathao.requests == []

    def test_missing_address(self, pathao_client):
        # "Address not provided" is long enough to pass the length check
        payload = pathao_client.build_order_payload(_snapshot(address=None))
        assert payload["recipient_address"] == "Address not provided"

    def test_store_id_required(self, pathao_http, fake_pathao):
        client = PathaoClient("Go Baby", PathaoCredentials(client_id="id", client_secret="s", username="u", password="p"), pathao_http)

        with pytest.raises(ValidationError):
            client.create_order(_snapshot())
        assert fake_pathao.requests == []

    def test_upstream_error_carries_status_and_body(self, pathao_client, fake_pathao):
        fake_pathao.order_response = (422, {"message": "Invalid phone"})

        with pytest.raises(UpstreamError) as excinfo:
            pathao_client.create_order(_snapshot())

        assert excinfo.value.upstream_status == 422
        assert "Invalid phone" in excinfo.value.upstream_body

    def test_description_is_truncated(self):
        description = item_description([("A very long product title", 1)] * 20)
        assert len(description) == 200

class TestOrderStatus:
    def test_status_lookup(self, pathao_client, fake_pathao):
        result = pathao_client.get_order_status("CN-1001")

        assert result["data"]["order_status"] == "Delivered"
        assert fake_pathao.requests[-1].url.path == "/aladdin/api/v1/orders/CN-1001/info"

class TestRegistry:
    def test_one_client_per_brand(self, pathao_registry):
        dcc = pathao_registry.get("DCC Bazar")

        assert pathao_registry.get("DCC Bazar") is dcc
        assert pathao_registry.get("Go Baby") is not dcc
        assert dcc.credentials.store_id == "42"
        assert pathao_registry.get("Go Baby").credentials.store_id == "77"

    def test_unknown_brand(self, pathao_registry):
        with pytest.raises(ValidationError):
            pathao_registry.get("Unknown Brand")

    def test_credentials_from_settings(self):
        creds = PathaoCredentials.for_brand("Go Baby", make_settings(PATHAO_GOBABY_PASSWORD="changed"))
        assert creds.password == "changed"
