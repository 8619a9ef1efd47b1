"""Pathao courier client.

One client per brand. Access tokens are issued with a password grant and
cached until five minutes before the expiry Pathao reports. Every other call
goes through :meth:`PathaoClient.request`, which injects the bearer token and
turns non-2xx answers into :class:`UpstreamError`. Nothing is retried.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from shared.core import get_logger
from shopdesk.core_settings import Settings
from shopdesk.domain.errors import AuthenticationError, UpstreamError, ValidationError
from shopdesk.domain.models import Brand, Order
from shopdesk.domain.address import Address, format_address
from shopdesk.domain.rules import round_half_up

logger = get_logger(__name__)

TOKEN_PATH = "/aladdin/api/v1/issue-token"
ORDERS_PATH = "/aladdin/api/v1/orders"
STORES_PATH = "/aladdin/api/v1/stores"

TOKEN_SAFETY_MARGIN_SECONDS = 300
DELIVERY_TYPE_NORMAL = 48
ITEM_TYPE_PARCEL = 2
DEFAULT_ITEM_WEIGHT = 0.5
MIN_ADDRESS_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 200

# Settings prefix per brand, e.g. PATHAO_DCC_CLIENT_ID
BRAND_SETTINGS_KEYS = {
    Brand.DCC_BAZAR.value: "DCC",
    Brand.GO_BABY.value: "GOBABY",
}


@dataclass(frozen=True)
class PathaoCredentials:
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    store_id: Optional[str] = None

    @classmethod
    def for_brand(cls, brand: str, settings: Settings) -> "PathaoCredentials":
        key = BRAND_SETTINGS_KEYS.get(brand)
        if key is None:
            raise ValidationError(f"Courier is not configured for brand: {brand}")
        return cls(
            client_id=getattr(settings, f"PATHAO_{key}_CLIENT_ID"),
            client_secret=getattr(settings, f"PATHAO_{key}_CLIENT_SECRET"),
            username=getattr(settings, f"PATHAO_{key}_USERNAME"),
            password=getattr(settings, f"PATHAO_{key}_PASSWORD"),
            store_id=getattr(settings, f"PATHAO_{key}_STORE_ID"),
        )


@dataclass(frozen=True)
class OrderSnapshot:
    """What the courier needs to know about an order."""

    order_number: str
    recipient_name: str
    recipient_phone: str
    address: Optional[Address]
    total_amount: float
    due_amount: float
    # (product title, quantity) per line
    items: List[Tuple[str, int]] = field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderSnapshot":
        items = []
        for item in order.items:
            title = item.product.title if item.product else item.product_title_snapshot
            items.append((title or "Product", item.quantity))
        return cls(
            order_number=order.order_number,
            recipient_name=order.customer.name,
            recipient_phone=order.customer.phone,
            address=order.customer.address,
            total_amount=order.total_amount,
            due_amount=order.due_amount,
            items=items,
            notes=order.notes,
        )


def item_description(items: List[Tuple[str, int]]) -> str:
    return ", ".join(f"{title} x {quantity}" for title, quantity in items)[:MAX_DESCRIPTION_LENGTH]


class PathaoClient:
    def __init__(
        self,
        brand: str,
        credentials: PathaoCredentials,
        http: httpx.Client,
        clock: Callable[[], float] = time.time,
    ):
        self.brand = brand
        self.credentials = credentials
        self.http = http
        self.clock = clock
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def has_valid_token(self) -> bool:
        return (
            self._access_token is not None
            and self._token_expiry is not None
            and self.clock() < self._token_expiry
        )

    def get_access_token(self) -> str:
        with self._lock:
            if self.has_valid_token:
                return self._access_token
            return self._authenticate()

    def _authenticate(self) -> str:
        creds = self.credentials
        if not all([creds.client_id, creds.client_secret, creds.username, creds.password]):
            raise AuthenticationError(f"Courier credentials are not configured for brand: {self.brand}")

        logger.info("Requesting courier access token", extra={'extra_fields': {'brand': self.brand}})
        try:
            response = self.http.post(TOKEN_PATH, json={
                "client_id": creds.client_id,
                "client_secret": creds.client_secret,
                "username": creds.username,
                "password": creds.password,
                "grant_type": "password",
            })
        except httpx.HTTPError as e:
            raise AuthenticationError(f"Authentication failed: {e}") from e

        if not response.is_success:
            raise AuthenticationError(
                f"Authentication failed: {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise AuthenticationError(
                "Authentication failed: response is not JSON",
                upstream_status=response.status_code,
                upstream_body=response.text,
            ) from e

        token = data.get("access_token")
        if not token:
            raise AuthenticationError(
                "No access token received from Pathao",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        expires_in = float(data.get("expires_in") or 0)
        self._access_token = token
        self._token_expiry = self.clock() + expires_in - TOKEN_SAFETY_MARGIN_SECONDS
        logger.info("Courier access token issued", extra={'extra_fields': {'brand': self.brand, 'expires_in': expires_in}})
        return token

    def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        token = self.get_access_token()
        try:
            response = self.http.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Pathao API unreachable: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"Pathao API error: {response.status_code}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "Pathao API returned a non-JSON body",
                upstream_status=response.status_code,
                upstream_body=response.text,
            ) from e

    def build_order_payload(self, snapshot: OrderSnapshot) -> Dict[str, Any]:
        if not self.credentials.store_id:
            raise ValidationError("Store ID not configured for this brand")

        recipient_address = format_address(snapshot.address)
        if len(recipient_address) < MIN_ADDRESS_LENGTH:
            raise ValidationError(
                f"Recipient address must be at least {MIN_ADDRESS_LENGTH} characters long",
                address=recipient_address,
            )

        return {
            "store_id": int(self.credentials.store_id),
            "merchant_order_id": snapshot.order_number,
            "recipient_name": snapshot.recipient_name,
            "recipient_phone": snapshot.recipient_phone,
            "recipient_address": recipient_address,
            "delivery_type": DELIVERY_TYPE_NORMAL,
            "item_type": ITEM_TYPE_PARCEL,
            "item_quantity": max(1, sum(quantity for _, quantity in snapshot.items)),
            "item_weight": DEFAULT_ITEM_WEIGHT,
            "amount_to_collect": round_half_up(snapshot.total_amount) if snapshot.due_amount > 0 else 0,
            "item_description": item_description(snapshot.items),
            "special_instruction": snapshot.notes or "",
        }

    def create_order(self, snapshot: OrderSnapshot) -> Dict[str, Any]:
        payload = self.build_order_payload(snapshot)
        logger.info(
            f"Creating courier order for {snapshot.order_number}",
            extra={'extra_fields': {'brand': self.brand, 'item_quantity': payload["item_quantity"]}}
        )
        return self.request("POST", ORDERS_PATH, json=payload)

    def get_order_status(self, consignment_id: str) -> Dict[str, Any]:
        return self.request("GET", f"{ORDERS_PATH}/{consignment_id}/info")

    def get_stores(self) -> Dict[str, Any]:
        return self.request("GET", STORES_PATH)


class PathaoClientRegistry:
    """Keeps one client (and so one token cache) per brand."""

    def __init__(self, settings: Settings, http: Optional[httpx.Client] = None, clock: Callable[[], float] = time.time):
        self.settings = settings
        self.http = http or httpx.Client(
            base_url=settings.PATHAO_BASE_URL,
            timeout=settings.PATHAO_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json"},
        )
        self.clock = clock
        self._clients: Dict[str, PathaoClient] = {}
        self._lock = threading.Lock()

    def get(self, brand: str) -> PathaoClient:
        with self._lock:
            client = self._clients.get(brand)
            if client is None:
                client = PathaoClient(
                    brand,
                    PathaoCredentials.for_brand(brand, self.settings),
                    self.http,
                    clock=self.clock,
                )
                self._clients[brand] = client
            return client

    def close(self) -> None:
        self.http.close()
