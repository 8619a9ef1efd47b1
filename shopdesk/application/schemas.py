from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Any, List, Optional, Union

from shopdesk.domain.address import Address, PlainAddress, StructuredAddress
from shopdesk.domain.models import Brand, DeliveryMethod, OrderStatus, PaymentMethod, PaymentStatus

class CamelModel(BaseModel):
    """Accepts and emits camelCase keys; snake_case works on input too."""
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

# Addresses

class AddressParts(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

AddressInput = Union[AddressParts, str]

def to_domain_address(value: Optional[AddressInput]) -> Optional[Address]:
    if value is None:
        return None
    if isinstance(value, str):
        return PlainAddress(value)
    return StructuredAddress(street=value.street, city=value.city, state=value.state, zip_code=value.zip_code)

def from_domain_address(value: Any) -> Any:
    if isinstance(value, PlainAddress):
        return value.text
    if isinstance(value, StructuredAddress):
        return AddressParts(street=value.street, city=value.city, state=value.state, zip_code=value.zip_code)
    return value

# Customers

class CustomerInput(CamelModel):
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    address: Optional[AddressInput] = None

class CustomerSwitch(CamelModel):
    """Moves an order to another customer, picked by phone. Name only matters for an unseen phone."""
    name: Optional[str] = Field(None, min_length=1)
    phone: str = Field(..., min_length=1)
    email: Optional[str] = None
    address: Optional[AddressInput] = None

class CustomerRead(CamelModel):
    id: int
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[AddressInput] = None
    total_orders: int = 0
    total_spent: float = 0
    last_order: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("address", mode="before")
    @classmethod
    def address_from_domain(cls, value):
        return from_domain_address(value)

class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int

class CustomerListResponse(CamelModel):
    success: bool = True
    customers: List[CustomerRead]
    pagination: Pagination

class CustomerResponse(CamelModel):
    success: bool = True
    customer: CustomerRead

# Products

class ProductSummary(CamelModel):
    id: int
    sku: str
    title: str
    category: Optional[str] = None
    brand: Optional[str] = None
    buy_price: float
    sell_price: float
    stock: int
    images: list = []

class ProductCreate(CamelModel):
    sku: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    category: str = Field(..., min_length=1)
    brand: str = Field(..., min_length=1)
    buy_price: float = Field(..., ge=0)
    sell_price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    min_stock: int = Field(5, ge=0)
    is_active: bool = True
    images: list = []
    tags: List[str] = []

class ProductUpdate(CamelModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    brand: Optional[str] = None
    buy_price: Optional[float] = Field(None, ge=0)
    sell_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    images: Optional[list] = None
    tags: Optional[List[str]] = None

class ProductRead(CamelModel):
    id: int
    sku: str
    title: str
    description: Optional[str] = None
    category: str
    brand: str
    buy_price: float
    sell_price: float
    stock: int
    min_stock: int
    sales_count: int
    is_active: bool
    images: list = []
    tags: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ProductListResponse(CamelModel):
    success: bool = True
    products: List[ProductRead]
    pagination: Pagination

class ProductResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    product: ProductRead

# Orders

class OrderItemInput(CamelModel):
    product: int
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)

class DeliveryPerson(CamelModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class OrderCreate(CamelModel):
    customer: CustomerInput
    items: List[OrderItemInput] = Field(..., min_length=1)
    payment_method: PaymentMethod
    delivery_method: DeliveryMethod
    brand: Brand
    courier_charge: Optional[float] = Field(0, ge=0)
    paid_amount: Optional[float] = Field(0, ge=0)
    status: Optional[OrderStatus] = None
    delivery_person: Optional[DeliveryPerson] = None
    notes: Optional[str] = None

class OrderUpdate(CamelModel):
    # Line items are fixed once stock has been taken for them
    customer: Optional[CustomerSwitch] = None
    payment_method: Optional[PaymentMethod] = None
    delivery_method: Optional[DeliveryMethod] = None
    delivery_person: Optional[DeliveryPerson] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    paid_amount: Optional[float] = Field(None, ge=0)
    courier_charge: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

class OrderItemRead(CamelModel):
    id: int
    product_id: int
    product: Optional[ProductSummary] = None
    product_title_snapshot: Optional[str] = None
    quantity: int
    price: float
    total: float

class OrderRead(CamelModel):
    id: int
    order_number: str
    customer: CustomerRead
    items: List[OrderItemRead]
    subtotal: float
    courier_charge: float
    total_amount: float
    paid_amount: float
    due_amount: float
    payment_method: str
    payment_status: str
    delivery_method: str
    delivery_person: Optional[DeliveryPerson] = None
    status: str
    brand: str
    notes: Optional[str] = None
    pathao_consignment_id: Optional[str] = None
    pathao_status: Optional[str] = None
    pathao_updated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order) -> "OrderRead":
        read = cls.model_validate(order)
        if order.delivery_person_name or order.delivery_person_phone:
            read.delivery_person = DeliveryPerson(name=order.delivery_person_name, phone=order.delivery_person_phone)
        return read

class OrderResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    order: OrderRead

class OrderListResponse(CamelModel):
    success: bool = True
    orders: List[OrderRead]
    pagination: Pagination

class MessageResponse(CamelModel):
    success: bool = True
    message: str

# Courier

class CourierOrderRequest(CamelModel):
    order_id: Optional[Union[int, str]] = None

class CourierBatchRequest(CamelModel):
    order_ids: List[Union[int, str]] = Field(..., min_length=1)

class CourierSendResponse(CamelModel):
    success: bool = True
    consignment_id: Optional[str] = None
    message: str

class CourierBatchResult(CamelModel):
    order_id: str
    success: bool
    consignment_id: Optional[str] = None
    error: Optional[str] = None

class CourierBatchResponse(CamelModel):
    success: bool
    sent_count: int
    failed_count: int
    results: List[CourierBatchResult]

class CourierStatusResponse(CamelModel):
    success: bool = True
    pathao_status: Optional[str] = None
    system_status: str
    system_status_changed: bool
    message: str

# History

class HistoryRead(CamelModel):
    id: int
    user_id: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[int] = None
    description: str
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None

class HistoryListResponse(CamelModel):
    success: bool = True
    history: List[HistoryRead]
    pagination: Pagination
