from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, Integer, Numeric, Boolean, Text, DateTime, ForeignKey, JSON, func
from datetime import datetime
from enum import Enum
from typing import Optional

from .address import Address, PlainAddress, StructuredAddress

# Money columns come back as float, not Decimal
Money = Numeric(12, 2, asdecimal=False)

class Brand(str, Enum):
    GO_BABY = "Go Baby"
    DCC_BAZAR = "DCC Bazar"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

class PaymentStatus(str, Enum):
    PAID = "paid"
    PARTIAL = "partial"
    DUE = "due"

class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BKASH = "bkash"
    NOGOD = "nogod"
    BANK = "bank"

class DeliveryMethod(str, Enum):
    PATHAO = "pathao"
    DELIVERY_PERSON = "delivery_person"
    PICKUP = "pickup"

class Base(DeclarativeBase):
    pass

class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(primary_key=True)
    sku: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100))
    brand: Mapped[str] = mapped_column(String(50), index=True)
    buy_price: Mapped[float] = mapped_column(Money)
    sell_price: Mapped[float] = mapped_column(Money)
    stock: Mapped[int] = mapped_column(Integer, default=0)
    min_stock: Mapped[int] = mapped_column(Integer, default=5)
    # Units sold; moves only with order creation and deletion
    sales_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    images: Mapped[list] = mapped_column(JSON, default=list)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

class Customer(Base):
    __tablename__ = "customers"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    address_zip: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    # Legacy records carry the whole address as one line
    address_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_orders: Mapped[int] = mapped_column(Integer, default=0)
    total_spent: Mapped[float] = mapped_column(Money, default=0)
    last_order: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    @property
    def address(self) -> Optional[Address]:
        if any([self.address_street, self.address_city, self.address_state, self.address_zip]):
            return StructuredAddress(
                street=self.address_street,
                city=self.address_city,
                state=self.address_state,
                zip_code=self.address_zip,
            )
        if self.address_text:
            return PlainAddress(self.address_text)
        return None

    @address.setter
    def address(self, value: Optional[Address]) -> None:
        if isinstance(value, PlainAddress):
            self.address_text = value.text
        elif isinstance(value, StructuredAddress):
            self.address_street = value.street
            self.address_city = value.city
            self.address_state = value.state
            self.address_zip = value.zip_code

class Order(Base):
    __tablename__ = "orders"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), index=True)
    subtotal: Mapped[float] = mapped_column(Money)
    courier_charge: Mapped[float] = mapped_column(Money, default=0)
    total_amount: Mapped[float] = mapped_column(Money)
    paid_amount: Mapped[float] = mapped_column(Money, default=0)
    due_amount: Mapped[float] = mapped_column(Money, default=0)
    payment_method: Mapped[str] = mapped_column(String(20))
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.DUE.value)
    delivery_method: Mapped[str] = mapped_column(String(30))
    delivery_person_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    delivery_person_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(30), default=OrderStatus.PENDING.value, index=True)
    brand: Mapped[str] = mapped_column(String(50), index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Courier fields, filled once the order is dispatched
    pathao_consignment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    pathao_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pathao_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    customer: Mapped[Customer] = relationship("Customer", lazy="joined")
    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )

class OrderItem(Base):
    __tablename__ = "order_items"
    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    # No FK so a line can outlive its product row
    product_id: Mapped[int] = mapped_column(Integer, index=True)
    quantity: Mapped[int] = mapped_column(Integer)
    price: Mapped[float] = mapped_column(Money)
    total: Mapped[float] = mapped_column(Money)
    product_title_snapshot: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    order: Mapped[Order] = relationship("Order", back_populates="items")
    product: Mapped[Optional[Product]] = relationship(
        "Product",
        primaryjoin="foreign(OrderItem.product_id) == Product.id",
        viewonly=True,
        lazy="joined",
    )

class History(Base):
    __tablename__ = "history"
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(50))
    resource: Mapped[str] = mapped_column(String(50))
    resource_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[str] = mapped_column(Text)
    ip: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
