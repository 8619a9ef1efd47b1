from datetime import date, datetime, time, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from shared.core import get_logger
from shopdesk.domain import rules
from shopdesk.domain.errors import InternalError, NotFoundError, StockError
from shopdesk.domain.models import Order, OrderItem, OrderStatus, Product
from shopdesk.infrastructure.history import Actor, record_history
from .common import paginate, parse_id
from .customer_service import CustomerService
from .schemas import OrderCreate, OrderItemInput, OrderUpdate

logger = get_logger(__name__)

ORDER_NUMBER_PREFIX = "ORD-"
MAX_ORDER_NUMBER_ATTEMPTS = 5

class OrderService:
    """Order aggregate: creation takes stock, deletion gives it back.

    Edits never touch stock. By default each product is written as soon as
    its line is checked, so a failure on a later line leaves the earlier
    decrements in place. With ``atomic=True`` every decrement is a
    conditional update inside one transaction that is rolled back on the
    first failure.
    """

    def __init__(self, db: Session, atomic: bool = False):
        self.db = db
        self.atomic = atomic
        self.customers = CustomerService(db)

    def next_order_number(self) -> str:
        """One past both the row count and the highest ``ORD-`` number in use."""
        latest = (
            self.db.query(Order.order_number)
            .filter(Order.order_number.like(f"{ORDER_NUMBER_PREFIX}%"))
            .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
            .first()
        )
        highest = 0
        if latest:
            suffix = latest[0][len(ORDER_NUMBER_PREFIX):]
            if suffix.isdigit():
                highest = int(suffix)
        count = self.db.query(Order).count()
        return f"{ORDER_NUMBER_PREFIX}{max(count, highest) + 1:04d}"

    def _insert(self, order: Order) -> None:
        # A concurrent create can claim the same number between lookup and insert
        for _ in range(MAX_ORDER_NUMBER_ATTEMPTS):
            try:
                with self.db.begin_nested():
                    self.db.add(order)
                    self.db.flush()
                return
            except IntegrityError:
                logger.warning("Order number collision", extra={'extra_fields': {'order_number': order.order_number}})
                order.order_number = self.next_order_number()
        self.db.rollback()
        raise InternalError("Failed to create order, please retry")

    def create(self, data: OrderCreate, actor: Optional[Actor] = None) -> Order:
        customer = self.customers.find_or_create(data.customer)
        order_number = self.next_order_number()

        if self.atomic:
            lines = self._take_stock_atomically(data.items)
        else:
            lines = self._take_stock_sequentially(data.items)

        subtotal = rules.subtotal_of((item.quantity, item.price) for item, _ in lines)
        courier_charge = data.courier_charge or 0
        paid = data.paid_amount or 0
        total = rules.total_amount(subtotal, courier_charge)
        due = rules.due_amount(total, paid, clamp=False)

        order = Order(
            order_number=order_number,
            customer_id=customer.id,
            subtotal=subtotal,
            courier_charge=courier_charge,
            total_amount=total,
            paid_amount=paid,
            due_amount=due,
            payment_method=data.payment_method.value,
            payment_status=rules.payment_status(total, paid, due),
            delivery_method=data.delivery_method.value,
            status=(data.status or OrderStatus.PENDING).value,
            brand=data.brand.value,
            notes=data.notes,
        )
        if data.delivery_person:
            order.delivery_person_name = data.delivery_person.name
            order.delivery_person_phone = data.delivery_person.phone
        for item, product in lines:
            order.items.append(OrderItem(
                product_id=product.id,
                quantity=item.quantity,
                price=item.price,
                total=rules.line_total(item.quantity, item.price),
                product_title_snapshot=product.title,
            ))

        CustomerService.record_order(customer, total)
        self._insert(order)
        record_history(self.db, actor, "create", "order", order.id, f"Created order {order.order_number}", commit=False)
        self.db.commit()

        logger.info(
            f"Order {order.order_number} created",
            extra={'extra_fields': {'order_id': order.id, 'total_amount': total, 'items': len(lines)}}
        )
        return order

    def _take_stock_sequentially(self, items: List[OrderItemInput]) -> List[Tuple[OrderItemInput, Product]]:
        lines = []
        for item in items:
            product = self.db.get(Product, item.product)
            if not product:
                raise NotFoundError(f"Product not found: {item.product}")
            if product.stock < item.quantity:
                raise StockError(product.id, product.title, item.quantity, product.stock)
            product.stock -= item.quantity
            product.sales_count = (product.sales_count or 0) + item.quantity
            self.db.commit()
            lines.append((item, product))
        return lines

    def _take_stock_atomically(self, items: List[OrderItemInput]) -> List[Tuple[OrderItemInput, Product]]:
        lines = []
        for item in items:
            product = self.db.get(Product, item.product)
            if not product:
                self.db.rollback()
                raise NotFoundError(f"Product not found: {item.product}")
            updated = (
                self.db.query(Product)
                .filter(Product.id == product.id, Product.stock >= item.quantity)
                .update(
                    {
                        Product.stock: Product.stock - item.quantity,
                        Product.sales_count: Product.sales_count + item.quantity,
                    },
                    synchronize_session="fetch",
                )
            )
            if not updated:
                self.db.refresh(product)
                error = StockError(product.id, product.title, item.quantity, product.stock)
                self.db.rollback()
                raise error
            lines.append((item, product))
        return lines

    def get(self, order_id) -> Order:
        order = self.db.get(Order, parse_id(order_id, "order ID"))
        if not order:
            raise NotFoundError("Order not found")
        return order

    def list(
        self,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        brand: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        limit: int = 50,
    ):
        query = self.db.query(Order).options(selectinload(Order.items))
        if status and status != "all":
            query = query.filter(Order.status == status)
        if payment_status and payment_status != "all":
            query = query.filter(Order.payment_status == payment_status)
        if brand and brand != "all":
            query = query.filter(Order.brand == brand)
        if start_date:
            query = query.filter(Order.created_at >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(Order.created_at < datetime.combine(end_date + timedelta(days=1), time.min))
        return paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page, limit)

    def update(self, order_id, data: OrderUpdate, actor: Optional[Actor] = None) -> Order:
        order = self.get(order_id)
        fields = data.model_dump(exclude_unset=True)
        credited_to, credited_total = order.customer, order.total_amount

        if data.customer is not None:
            order.customer = self.customers.find_or_create(data.customer)
        if data.payment_method is not None:
            order.payment_method = data.payment_method.value
        if data.delivery_method is not None:
            order.delivery_method = data.delivery_method.value
        if data.delivery_person is not None:
            order.delivery_person_name = data.delivery_person.name
            order.delivery_person_phone = data.delivery_person.phone
        if data.status is not None:
            order.status = data.status.value
        if data.paid_amount is not None:
            order.paid_amount = data.paid_amount
        if data.courier_charge is not None:
            order.courier_charge = data.courier_charge
        if "notes" in fields:
            order.notes = data.notes

        order.total_amount = rules.total_amount(order.subtotal, order.courier_charge)
        order.due_amount = rules.due_amount(order.total_amount, order.paid_amount, clamp=True)
        if data.payment_status is not None:
            order.payment_status = data.payment_status.value
        else:
            order.payment_status = rules.payment_status(order.total_amount, order.paid_amount, order.due_amount)

        # Customer aggregates always hold the current total under the current customer
        if order.customer is not credited_to or order.total_amount != credited_total:
            CustomerService.forget_order(credited_to, credited_total)
            CustomerService.record_order(order.customer, order.total_amount, when=order.created_at)

        record_history(
            self.db, actor, "update", "order", order.id,
            f"Updated order {order.order_number}: {', '.join(sorted(fields)) or 'no changes'}",
            commit=False,
        )
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Order {order.order_number} updated", extra={'extra_fields': {'order_id': order.id}})
        return order

    def delete(self, order_id, actor: Optional[Actor] = None) -> None:
        order = self.get(order_id)

        for item in order.items:
            product = self.db.get(Product, item.product_id)
            if product is None:
                logger.warning(
                    "Product missing, stock not restored",
                    extra={'extra_fields': {'order_id': order.id, 'product_id': item.product_id}}
                )
                continue
            product.stock += item.quantity
            product.sales_count -= item.quantity

        CustomerService.forget_order(order.customer, order.total_amount)
        record_history(self.db, actor, "delete", "order", order.id, f"Deleted order {order.order_number}", commit=False)
        self.db.delete(order)
        self.db.commit()
        logger.info(f"Order {order.order_number} deleted", extra={'extra_fields': {'order_id': order.id}})
