from datetime import datetime
from typing import Optional, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session

from shared.core import get_logger
from shopdesk.domain.errors import NotFoundError, ValidationError
from shopdesk.domain.models import Customer
from .common import paginate, parse_id
from .schemas import CustomerInput, CustomerSwitch, to_domain_address

logger = get_logger(__name__)

class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def list(self, search: Optional[str] = None, page: int = 1, limit: int = 100):
        query = self.db.query(Customer)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Customer.name.ilike(pattern),
                Customer.phone.ilike(pattern),
                Customer.email.ilike(pattern),
            ))
        return paginate(query.order_by(Customer.created_at.desc(), Customer.id.desc()), page, limit)

    def get(self, customer_id) -> Customer:
        customer = self.db.get(Customer, parse_id(customer_id, "customer ID"))
        if not customer:
            raise NotFoundError("Customer not found")
        return customer

    def find_or_create(self, data: Union[CustomerInput, CustomerSwitch]) -> Customer:
        """Look the customer up by phone; create one from the input if unseen.

        An existing customer is reused as is, the rest of the input is ignored.
        The new row is flushed, not committed.
        """
        customer = self.db.query(Customer).filter(Customer.phone == data.phone).first()
        if customer:
            return customer
        if not data.name:
            raise ValidationError("Customer name is required for a new customer", missing_fields=["customer.name"])

        customer = Customer(name=data.name, phone=data.phone, email=data.email)
        customer.address = to_domain_address(data.address)
        self.db.add(customer)
        self.db.flush()
        logger.info(
            "Customer created",
            extra={'extra_fields': {'customer_id': customer.id}}
        )
        return customer

    @staticmethod
    def record_order(customer: Customer, amount: float, when: Optional[datetime] = None) -> None:
        when = when or datetime.utcnow()
        customer.total_orders = (customer.total_orders or 0) + 1
        customer.total_spent = round((customer.total_spent or 0) + amount, 2)
        if customer.last_order is None or when > customer.last_order:
            customer.last_order = when

    @staticmethod
    def forget_order(customer: Customer, amount: float) -> None:
        customer.total_orders = max(0, (customer.total_orders or 0) - 1)
        customer.total_spent = max(0.0, round((customer.total_spent or 0) - amount, 2))
