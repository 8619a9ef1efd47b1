from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from shared.core import get_logger
from shopdesk.domain.errors import NotFoundError, ShopdeskError, UpstreamError, ValidationError
from shopdesk.domain.models import DeliveryMethod, Order, OrderStatus, PaymentStatus
from shopdesk.infrastructure.history import Actor, record_history
from shopdesk.infrastructure.pathao import OrderSnapshot, PathaoClientRegistry
from .common import blank, parse_id
from .schemas import CourierBatchResult

logger = get_logger(__name__)

class CourierService:
    def __init__(self, db: Session, registry: PathaoClientRegistry):
        self.db = db
        self.registry = registry

    def _load(self, order_id) -> Order:
        if blank(order_id):
            raise ValidationError("Order ID is required", missing_fields=["orderId"])
        order = self.db.get(Order, parse_id(order_id, "order ID"))
        if not order:
            raise NotFoundError("Order not found")
        return order

    def send(self, order_id, actor: Optional[Actor] = None) -> str:
        """Book a consignment for one order and return its id."""
        order = self._load(order_id)
        if order.pathao_consignment_id:
            raise ValidationError("Order already sent to Pathao")
        if order.delivery_method != DeliveryMethod.PATHAO.value:
            raise ValidationError("Order delivery method is not Pathao")

        client = self.registry.get(order.brand)
        result = client.create_order(OrderSnapshot.from_order(order))
        data = result.get("data") or {}
        consignment_id = data.get("consignment_id")
        if not consignment_id:
            raise UpstreamError("Pathao response did not include a consignment id", upstream_body=str(result))

        order.pathao_consignment_id = str(consignment_id)
        order.pathao_status = data.get("order_status")
        order.pathao_updated_at = datetime.utcnow()
        record_history(
            self.db, actor, "pathao_send", "order", order.id,
            f"Sent order {order.order_number} to Pathao. Consignment: {consignment_id}",
            commit=False,
        )
        self.db.commit()
        logger.info(
            f"Order {order.order_number} sent to courier",
            extra={'extra_fields': {'order_id': order.id, 'brand': order.brand, 'consignment_id': order.pathao_consignment_id}}
        )
        return order.pathao_consignment_id

    def send_many(self, order_ids: List[Any], actor: Optional[Actor] = None) -> List[CourierBatchResult]:
        """Dispatch orders one after another; a failure only affects its own order."""
        results = []
        for order_id in order_ids:
            try:
                consignment_id = self.send(order_id, actor)
            except ShopdeskError as e:
                self.db.rollback()
                logger.warning(
                    "Courier dispatch failed",
                    extra={'extra_fields': {'order_id': str(order_id), 'error': e.message}}
                )
                results.append(CourierBatchResult(order_id=str(order_id), success=False, error=e.message))
                continue
            results.append(CourierBatchResult(order_id=str(order_id), success=True, consignment_id=consignment_id))
        return results

    def refresh_status(self, order_id, actor: Optional[Actor] = None) -> Tuple[Order, Optional[str], bool]:
        """Pull the courier status and fold it into the order.

        Returns the order, the courier status and whether the order status moved.
        """
        order = self._load(order_id)
        if not order.pathao_consignment_id:
            raise ValidationError("Order not sent to Pathao")

        result = self.registry.get(order.brand).get_order_status(order.pathao_consignment_id)
        data: Dict[str, Any] = result.get("data") or {}
        new_status = data.get("order_status")
        old_status = order.pathao_status

        order.pathao_status = new_status
        order.pathao_updated_at = datetime.utcnow()
        changed = apply_courier_status(order, new_status)

        record_history(
            self.db, actor, "pathao_status_update", "order", order.id,
            f'Pathao status updated from "{old_status}" to "{new_status}" for order {order.order_number}',
            commit=False,
        )
        self.db.commit()
        logger.info(
            f"Courier status for {order.order_number}: {new_status}",
            extra={'extra_fields': {'order_id': order.id, 'system_status': order.status, 'changed': changed}}
        )
        return order, new_status, changed

def apply_courier_status(order: Order, courier_status: Optional[str]) -> bool:
    """Move the order along with the courier; True when its status changed."""
    status = (courier_status or "").lower()
    if status == "delivered" and order.status != OrderStatus.DELIVERED.value:
        order.status = OrderStatus.DELIVERED.value
        # Cash on delivery has been collected
        if order.due_amount > 0:
            order.paid_amount = order.total_amount
            order.due_amount = 0
            order.payment_status = PaymentStatus.PAID.value
        return True
    if status == "cancelled" and order.status != OrderStatus.CANCELLED.value:
        order.status = OrderStatus.CANCELLED.value
        return True
    if status in ("picked", "shipped") and order.status == OrderStatus.PROCESSING.value:
        order.status = OrderStatus.SHIPPED.value
        return True
    return False
