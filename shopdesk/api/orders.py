from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from shopdesk.infrastructure.history import Actor, get_actor
from shopdesk.application.order_service import OrderService
from shopdesk.application.schemas import (
    MessageResponse,
    OrderCreate,
    OrderListResponse,
    OrderRead,
    OrderResponse,
    OrderUpdate,
)
from .deps import get_order_service

router = APIRouter(prefix="/orders", tags=["orders"])

@router.get("", response_model=OrderListResponse)
def list_orders(
    status: Optional[str] = None,
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    brand: Optional[str] = None,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    service: OrderService = Depends(get_order_service),
):
    """List orders, newest first."""
    orders, pagination = service.list(status, payment_status, brand, start_date, end_date, page, limit)
    return OrderListResponse(orders=[OrderRead.from_order(o) for o in orders], pagination=pagination)

@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, service: OrderService = Depends(get_order_service)):
    return OrderResponse(order=OrderRead.from_order(service.get(order_id)))

@router.post("", response_model=OrderResponse, status_code=201)
def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
    actor: Actor = Depends(get_actor),
):
    """Create an order and take the ordered units out of stock."""
    order = service.create(payload, actor)
    return OrderResponse(message="Order created successfully", order=OrderRead.from_order(order))

@router.put("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: str,
    payload: OrderUpdate,
    service: OrderService = Depends(get_order_service),
    actor: Actor = Depends(get_actor),
):
    order = service.update(order_id, payload, actor)
    return OrderResponse(message="Order updated successfully", order=OrderRead.from_order(order))

@router.delete("/{order_id}", response_model=MessageResponse)
def delete_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    actor: Actor = Depends(get_actor),
):
    """Delete an order and put its units back on the shelf."""
    service.delete(order_id, actor)
    return MessageResponse(message="Order deleted successfully")
