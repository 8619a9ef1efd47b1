from fastapi import APIRouter, Depends

from shopdesk.infrastructure.history import Actor, get_actor
from shopdesk.application.courier_service import CourierService
from shopdesk.application.schemas import (
    CourierBatchRequest,
    CourierBatchResponse,
    CourierOrderRequest,
    CourierSendResponse,
    CourierStatusResponse,
)
from shopdesk.domain.models import Brand
from shopdesk.infrastructure.pathao import PathaoClientRegistry
from .deps import get_courier_service, get_pathao_registry

router = APIRouter(prefix="/pathao", tags=["courier"])

@router.post("/send-order", response_model=CourierSendResponse)
def send_order(
    payload: CourierOrderRequest,
    service: CourierService = Depends(get_courier_service),
    actor: Actor = Depends(get_actor),
):
    consignment_id = service.send(payload.order_id, actor)
    return CourierSendResponse(consignment_id=consignment_id, message="Order sent to Pathao successfully")

@router.post("/send-orders", response_model=CourierBatchResponse)
def send_orders(
    payload: CourierBatchRequest,
    service: CourierService = Depends(get_courier_service),
    actor: Actor = Depends(get_actor),
):
    """Dispatch several orders; each one succeeds or fails on its own."""
    results = service.send_many(payload.order_ids, actor)
    sent = sum(1 for r in results if r.success)
    return CourierBatchResponse(
        success=sent == len(results),
        sent_count=sent,
        failed_count=len(results) - sent,
        results=results,
    )

@router.post("/update-status", response_model=CourierStatusResponse)
def update_status(
    payload: CourierOrderRequest,
    service: CourierService = Depends(get_courier_service),
    actor: Actor = Depends(get_actor),
):
    order, courier_status, changed = service.refresh_status(payload.order_id, actor)
    return CourierStatusResponse(
        pathao_status=courier_status,
        system_status=order.status,
        system_status_changed=changed,
        message="Status updated successfully",
    )

@router.get("/stores")
def list_stores(brand: Brand, registry: PathaoClientRegistry = Depends(get_pathao_registry)):
    """Pickup stores registered with the courier for a brand."""
    return registry.get(brand.value).get_stores()
