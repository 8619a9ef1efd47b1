from fastapi import Depends, Request
from sqlalchemy.orm import Session

from shopdesk.core_settings import Settings
from shopdesk.infrastructure.db import get_db
from shopdesk.infrastructure.pathao import PathaoClientRegistry
from shopdesk.application.courier_service import CourierService
from shopdesk.application.order_service import OrderService
from shopdesk.application.product_service import ProductService

def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_pathao_registry(request: Request) -> PathaoClientRegistry:
    return request.app.state.pathao_registry

def get_order_service(db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)) -> OrderService:
    return OrderService(db, atomic=settings.ORDER_CREATE_ATOMIC)

def get_product_service(db: Session = Depends(get_db), settings: Settings = Depends(get_app_settings)) -> ProductService:
    return ProductService(db, sku_prefix=settings.DEFAULT_SKU_PREFIX)

def get_courier_service(
    db: Session = Depends(get_db),
    registry: PathaoClientRegistry = Depends(get_pathao_registry),
) -> CourierService:
    return CourierService(db, registry)
