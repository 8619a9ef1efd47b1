from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from shopdesk.core_settings import Settings
from shopdesk.infrastructure.db import get_db
from shopdesk.application.bulk_import import BulkImportService
from shopdesk.application.product_service import ProductService
from shopdesk.application.schemas import (
    ProductCreate,
    ProductListResponse,
    ProductRead,
    ProductResponse,
    ProductUpdate,
)
from .deps import get_app_settings, get_product_service

router = APIRouter(prefix="/products", tags=["products"])

@router.get("", response_model=ProductListResponse)
def list_products(
    category: Optional[str] = None,
    brand: Optional[str] = None,
    search: Optional[str] = None,
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    service: ProductService = Depends(get_product_service),
):
    products, pagination = service.list(category, brand, search, in_stock, page, limit)
    return ProductListResponse(
        products=[ProductRead.model_validate(p) for p in products],
        pagination=pagination,
    )

@router.post("/bulk")
def bulk_create_products(
    payload: Dict[str, Any] = Body(...),
    mode: str = Query("partial"),
    sku_prefix: Optional[str] = Query(None, alias="skuPrefix"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Import many products at once.

    Answers 201 when every item was created, 207 when only some were and 400
    when none were.
    """
    result = BulkImportService(db).import_products(
        payload.get("products"),
        mode=mode,
        sku_prefix=sku_prefix or settings.DEFAULT_SKU_PREFIX,
    )
    return JSONResponse(status_code=result.status_code, content=result.body)

@router.get("/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, service: ProductService = Depends(get_product_service)):
    return ProductResponse(product=ProductRead.model_validate(service.get(product_id)))

@router.post("", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreate, service: ProductService = Depends(get_product_service)):
    product = service.create(payload)
    return ProductResponse(message="Product created successfully", product=ProductRead.model_validate(product))

@router.put("/{product_id}", response_model=ProductResponse)
def update_product(product_id: str, payload: ProductUpdate, service: ProductService = Depends(get_product_service)):
    product = service.update(product_id, payload)
    return ProductResponse(message="Product updated successfully", product=ProductRead.model_validate(product))

@router.delete("/{product_id}", response_model=ProductResponse)
def deactivate_product(product_id: str, service: ProductService = Depends(get_product_service)):
    product = service.deactivate(product_id)
    return ProductResponse(message="Product deactivated successfully", product=ProductRead.model_validate(product))
