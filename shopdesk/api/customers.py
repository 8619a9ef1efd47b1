from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shopdesk.infrastructure.db import get_db
from shopdesk.application.customer_service import CustomerService
from shopdesk.application.schemas import CustomerListResponse, CustomerRead, CustomerResponse

router = APIRouter(prefix="/customers", tags=["customers"])

@router.get("", response_model=CustomerListResponse)
def list_customers(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    customers, pagination = CustomerService(db).list(search, page, limit)
    return CustomerListResponse(
        customers=[CustomerRead.model_validate(c) for c in customers],
        pagination=pagination,
    )

@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: str, db: Session = Depends(get_db)):
    return CustomerResponse(customer=CustomerRead.model_validate(CustomerService(db).get(customer_id)))
