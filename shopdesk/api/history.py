from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shopdesk.domain.models import History
from shopdesk.infrastructure.db import get_db
from shopdesk.application.common import paginate
from shopdesk.application.schemas import HistoryListResponse, HistoryRead

router = APIRouter(prefix="/history", tags=["history"])

@router.get("", response_model=HistoryListResponse)
def list_history(
    resource: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    query = db.query(History)
    if resource:
        query = query.filter(History.resource == resource)
    entries, pagination = paginate(query.order_by(History.created_at.desc(), History.id.desc()), page, limit)
    return HistoryListResponse(history=[HistoryRead.model_validate(e) for e in entries], pagination=pagination)
