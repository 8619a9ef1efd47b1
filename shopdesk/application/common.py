import math
import re
from typing import Any, Optional, Union

from sqlalchemy.orm import Query

from shopdesk.domain.errors import ValidationError
from .schemas import Pagination

_ID_PATTERN = re.compile(r"^\d+$")

def parse_id(raw: Union[int, str, None], label: str = "ID") -> int:
    """Validate an identifier before it reaches the database."""
    value = str(raw).strip() if raw is not None else ""
    if not _ID_PATTERN.match(value):
        raise ValidationError(f"Invalid {label} format")
    return int(value)

def paginate(query: Query, page: int, limit: int) -> tuple[list[Any], Pagination]:
    total = query.order_by(None).count()
    rows = query.limit(limit).offset((page - 1) * limit).all()
    return rows, Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)

def blank(value: Optional[Any]) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")
