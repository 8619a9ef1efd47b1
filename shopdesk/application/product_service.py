import re
from typing import Iterable, Optional, Set

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.core import get_logger
from shopdesk.domain.errors import ConflictError, InternalError, NotFoundError
from shopdesk.domain.models import Product
from .common import paginate, parse_id
from .schemas import ProductCreate, ProductUpdate

logger = get_logger(__name__)

SKU_WIDTH = 6
MAX_SKU_ATTEMPTS = 1000

def make_sku(prefix: str, number: int, width: int = SKU_WIDTH) -> str:
    return f"{prefix}{number:0{width}d}"

class SkuAllocator:
    """Hands out ``<prefix><zero-padded number>`` SKUs.

    The counter starts after the highest number already used under the
    prefix. Candidates that exist in the database or were claimed earlier in
    the same batch are skipped. Concurrent allocators are not coordinated; the
    unique index on ``products.sku`` is the final guard.
    """

    def __init__(self, db: Session, prefix: str, existing: Iterable[str] = ()):
        self.db = db
        self.prefix = prefix
        self.claimed: Set[str] = set(existing)
        self.next_number = self._highest_number() + 1

    def _highest_number(self) -> int:
        pattern = re.compile(rf"^{re.escape(self.prefix)}(\d+)$")
        escaped = self.prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        rows = self.db.query(Product.sku).filter(Product.sku.like(f"{escaped}%", escape="\\")).all()
        numbers = [int(m.group(1)) for (sku,) in rows if (m := pattern.match(sku))]
        return max(numbers, default=0)

    def _taken(self, sku: str) -> bool:
        if sku in self.claimed:
            return True
        return self.db.query(Product.id).filter(Product.sku == sku).first() is not None

    def allocate(self) -> Optional[str]:
        """Return a fresh SKU, or None when the attempt budget runs out."""
        for _ in range(MAX_SKU_ATTEMPTS):
            candidate = make_sku(self.prefix, self.next_number)
            self.next_number += 1
            if not self._taken(candidate):
                self.claimed.add(candidate)
                return candidate
        return None

class ProductService:
    def __init__(self, db: Session, sku_prefix: str = "SKU-"):
        self.db = db
        self.sku_prefix = sku_prefix

    def list(
        self,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        search: Optional[str] = None,
        in_stock: Optional[bool] = None,
        page: int = 1,
        limit: int = 50,
    ):
        query = self.db.query(Product).filter(Product.is_active.is_(True))
        if category and category != "all":
            query = query.filter(Product.category.ilike(f"%{category}%"))
        if brand and brand != "all":
            query = query.filter(Product.brand == brand)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Product.title.ilike(pattern),
                Product.description.ilike(pattern),
                Product.sku.ilike(pattern),
            ))
        if in_stock is True:
            query = query.filter(Product.stock > 0)
        elif in_stock is False:
            query = query.filter(Product.stock == 0)
        return paginate(query.order_by(Product.created_at.desc(), Product.id.desc()), page, limit)

    def get(self, product_id) -> Product:
        product = self.db.get(Product, parse_id(product_id, "product ID"))
        if not product:
            raise NotFoundError("Product not found")
        return product

    def create(self, data: ProductCreate) -> Product:
        product_data = data.model_dump()
        if not product_data.get("sku"):
            product_data["sku"] = SkuAllocator(self.db, self.sku_prefix).allocate()
            if product_data["sku"] is None:
                raise InternalError("Unable to generate a unique SKU")
        elif self.db.query(Product.id).filter(Product.sku == product_data["sku"]).first():
            raise ConflictError("Product with this SKU already exists", sku=product_data["sku"])

        obj = Product(**product_data)
        self.db.add(obj)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Product with this SKU already exists", sku=product_data["sku"]) from e
        self.db.refresh(obj)
        logger.info("Product created", extra={'extra_fields': {'product_id': obj.id, 'sku': obj.sku}})
        return obj

    def update(self, product_id, data: ProductUpdate) -> Product:
        product = self.get(product_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(product, key, value)
        self.db.commit()
        self.db.refresh(product)
        return product

    def deactivate(self, product_id) -> Product:
        """Products are never removed, only hidden from the catalogue."""
        product = self.get(product_id)
        product.is_active = False
        self.db.commit()
        self.db.refresh(product)
        logger.info("Product deactivated", extra={'extra_fields': {'product_id': product.id}})
        return product
