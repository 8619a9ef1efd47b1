"""Bulk product import.

Items are validated up front, then checked for duplicate SKUs inside the
request and against the catalogue. Items without a SKU get one from
:class:`SkuAllocator`.

``partial`` mode inserts whatever passed and reports a result per index.
``failfast`` mode refuses the whole batch on the first kind of problem it
finds, and otherwise inserts everything in one transaction.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.core import get_logger
from shopdesk.domain.errors import ConflictError, ValidationError
from shopdesk.domain.models import Product
from .common import blank
from .product_service import SkuAllocator
from .schemas import ProductRead

logger = get_logger(__name__)

REQUIRED_FIELDS = ["title", "buyPrice", "sellPrice", "stock", "category", "brand"]
NUMERIC_FIELDS = ["buyPrice", "sellPrice", "stock", "minStock"]
INTEGER_FIELDS = {"stock", "minStock"}
DEFAULT_MIN_STOCK = 5

class ImportMode(str, Enum):
    PARTIAL = "partial"
    FAILFAST = "failfast"

@dataclass
class ItemCheck:
    index: int
    missing: List[str]
    invalid_numbers: List[str]

    @property
    def ok(self) -> bool:
        return not self.missing and not self.invalid_numbers

@dataclass
class BulkImportResult:
    status_code: int
    body: Dict[str, Any]

def parse_number(value: Any) -> Optional[float]:
    """Numeric value of an int, float or numeric string; None if it is none of those."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number

def check_item(index: int, item: Any) -> ItemCheck:
    data = item if isinstance(item, dict) else {}
    missing = [f for f in REQUIRED_FIELDS if blank(data.get(f))]
    invalid_numbers = []
    for field in NUMERIC_FIELDS:
        value = data.get(field)
        if blank(value):
            continue
        number = parse_number(value)
        if number is None or number < 0 or (field in INTEGER_FIELDS and not number.is_integer()):
            invalid_numbers.append(field)
    return ItemCheck(index=index, missing=missing, invalid_numbers=invalid_numbers)

def _product_from_item(item: Dict[str, Any], sku: str) -> Product:
    min_stock = item.get("minStock")
    return Product(
        sku=sku,
        title=item["title"],
        description=item.get("description") or "",
        category=item["category"],
        brand=item["brand"],
        buy_price=parse_number(item["buyPrice"]),
        sell_price=parse_number(item["sellPrice"]),
        stock=int(parse_number(item["stock"])),
        min_stock=DEFAULT_MIN_STOCK if blank(min_stock) else int(parse_number(min_stock)),
        is_active=item.get("isActive", True) is not False,
        images=item.get("images") or [],
        tags=item.get("tags") or [],
    )

def _serialize(product: Product) -> Dict[str, Any]:
    return ProductRead.model_validate(product).model_dump(by_alias=True, mode="json")

class BulkImportService:
    def __init__(self, db: Session):
        self.db = db

    def import_products(self, items: Any, mode: str = ImportMode.PARTIAL.value, sku_prefix: str = "SKU-") -> BulkImportResult:
        if not isinstance(items, list) or not items:
            raise ValidationError('Body must include non-empty "products" array')
        try:
            mode = ImportMode((mode or ImportMode.PARTIAL.value).lower())
        except ValueError:
            raise ValidationError(f"Unknown import mode: {mode}")
        sku_prefix = sku_prefix or "SKU-"

        checks = [check_item(i, item) for i, item in enumerate(items)]
        invalid = [c for c in checks if not c.ok]
        if invalid and mode is ImportMode.FAILFAST:
            return self._refuse("Validation failed", [
                {"index": c.index, "missingFields": c.missing, "invalidNumbers": c.invalid_numbers}
                for c in invalid
            ])

        errors: Dict[int, Dict[str, Any]] = {
            c.index: {
                "error": "Missing required fields or invalid numbers",
                "missingFields": c.missing,
                "invalidNumbers": c.invalid_numbers,
            }
            for c in invalid
        }
        valid = [(c.index, items[c.index]) for c in checks if c.ok]

        # First occurrence of a SKU wins, later ones are duplicates
        provided: Dict[str, int] = {}
        duplicates = []
        for index, item in valid:
            sku = item.get("sku")
            if blank(sku):
                continue
            if sku in provided:
                duplicates.append({"index": index, "error": f"Duplicate SKU in request: {sku}"})
            else:
                provided[sku] = index
        if duplicates and mode is ImportMode.FAILFAST:
            return self._refuse("Duplicate SKUs in request", duplicates)

        existing = set()
        if provided:
            rows = self.db.query(Product.sku).filter(Product.sku.in_(list(provided))).all()
            existing = {sku for (sku,) in rows}
        conflicts = [{"index": provided[sku], "error": f"SKU already exists: {sku}"} for sku in sorted(existing)]
        if conflicts and mode is ImportMode.FAILFAST:
            return self._refuse("Some SKUs already exist", conflicts)

        for entry in duplicates + conflicts:
            errors[entry["index"]] = {"error": entry["error"]}

        allocator = SkuAllocator(self.db, sku_prefix, existing=provided.keys())
        pending = []
        for index, item in valid:
            if index in errors:
                continue
            sku = item.get("sku")
            if blank(sku):
                sku = allocator.allocate()
                if sku is None:
                    errors[index] = {"error": "Unable to generate a unique SKU"}
                    continue
            pending.append((index, _product_from_item(item, sku)))

        if mode is ImportMode.FAILFAST and errors:
            return self._refuse("Unable to generate a unique SKU", [
                {"index": index, **error} for index, error in sorted(errors.items())
            ])

        if not pending:
            results = [{"index": i, "success": False, **errors.get(i, {"error": "Unknown error"})} for i in range(len(items))]
            return BulkImportResult(400, {
                "success": False,
                "error": "No valid products to insert",
                "createdCount": 0,
                "failedCount": len(results),
                "results": results,
            })

        if mode is ImportMode.FAILFAST:
            created = self._insert_all(pending)
        else:
            created = self._insert_each(pending, errors)

        results = []
        for i in range(len(items)):
            if i in created:
                results.append({"index": i, "success": True, "product": _serialize(created[i])})
            else:
                results.append({"index": i, "success": False, **errors.get(i, {"error": "Not processed"})})

        created_count = len(created)
        failed_count = len(results) - created_count
        logger.info(
            "Bulk product import finished",
            extra={'extra_fields': {'mode': mode.value, 'created': created_count, 'failed': failed_count}}
        )
        if created_count == 0:
            return BulkImportResult(400, {
                "success": False,
                "error": "No valid products to insert",
                "createdCount": 0,
                "failedCount": failed_count,
                "results": results,
            })
        return BulkImportResult(201 if failed_count == 0 else 207, {
            "success": failed_count == 0,
            "message": "All products created successfully" if failed_count == 0
            else f"Bulk create completed: {created_count} created, {failed_count} failed",
            "createdCount": created_count,
            "failedCount": failed_count,
            "results": results,
        })

    def _insert_all(self, pending) -> Dict[int, Product]:
        self.db.add_all([product for _, product in pending])
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ConflictError("Insert failed (possible duplicate SKU)") from e
        return dict(pending)

    def _insert_each(self, pending, errors: Dict[int, Dict[str, Any]]) -> Dict[int, Product]:
        created = {}
        for index, product in pending:
            try:
                with self.db.begin_nested():
                    self.db.add(product)
                    self.db.flush()
            except IntegrityError:
                errors[index] = {"error": "Insert failed (possible duplicate SKU or validation error)"}
                continue
            created[index] = product
        self.db.commit()
        return created

    @staticmethod
    def _refuse(error: str, invalid: List[Dict[str, Any]]) -> BulkImportResult:
        return BulkImportResult(400, {"success": False, "error": error, "invalid": invalid})
