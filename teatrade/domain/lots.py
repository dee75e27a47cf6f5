"""
Lot listing schemas: catalogs, selling prices and out-lots

Create models double as the row schema of CSV imports, so every field a
CSV column can carry is declared here.
"""
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BeforeValidator

from teatrade.domain.common import (
    ApiModel,
    Broker,
    BrokerFilter,
    CategoryFilter,
    GradeFilter,
    ManufactureDate,
    OptionalText,
    PageQuery,
    Reprint,
    TeaCategory,
    TeaGrade,
    non_negative,
    one_of,
    positive,
    required_text,
)

SORT_ORDERS = ("asc", "desc")


def _reprint_count(value):
    # Selling prices store the reprint count; "No" and blanks mean none
    if value is None or (isinstance(value, str) and value.strip() in ("", "No")):
        return 0
    return value


class LotCreate(ApiModel):
    """Fields shared by every lot listing"""
    broker: Broker
    lot_no: Annotated[str, required_text("Lot number is required")]
    selling_mark: Annotated[str, required_text("Selling mark is required")]
    invoice_no: Annotated[str, required_text("Invoice number is required")]
    grade: TeaGrade
    bags: Annotated[int, positive("Bags must be a positive integer")]
    net_weight: Annotated[float, positive("Net weight must be positive")]
    total_weight: Annotated[float, positive("Total weight must be positive")]
    # Taken from the token; accepted for compatibility with older clients
    admin_cognito_id: Optional[str] = None


class CatalogCreate(LotCreate):
    sale_code: Annotated[str, required_text("Sale code is required")]
    category: TeaCategory
    reprint: Reprint = None
    asking_price: Annotated[float, positive("Asking price must be positive")]
    producer_country: OptionalText = None
    manufacture_date: ManufactureDate


class SellingPriceCreate(LotCreate):
    sale_code: Annotated[str, required_text("Sale code is required")]
    category: TeaCategory
    reprint: Annotated[
        int,
        BeforeValidator(_reprint_count),
        non_negative("Reprint must be a non-negative integer"),
    ] = 0
    asking_price: Annotated[float, positive("Asking price must be positive")]
    purchase_price: Annotated[float, positive("Purchase price must be positive")]
    producer_country: OptionalText = None
    manufacture_date: ManufactureDate


class OutLotCreate(LotCreate):
    auction: Annotated[str, required_text("Auction is required")]
    baseline_price: Annotated[float, non_negative("Baseline price must be non-negative")] = 0
    manufacture_date: Optional[ManufactureDate] = None


class LotQuery(PageQuery):
    """Filters shared by every lot listing; 'any' disables an enum filter"""
    lot_no: OptionalText = None
    selling_mark: OptionalText = None
    invoice_no: OptionalText = None
    broker: BrokerFilter = "any"
    grade: GradeFilter = "any"
    search: OptionalText = None
    sort_by: OptionalText = None
    sort_order: Annotated[str, one_of(SORT_ORDERS, "Sort order must be 'asc' or 'desc'")] = "asc"


class CatalogQuery(LotQuery):
    sale_code: OptionalText = None
    category: CategoryFilter = "any"


class SellingPriceQuery(CatalogQuery):
    pass


class OutLotQuery(LotQuery):
    auction: OptionalText = None


def _at_least_one(ids: List[int]) -> List[int]:
    if not ids:
        raise ValueError("At least one ID is required")
    return ids


class DeleteLotsBody(ApiModel):
    ids: Annotated[
        List[Annotated[int, positive("IDs must be positive integers")]],
        AfterValidator(_at_least_one),
    ]


class ExportLotsBody(ApiModel):
    """Empty or absent ids export every row"""
    ids: Optional[List[Annotated[int, positive("IDs must be positive integers")]]] = None
