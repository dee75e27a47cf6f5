"""
Lot Repository - Data Access Layer for lot listings

Catalogs, selling prices and out-lots share one repository. Each table is
described by a ``LotResource`` naming its model, schemas, filterable and
searchable columns and export layout; ``LotRepository`` reads and writes
any of them through that description.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from teatrade.domain.common import ANY
from teatrade.domain.lots import (
    CatalogCreate,
    CatalogQuery,
    LotCreate,
    LotQuery,
    OutLotCreate,
    OutLotQuery,
    SellingPriceCreate,
    SellingPriceQuery,
)
from teatrade.models import Catalog, OutLot, SellingPrice


@dataclass(frozen=True)
class LotResource:
    """
    Description of one lot listing table

    Fields:
        name: URL segment (``/catalogs``)
        label: Singular, human-readable name used in messages
        model: SQLAlchemy model
        create_schema: Body/CSV row schema
        query_schema: List filter schema
        exact_filters: Attributes filtered by equality when present in the query
        enum_filters: Attributes whose filter value may be ``any``
        search_columns: Attributes searched (case-insensitive) by ``search``
        export_columns: (header, attribute) pairs for exports
        export_format: ``csv`` or ``xlsx``
        header_aliases: Extra normalized CSV headers mapped to attributes
    """
    name: str
    label: str
    model: Type
    create_schema: Type[LotCreate]
    query_schema: Type[LotQuery]
    exact_filters: Tuple[str, ...]
    enum_filters: Tuple[str, ...]
    search_columns: Tuple[str, ...]
    export_columns: Tuple[Tuple[str, str], ...]
    export_format: str = "csv"
    header_aliases: Dict[str, str] = field(default_factory=dict)

    @property
    def sortable_columns(self) -> List[str]:
        return [column.key for column in self.model.__table__.columns]

    @property
    def filter_columns(self) -> Tuple[str, ...]:
        return self.exact_filters + self.enum_filters


_LOT_EXPORT = (
    ("Lot Number", "lot_no"),
    ("Broker", "broker"),
    ("Selling Mark", "selling_mark"),
    ("Grade", "grade"),
    ("Invoice Number", "invoice_no"),
    ("Bags", "bags"),
    ("Net Weight", "net_weight"),
    ("Total Weight", "total_weight"),
    ("Manufacture Date", "manufacture_date"),
)

CATALOGS = LotResource(
    name="catalogs",
    label="catalog",
    model=Catalog,
    create_schema=CatalogCreate,
    query_schema=CatalogQuery,
    exact_filters=("lot_no", "selling_mark", "sale_code", "invoice_no"),
    enum_filters=("broker", "grade", "category"),
    search_columns=("lot_no", "invoice_no", "selling_mark", "producer_country"),
    export_columns=(
        ("Sale Code", "sale_code"),
        ("Category", "category"),
        *_LOT_EXPORT,
        ("Reprint", "reprint"),
        ("Asking Price", "asking_price"),
        ("Producer Country", "producer_country"),
    ),
    export_format="csv",
    header_aliases={"rp": "reprint", "manufactureddate": "manufacture_date"},
)

SELLING_PRICES = LotResource(
    name="sellingPrices",
    label="selling price",
    model=SellingPrice,
    create_schema=SellingPriceCreate,
    query_schema=SellingPriceQuery,
    exact_filters=("lot_no", "selling_mark", "sale_code", "invoice_no"),
    enum_filters=("broker", "grade", "category"),
    search_columns=("lot_no", "invoice_no", "selling_mark", "producer_country"),
    export_columns=(
        ("Sale Code", "sale_code"),
        ("Category", "category"),
        *_LOT_EXPORT,
        ("Reprint", "reprint"),
        ("Asking Price", "asking_price"),
        ("Purchase Price", "purchase_price"),
        ("Producer Country", "producer_country"),
    ),
    export_format="xlsx",
    header_aliases={"rp": "reprint", "manufactureddate": "manufacture_date"},
)

OUT_LOTS = LotResource(
    name="outLots",
    label="out-lot",
    model=OutLot,
    create_schema=OutLotCreate,
    query_schema=OutLotQuery,
    exact_filters=("lot_no", "selling_mark", "invoice_no", "auction"),
    enum_filters=("broker", "grade"),
    search_columns=("lot_no", "invoice_no", "selling_mark", "auction"),
    export_columns=(
        ("Auction", "auction"),
        *_LOT_EXPORT,
        ("Baseline Price", "baseline_price"),
    ),
    export_format="xlsx",
    header_aliases={"manufactureddate": "manufacture_date", "baseline": "baseline_price"},
)

LOT_RESOURCES = (CATALOGS, SELLING_PRICES, OUT_LOTS)


class LotRepository:
    """
    Repository for lot listings

    All queries for catalogs, selling prices and out-lots are centralized
    here. Works inside whatever session (and transaction) the caller owns.
    """

    def __init__(self, session: Session, resource: LotResource):
        self.session = session
        self.resource = resource
        self.model = resource.model

    def find_by_id(self, lot_id: int):
        """
        Find a lot by ID

        Returns:
            Model instance or None if not found
        """
        return self.session.get(self.model, lot_id)

    def find_by_lot_nos(self, lot_nos: Iterable[str]) -> Dict[str, Any]:
        """Existing rows keyed by lot number"""
        lot_nos = list(lot_nos)
        if not lot_nos:
            return {}
        rows = self.session.scalars(select(self.model).where(self.model.lot_no.in_(lot_nos)))
        return {row.lot_no: row for row in rows}

    def find_by_ids(self, ids: Optional[List[int]] = None) -> List[Any]:
        """Rows with the given IDs, or every row when ``ids`` is empty"""
        stmt = select(self.model).order_by(self.model.id)
        if ids:
            stmt = stmt.where(self.model.id.in_(ids))
        return list(self.session.scalars(stmt))

    def _apply_filters(self, stmt, query: LotQuery):
        for attr in self.resource.exact_filters:
            value = getattr(query, attr, None)
            if value:
                stmt = stmt.where(getattr(self.model, attr) == value)

        for attr in self.resource.enum_filters:
            value = getattr(query, attr, ANY)
            if value and value != ANY:
                stmt = stmt.where(getattr(self.model, attr) == value)

        if query.search:
            pattern = f"%{query.search}%"
            stmt = stmt.where(or_(*[
                getattr(self.model, attr).ilike(pattern)
                for attr in self.resource.search_columns
            ]))
        return stmt

    def find_all(self, query: LotQuery) -> Tuple[List[Any], int]:
        """
        Find lots with filters

        Args:
            query: Parsed filter/pagination/sort parameters

        Returns:
            Tuple of (rows for the requested page, total matching count)
        """
        stmt = self._apply_filters(select(self.model), query)

        total = self.session.scalar(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        )

        if query.sort_by:
            column = getattr(self.model, query.sort_by)
            stmt = stmt.order_by(column.desc() if query.sort_order == "desc" else column.asc())
        else:
            stmt = stmt.order_by(self.model.created_at.desc(), self.model.id.desc())

        rows = list(self.session.scalars(stmt.limit(query.limit).offset(query.offset)))
        return rows, total or 0

    def distinct_values(self) -> Dict[str, List[Any]]:
        """Distinct non-empty values of every filterable column"""
        options = {}
        for attr in self.resource.filter_columns:
            column = getattr(self.model, attr)
            values = self.session.scalars(
                select(column).where(column.isnot(None)).distinct().order_by(column)
            )
            options[attr] = [value for value in values if value != ""]
        return options

    def create(self, data: Dict[str, Any]):
        """Insert a row; the caller's transaction commits it"""
        row = self.model(**data)
        self.session.add(row)
        self.session.flush()
        return row

    def update(self, row, data: Dict[str, Any]):
        for key, value in data.items():
            setattr(row, key, value)
        self.session.flush()
        return row

    def delete_by_ids(self, ids: List[int]) -> int:
        """
        Delete rows by ID

        Returns:
            Number of rows deleted
        """
        rows = self.session.scalars(select(self.model).where(self.model.id.in_(ids))).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)
