"""
Domain Layer - request schemas and shared vocabulary

Pydantic models describing what each endpoint accepts. Validators raise
ValueError with the client-facing message.
"""
from teatrade.domain.common import ApiModel, PageQuery, serialize_row
from teatrade.domain.contact import ContactCreate, ContactListQuery
from teatrade.domain.user import UserRegister
from teatrade.domain.lots import (
    CatalogCreate,
    CatalogQuery,
    OutLotCreate,
    OutLotQuery,
    SellingPriceCreate,
    SellingPriceQuery,
)
from teatrade.domain.stock import StockAdjust, StockCreate, StockQuery
from teatrade.domain.shipment import ShipmentCreate, ShipmentQuery, ShipmentStatusUpdate

__all__ = [
    'ApiModel', 'PageQuery', 'serialize_row',
    'ContactCreate', 'ContactListQuery', 'UserRegister',
    'CatalogCreate', 'CatalogQuery', 'OutLotCreate', 'OutLotQuery',
    'SellingPriceCreate', 'SellingPriceQuery',
    'StockAdjust', 'StockCreate', 'StockQuery',
    'ShipmentCreate', 'ShipmentQuery', 'ShipmentStatusUpdate',
]
