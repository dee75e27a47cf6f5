"""
Repository Layer - Data Access

This layer handles all database queries through SQLAlchemy sessions.
Repositories never commit; callers own the transaction.
"""
from teatrade.repositories.lot_repository import LOT_RESOURCES, LotRepository, LotResource
from teatrade.repositories.shipment_repository import ShipmentRepository
from teatrade.repositories.stock_repository import StockRepository
from teatrade.repositories.user_repository import ContactRepository, UserRepository

__all__ = [
    'LOT_RESOURCES',
    'LotRepository',
    'LotResource',
    'ShipmentRepository',
    'StockRepository',
    'ContactRepository',
    'UserRepository',
]
