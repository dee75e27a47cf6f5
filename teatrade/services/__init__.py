"""
Service Layer - business rules on top of the repositories

Services own their transactions: every write runs in ``retry_transaction``.
"""
from teatrade.services.import_export_service import ImportExportService
from teatrade.services.lot_service import LotService
from teatrade.services.shipment_service import ShipmentService
from teatrade.services.stock_service import StockService

__all__ = ['ImportExportService', 'LotService', 'ShipmentService', 'StockService']
