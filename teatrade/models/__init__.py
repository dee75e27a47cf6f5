"""
Database models
"""
from .users import Admin, Contact, User
from .lots import Catalog, OutLot, SellingPrice
from .stock import Favorite, Stock, StockAssignment, StockHistory
from .shipment import Shipment, ShipmentHistory, ShipmentStock
from .report import Report

__all__ = [
    "Admin",
    "Contact",
    "User",
    "Catalog",
    "OutLot",
    "SellingPrice",
    "Favorite",
    "Stock",
    "StockAssignment",
    "StockHistory",
    "Shipment",
    "ShipmentHistory",
    "ShipmentStock",
    "Report",
]
