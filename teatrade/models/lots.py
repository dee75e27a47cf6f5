"""
Auction lot listings: catalogs, selling prices and out-lots

The three tables share the lot columns from LotColumns and add their own
pricing/auction columns.
"""
from sqlalchemy import Column, Date, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from teatrade.core.database import Base


class LotColumns:
    """Columns common to every lot listing"""

    id = Column(Integer, primary_key=True, index=True)

    # Identificación
    lot_no = Column(String(50), nullable=False, unique=True, index=True)
    broker = Column(String(10), nullable=False, index=True)
    selling_mark = Column(String(255), nullable=False, index=True)
    invoice_no = Column(String(100), nullable=False)
    grade = Column(String(10), nullable=False, index=True)

    # Cantidades
    bags = Column(Integer, nullable=False)
    net_weight = Column(Float, nullable=False)
    total_weight = Column(Float, nullable=False)

    manufacture_date = Column(Date)
    admin_cognito_id = Column(String(100), index=True)

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Catalog(LotColumns, Base):
    """Lots offered at the upcoming auction"""
    __tablename__ = "catalogs"

    sale_code = Column(String(50), nullable=False, index=True)
    category = Column(String(10), nullable=False, index=True)
    reprint = Column(String(10))
    asking_price = Column(Float, nullable=False)
    producer_country = Column(String(100))


class SellingPrice(LotColumns, Base):
    """Prices realised for lots at auction"""
    __tablename__ = "selling_prices"

    sale_code = Column(String(50), nullable=False, index=True)
    category = Column(String(10), nullable=False, index=True)
    reprint = Column(Integer, nullable=False, default=0)
    asking_price = Column(Float, nullable=False)
    purchase_price = Column(Float, nullable=False)
    producer_country = Column(String(100))


class OutLot(LotColumns, Base):
    """Lots withdrawn from auction"""
    __tablename__ = "out_lots"

    auction = Column(String(50), nullable=False, index=True)
    baseline_price = Column(Float, nullable=False, default=0)
