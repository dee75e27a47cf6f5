"""
Stock lots held in the warehouse, their movement history and favorites
"""
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from teatrade.core.database import Base


class Stock(Base):
    __tablename__ = "stocks"

    id = Column(Integer, primary_key=True, index=True)

    # Identificación
    lot_no = Column(String(50), nullable=False, unique=True, index=True)
    sale_code = Column(String(50), nullable=False)
    broker = Column(String(10), nullable=False, index=True)
    mark = Column(String(255), nullable=False)
    grade = Column(String(10), nullable=False, index=True)
    invoice_no = Column(String(100), nullable=False)
    batch_number = Column(String(100))

    # Cantidades (weight in kg)
    bags = Column(Integer, nullable=False)
    weight = Column(Float, nullable=False)
    purchase_value = Column(Float, nullable=False, default=0)
    low_stock_threshold = Column(Float)

    admin_cognito_id = Column(String(100))

    # Metadata
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    history = relationship("StockHistory", back_populates="stock", cascade="all, delete-orphan")
    favorites = relationship("Favorite", back_populates="stock", cascade="all, delete-orphan")
    shipment_links = relationship("ShipmentStock", back_populates="stock")
    assignments = relationship("StockAssignment", back_populates="stock", cascade="all, delete-orphan")

    @property
    def weight_per_bag(self) -> float:
        """Average bag weight, rounded to 2 decimals (0 when no bags left)"""
        return round(self.weight / self.bags, 2) if self.bags > 0 else 0


class StockHistory(Base):
    """
    Audit trail of every change to a stock lot

    action: CREATED, REDUCED, RESTORED, SHIPPED, UPDATED, ASSIGNED, UNASSIGNED
    """
    __tablename__ = "stock_history"

    id = Column(Integer, primary_key=True, index=True)
    stocks_id = Column(Integer, ForeignKey("stocks.id", ondelete="CASCADE"), index=True, nullable=False)
    action = Column(String(20), nullable=False)
    user_cognito_id = Column(String(100), nullable=False, index=True)
    shipment_id = Column(Integer, index=True)
    details = Column(JSON)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    stock = relationship("Stock", back_populates="history")


class Favorite(Base):
    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint("user_cognito_id", "stocks_id", name="user_stocks_favorite"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_cognito_id = Column(String(100), nullable=False, index=True)
    stocks_id = Column(Integer, ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    stock = relationship("Stock", back_populates="favorites")


class StockAssignment(Base):
    """Weight of a stock lot reserved for one buyer"""
    __tablename__ = "stock_assignments"
    __table_args__ = (
        UniqueConstraint("stocks_id", "user_cognito_id", name="stock_user_assignment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    stocks_id = Column(Integer, ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False, index=True)
    user_cognito_id = Column(String(100), nullable=False, index=True)
    assigned_weight = Column(Float, nullable=False)
    assigned_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    stock = relationship("Stock", back_populates="assignments")
