"""
Shipments and the stock lots assigned to them
"""
from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from teatrade.core.database import Base


class Shipment(Base):
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True)
    user_cognito_id = Column(String(100), nullable=False, index=True)

    shipment_date = Column(DateTime(timezone=True), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="Pending", index=True)
    consignee = Column(String(255), nullable=False)
    vessel = Column(String(20), nullable=False)
    shipmark = Column(String(255), nullable=False, unique=True)
    packaging_instructions = Column(String(50), nullable=False)
    additional_instructions = Column(Text)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    stocks = relationship("ShipmentStock", back_populates="shipment", cascade="all, delete-orphan")
    history = relationship("ShipmentHistory", back_populates="shipment")


class ShipmentStock(Base):
    """Weight of one stock lot assigned to a shipment"""
    __tablename__ = "shipment_stocks"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id", ondelete="CASCADE"), index=True, nullable=False)
    stocks_id = Column(Integer, ForeignKey("stocks.id"), index=True, nullable=False)
    assigned_weight = Column(Float, nullable=False)

    shipment = relationship("Shipment", back_populates="stocks")
    stock = relationship("Stock", back_populates="shipment_links")


class ShipmentHistory(Base):
    """
    Audit trail of shipment changes

    action: CREATED, STATUS_UPDATED, DELETED
    """
    __tablename__ = "shipment_history"

    id = Column(Integer, primary_key=True, index=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id", ondelete="SET NULL"), index=True)
    user_cognito_id = Column(String(100), nullable=False)
    action = Column(String(30), nullable=False)
    details = Column(JSON)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    shipment = relationship("Shipment", back_populates="history")
