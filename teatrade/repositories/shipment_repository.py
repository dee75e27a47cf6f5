"""
Shipment Repository - Data Access Layer for shipments
"""
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from teatrade.domain.shipment import ShipmentHistoryQuery, ShipmentQuery
from teatrade.models import Shipment, ShipmentHistory, ShipmentStock


class ShipmentRepository:
    """Repository for Shipment data access"""

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, shipment_id: int) -> Optional[Shipment]:
        stmt = (
            select(Shipment)
            .where(Shipment.id == shipment_id)
            .options(selectinload(Shipment.stocks))
        )
        return self.session.scalars(stmt).first()

    def find_all(self, query: ShipmentQuery,
                 user_cognito_id: Optional[str] = None) -> Tuple[List[Shipment], int]:
        """
        Find shipments with filters

        Args:
            query: Parsed filters and pagination
            user_cognito_id: Restrict to one owner (None = every shipment)

        Returns:
            Tuple of (shipments for the requested page, total matching count)
        """
        stmt = select(Shipment)

        if user_cognito_id:
            stmt = stmt.where(Shipment.user_cognito_id == user_cognito_id)
        if query.status:
            stmt = stmt.where(Shipment.status == query.status)
        if query.stocks_id:
            stmt = stmt.where(Shipment.id.in_(
                select(ShipmentStock.shipment_id).where(ShipmentStock.stocks_id == query.stocks_id)
            ))
        if query.search:
            pattern = f"%{query.search}%"
            stmt = stmt.where(or_(
                Shipment.consignee.ilike(pattern),
                Shipment.shipmark.ilike(pattern),
            ))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = (
            stmt.options(selectinload(Shipment.stocks))
            .order_by(Shipment.shipment_date.desc(), Shipment.id.desc())
            .limit(query.limit)
            .offset(query.offset)
        )
        return list(self.session.scalars(stmt)), total or 0

    def create(self, shipment: Shipment) -> Shipment:
        self.session.add(shipment)
        self.session.flush()
        return shipment

    def delete(self, shipment: Shipment) -> None:
        self.session.delete(shipment)
        self.session.flush()

    def add_history(self, shipment_id: Optional[int], action: str, user_cognito_id: str,
                    details: Optional[dict] = None) -> ShipmentHistory:
        entry = ShipmentHistory(
            shipment_id=shipment_id,
            action=action,
            user_cognito_id=user_cognito_id,
            details=details,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def find_by_owners(self, user_cognito_ids: List[str]) -> List[Shipment]:
        if not user_cognito_ids:
            return []
        stmt = (
            select(Shipment)
            .where(Shipment.user_cognito_id.in_(user_cognito_ids))
            .options(selectinload(Shipment.stocks))
            .order_by(Shipment.shipment_date.desc(), Shipment.id.desc())
        )
        return list(self.session.scalars(stmt))

    def find_history(self, query: ShipmentHistoryQuery,
                     user_cognito_id: Optional[str] = None) -> Tuple[List[ShipmentHistory], int]:
        """
        Page through shipment history entries, newest first

        Args:
            query: Pagination and an optional shipmentId filter
            user_cognito_id: Only entries written by this user
        """
        stmt = select(ShipmentHistory).options(selectinload(ShipmentHistory.shipment))
        if user_cognito_id:
            stmt = stmt.where(ShipmentHistory.user_cognito_id == user_cognito_id)
        if query.shipment_id:
            stmt = stmt.where(ShipmentHistory.shipment_id == query.shipment_id)

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = stmt.order_by(ShipmentHistory.timestamp.desc(), ShipmentHistory.id.desc())
        rows = list(self.session.scalars(stmt.limit(query.limit).offset(query.offset)))
        return rows, total or 0
