"""
Stock Repository - Data Access Layer for stock lots, history and favorites
"""
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from teatrade.domain.stock import AssignmentHistoryQuery, StockHistoryQuery, StockQuery
from teatrade.models import Favorite, Stock, StockAssignment, StockHistory


class StockRepository:
    """
    Repository for Stock data access

    Methods never commit: the caller's transaction decides.
    """

    def __init__(self, session: Session):
        self.session = session

    def find_by_id(self, stock_id: int, for_update: bool = False) -> Optional[Stock]:
        """
        Find stock by ID

        Args:
            stock_id: Stock ID
            for_update: Lock the row (SELECT ... FOR UPDATE) where the database supports it

        Returns:
            Stock or None if not found
        """
        if for_update:
            stmt = select(Stock).where(Stock.id == stock_id).with_for_update()
            return self.session.scalars(stmt).first()
        return self.session.get(Stock, stock_id)

    def find_by_ids(self, ids: Optional[List[int]] = None) -> List[Stock]:
        stmt = select(Stock).order_by(Stock.id)
        if ids:
            stmt = stmt.where(Stock.id.in_(ids))
        return list(self.session.scalars(stmt))

    def find_by_lot_nos(self, lot_nos: Iterable[str]) -> Dict[str, Stock]:
        lot_nos = list(lot_nos)
        if not lot_nos:
            return {}
        rows = self.session.scalars(select(Stock).where(Stock.lot_no.in_(lot_nos)))
        return {row.lot_no: row for row in rows}

    def find_all(self, query: StockQuery, user_cognito_id: Optional[str] = None) -> Tuple[List[Stock], int]:
        """
        Find stocks with filters

        Args:
            query: Parsed filters and pagination
            user_cognito_id: Caller, used by ``onlyFavorites``

        Returns:
            Tuple of (stocks for the requested page, total matching count)
        """
        stmt = select(Stock)

        if query.lot_no:
            stmt = stmt.where(Stock.lot_no == query.lot_no)
        if query.batch_number:
            stmt = stmt.where(Stock.batch_number == query.batch_number)
        if query.grade:
            stmt = stmt.where(Stock.grade == query.grade)
        if query.broker:
            stmt = stmt.where(Stock.broker == query.broker)
        if query.min_weight is not None:
            stmt = stmt.where(Stock.weight >= query.min_weight)
        if query.search:
            pattern = f"%{query.search}%"
            stmt = stmt.where(or_(
                Stock.lot_no.ilike(pattern),
                Stock.mark.ilike(pattern),
                Stock.invoice_no.ilike(pattern),
                Stock.sale_code.ilike(pattern),
            ))
        if query.assignment_status != "all":
            assigned = Stock.id.in_(select(StockAssignment.stocks_id))
            stmt = stmt.where(assigned if query.assignment_status == "assigned" else ~assigned)
        if query.only_favorites and user_cognito_id:
            stmt = stmt.where(Stock.id.in_(
                select(Favorite.stocks_id).where(Favorite.user_cognito_id == user_cognito_id)
            ))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = stmt.order_by(Stock.created_at.desc(), Stock.id.desc())
        rows = list(self.session.scalars(stmt.limit(query.limit).offset(query.offset)))
        return rows, total or 0

    def create(self, data: Dict[str, Any]) -> Stock:
        stock = Stock(**data)
        self.session.add(stock)
        self.session.flush()
        return stock

    def update(self, stock: Stock, data: Dict[str, Any]) -> Stock:
        for key, value in data.items():
            setattr(stock, key, value)
        self.session.flush()
        return stock

    def delete_by_ids(self, ids: List[int]) -> int:
        rows = self.session.scalars(select(Stock).where(Stock.id.in_(ids))).all()
        for row in rows:
            self.session.delete(row)
        self.session.flush()
        return len(rows)

    # History

    def add_history(self, stock_id: int, action: str, user_cognito_id: str,
                    details: Optional[dict] = None, shipment_id: Optional[int] = None) -> StockHistory:
        entry = StockHistory(
            stocks_id=stock_id,
            action=action,
            user_cognito_id=user_cognito_id,
            shipment_id=shipment_id,
            details=details,
        )
        self.session.add(entry)
        self.session.flush()
        return entry

    def find_history(self, stock_id: int, query: StockHistoryQuery) -> Tuple[List[StockHistory], int]:
        stmt = select(StockHistory).where(StockHistory.stocks_id == stock_id)
        if query.action:
            stmt = stmt.where(StockHistory.action == query.action)

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = stmt.order_by(StockHistory.timestamp.desc(), StockHistory.id.desc())
        rows = list(self.session.scalars(stmt.limit(query.limit).offset(query.offset)))
        return rows, total or 0

    # Favorites

    def find_favorite(self, user_cognito_id: str, stock_id: int) -> Optional[Favorite]:
        stmt = select(Favorite).where(
            Favorite.user_cognito_id == user_cognito_id,
            Favorite.stocks_id == stock_id,
        )
        return self.session.scalars(stmt).first()

    def favorite_ids(self, user_cognito_id: str, stock_ids: Iterable[int]) -> Set[int]:
        """IDs among ``stock_ids`` the user has favorited"""
        stock_ids = list(stock_ids)
        if not stock_ids:
            return set()
        stmt = select(Favorite.stocks_id).where(
            Favorite.user_cognito_id == user_cognito_id,
            Favorite.stocks_id.in_(stock_ids),
        )
        return set(self.session.scalars(stmt))

    def add_favorite(self, user_cognito_id: str, stock_id: int) -> Favorite:
        favorite = Favorite(user_cognito_id=user_cognito_id, stocks_id=stock_id)
        self.session.add(favorite)
        self.session.flush()
        return favorite

    def remove_favorite(self, favorite: Favorite) -> None:
        self.session.delete(favorite)
        self.session.flush()

    # Assignments

    def find_assignments(self, stock_ids: Iterable[int]) -> List[StockAssignment]:
        stock_ids = list(stock_ids)
        if not stock_ids:
            return []
        stmt = (
            select(StockAssignment)
            .where(StockAssignment.stocks_id.in_(stock_ids))
            .order_by(StockAssignment.stocks_id, StockAssignment.id)
        )
        return list(self.session.scalars(stmt))

    def find_assignment(self, stock_id: int, user_cognito_id: str) -> Optional[StockAssignment]:
        stmt = select(StockAssignment).where(
            StockAssignment.stocks_id == stock_id,
            StockAssignment.user_cognito_id == user_cognito_id,
        )
        return self.session.scalars(stmt).first()

    def add_assignment(self, stock_id: int, user_cognito_id: str, assigned_weight: float) -> StockAssignment:
        assignment = StockAssignment(
            stocks_id=stock_id,
            user_cognito_id=user_cognito_id,
            assigned_weight=assigned_weight,
        )
        self.session.add(assignment)
        self.session.flush()
        return assignment

    def remove_assignment(self, assignment: StockAssignment) -> None:
        self.session.delete(assignment)
        self.session.flush()

    def find_user_assignments(self, user_cognito_id: str,
                              query: AssignmentHistoryQuery) -> Tuple[List[StockAssignment], int]:
        """
        Page through the stocks assigned to a user

        ``search`` matches the lot number or sale code of the stock.
        """
        stmt = (
            select(StockAssignment)
            .join(Stock, Stock.id == StockAssignment.stocks_id)
            .where(StockAssignment.user_cognito_id == user_cognito_id)
        )
        if query.search:
            pattern = f"%{query.search}%"
            stmt = stmt.where(or_(Stock.lot_no.ilike(pattern), Stock.sale_code.ilike(pattern)))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        column = {
            "assignedAt": StockAssignment.assigned_at,
            "stocksId": StockAssignment.stocks_id,
            "assignedWeight": StockAssignment.assigned_weight,
        }[query.sort_by]
        order = column.asc() if query.sort_order == "asc" else column.desc()
        stmt = stmt.order_by(order, StockAssignment.id)
        rows = list(self.session.scalars(stmt.limit(query.limit).offset(query.offset)))
        return rows, total or 0

    def favorites_for_users(self, user_cognito_ids: List[str]) -> List[Favorite]:
        if not user_cognito_ids:
            return []
        stmt = (
            select(Favorite)
            .where(Favorite.user_cognito_id.in_(user_cognito_ids))
            .options(selectinload(Favorite.stock))
            .order_by(Favorite.id)
        )
        return list(self.session.scalars(stmt))

    def assignments_for_users(self, user_cognito_ids: List[str]) -> List[StockAssignment]:
        if not user_cognito_ids:
            return []
        stmt = (
            select(StockAssignment)
            .where(StockAssignment.user_cognito_id.in_(user_cognito_ids))
            .options(selectinload(StockAssignment.stock))
            .order_by(StockAssignment.assigned_at.desc(), StockAssignment.id.desc())
        )
        return list(self.session.scalars(stmt))
