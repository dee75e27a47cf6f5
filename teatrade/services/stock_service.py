"""
Service for stock business logic: creation, edits, adjustments,
assignments to buyers and favorites.

Every write runs through ``retry_transaction`` so a serialization failure
or deadlock re-runs the whole unit of work instead of leaving a partial
update behind.
"""
import logging
import math
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from teatrade.core.errors import DomainError, NotFoundError
from teatrade.core.transactions import retry_transaction
from teatrade.domain.common import serialize_row
from teatrade.domain.stock import (
    AssignStock,
    AssignmentItem,
    BulkAssignStocks,
    StockAdjust,
    StockCreate,
    StockUpdate,
    UnassignStock,
)
from teatrade.models import Stock, StockAssignment
from teatrade.repositories.stock_repository import StockRepository
from teatrade.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

# StockHistory.action values
CREATED = "CREATED"
REDUCED = "REDUCED"
RESTORED = "RESTORED"
SHIPPED = "SHIPPED"
UPDATED = "UPDATED"
ASSIGNED = "ASSIGNED"
UNASSIGNED = "UNASSIGNED"

# Columns PUT /stocks/{id} may clear with null
NULLABLE_FIELDS = {"batch_number", "low_stock_threshold"}


def serialize_stock(stock: Stock, favorited: Optional[bool] = None) -> Dict[str, Any]:
    data = serialize_row(stock)
    data["weightPerBag"] = stock.weight_per_bag
    data["assignments"] = [serialize_row(a, exclude=("id", "stocks_id")) for a in stock.assignments]
    if favorited is not None:
        data["isFavorited"] = favorited
    return data


def bags_for_weight(stock: Stock, weight: float) -> int:
    """
    Number of bags that ``weight`` kg of this stock occupies.

    Uses the average bag weight rounded to 2 decimals and rounds the bag
    count up; a stock without bags moves no bags.
    """
    weight_per_bag = stock.weight_per_bag
    if weight_per_bag <= 0:
        return 0
    return math.ceil(abs(weight) / weight_per_bag)


def serialize_assignment_history(assignment: StockAssignment) -> Dict[str, Any]:
    """Row of a buyer's stock history: the assignment plus the stock it points at"""
    details = serialize_stock(assignment.stock)
    details["assignedWeight"] = assignment.assigned_weight
    return {
        "stocksId": assignment.stocks_id,
        "assignedAt": assignment.assigned_at.isoformat() if assignment.assigned_at else None,
        "details": details,
    }


def ensure_unassigned(repo: StockRepository, stock_id: int) -> None:
    existing = repo.find_assignments([stock_id])
    if existing:
        owners = ", ".join(a.user_cognito_id for a in existing)
        raise DomainError(f"Stock {stock_id} is already assigned to user(s): {owners}")


def ensure_user_exists(session: Session, user_cognito_id: str) -> None:
    if UserRepository(session).find_user(user_cognito_id) is None:
        raise NotFoundError(f"User with Cognito ID {user_cognito_id} not found")


def record_assignment(repo: StockRepository, stock: Stock, user_cognito_id: str,
                      assigned_weight: float, actor_cognito_id: str) -> StockAssignment:
    """Reserve ``assigned_weight`` kg of the stock for a buyer and log it"""
    if assigned_weight > stock.weight:
        raise DomainError(
            f"Assigned weight ({assigned_weight}) exceeds stock weight ({stock.weight})"
        )
    assignment = repo.add_assignment(stock.id, user_cognito_id, assigned_weight)
    repo.add_history(stock.id, ASSIGNED, actor_cognito_id, details={
        "lotNo": stock.lot_no,
        "userCognitoId": user_cognito_id,
        "assignedWeight": assigned_weight,
    })
    return assignment


def apply_adjustment(session: Session, stocks_id: int, weight: float, reason: str,
                     user_cognito_id: str, shipment_id: Optional[int] = None) -> Stock:
    """
    Add (positive ``weight``) or remove (negative) stock inside ``session``.

    Writes a RESTORED or REDUCED history row.

    Raises:
        NotFoundError: unknown stock
        DomainError: the result would have negative weight or bags
    """
    repo = StockRepository(session)
    stock = repo.find_by_id(stocks_id, for_update=True)
    if stock is None:
        raise NotFoundError(f"Stock with ID {stocks_id} not found")

    bags_delta = bags_for_weight(stock, weight) * (1 if weight >= 0 else -1)
    new_weight = stock.weight + weight
    new_bags = stock.bags + bags_delta

    if new_weight < 0 or new_bags < 0:
        raise DomainError(
            f"Adjustment would result in negative weight ({new_weight}) or bags ({new_bags})"
        )

    stock.weight = new_weight
    stock.bags = new_bags

    repo.add_history(
        stock.id,
        RESTORED if weight >= 0 else REDUCED,
        user_cognito_id,
        shipment_id=shipment_id,
        details={
            "lotNo": stock.lot_no,
            "mark": stock.mark,
            "bags": new_bags,
            "weight": new_weight,
            "purchaseValue": stock.purchase_value,
            "grade": stock.grade,
            "broker": stock.broker,
            "saleCode": stock.sale_code,
            "reason": reason,
        },
    )
    logger.info(f"Stock {stocks_id} adjusted by {weight} kg ({bags_delta} bags)")
    return stock


class StockService:
    """Service for stock writes"""

    def __init__(self, session_factory: Callable[[], Session], max_retries: int = 3,
                 sleep: Callable[[float], None] = time.sleep):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.sleep = sleep

    def _run(self, operation, session: Optional[Session] = None):
        return retry_transaction(
            operation,
            max_retries=self.max_retries,
            session_factory=self.session_factory,
            session=session,
            sleep=self.sleep,
        )

    def create_stock(self, payload: StockCreate, admin_cognito_id: str) -> Dict[str, Any]:
        """Insert a stock lot and its CREATED history row"""
        data = payload.model_dump(exclude={"admin_cognito_id"})

        def operation(tx: Session) -> Dict[str, Any]:
            repo = StockRepository(tx)
            stock = repo.create({**data, "admin_cognito_id": admin_cognito_id})
            repo.add_history(stock.id, CREATED, admin_cognito_id, details={
                "lotNo": stock.lot_no,
                "bags": stock.bags,
                "weight": stock.weight,
            })
            return serialize_stock(stock)

        return self._run(operation)

    def adjust_stock(self, payload: StockAdjust, user_cognito_id: str,
                     session: Optional[Session] = None) -> Dict[str, Any]:
        """
        Adjust a stock lot by a signed weight.

        Args:
            payload: stocksId, signed weight, reason, optional shipmentId
            user_cognito_id: Who made the change (history)
            session: Run inside this caller-owned transaction instead of a new one
        """
        def operation(tx: Session) -> Dict[str, Any]:
            stock = apply_adjustment(
                tx,
                payload.stocks_id,
                payload.weight,
                payload.reason,
                user_cognito_id,
                payload.shipment_id,
            )
            return serialize_stock(stock)

        return self._run(operation, session=session)

    def delete_stocks(self, ids: List[int]) -> int:
        deleted = self._run(lambda tx: StockRepository(tx).delete_by_ids(ids))
        if not deleted:
            raise NotFoundError("No stocks found for the provided IDs")
        logger.info(f"Deleted {deleted} stocks")
        return deleted

    def update_stock(self, stock_id: int, payload: StockUpdate, admin_cognito_id: str) -> Dict[str, Any]:
        """
        Apply a partial update and write an UPDATED history row.

        ``assignments`` (at most one) reserves the stock for a buyer and is
        refused when the stock is already assigned or the weight exceeds
        the stock's weight after the update.
        """
        sent = payload.model_dump(exclude_unset=True, exclude={"assignments"})
        changes = {k: v for k, v in sent.items() if v is not None or k in NULLABLE_FIELDS}

        def operation(tx: Session) -> Dict[str, Any]:
            repo = StockRepository(tx)
            stock = repo.find_by_id(stock_id, for_update=True)
            if stock is None:
                raise NotFoundError(f"Stock with ID {stock_id} not found")

            owner = changes.get("admin_cognito_id")
            if owner and UserRepository(tx).find_admin(owner) is None:
                raise NotFoundError(f"Admin with Cognito ID {owner} not found")

            if payload.assignments:
                self._assign_on_update(tx, repo, stock, payload.assignments,
                                       changes.get("weight", stock.weight), admin_cognito_id)

            repo.update(stock, changes)
            repo.add_history(stock.id, UPDATED, admin_cognito_id, details={
                "lotNo": stock.lot_no,
                "changes": {to_camel(k): v for k, v in changes.items()},
            })
            return serialize_stock(stock)

        stock = self._run(operation)
        logger.info(f"Updated stock {stock_id}", extra={"meta": {"fields": sorted(changes)}})
        return stock

    @staticmethod
    def _assign_on_update(tx: Session, repo: StockRepository, stock: Stock,
                          assignments: List[AssignmentItem], weight: float, actor: str) -> None:
        ensure_unassigned(repo, stock.id)
        total = sum(item.assigned_weight for item in assignments)
        if total > weight:
            raise DomainError(f"Total assigned weight ({total}) exceeds stock weight ({weight})")
        for item in assignments:
            ensure_user_exists(tx, item.user_cognito_id)
            repo.add_assignment(stock.id, item.user_cognito_id, item.assigned_weight)
            repo.add_history(stock.id, ASSIGNED, actor, details={
                "lotNo": stock.lot_no,
                "userCognitoId": item.user_cognito_id,
                "assignedWeight": item.assigned_weight,
            })

    def assign_stock(self, payload: AssignStock, admin_cognito_id: str) -> Dict[str, Any]:
        """Assign one stock to a buyer; the whole weight unless ``assignedWeight`` is given"""
        def operation(tx: Session) -> Dict[str, Any]:
            ensure_user_exists(tx, payload.user_cognito_id)
            repo = StockRepository(tx)
            stock = repo.find_by_id(payload.stock_id, for_update=True)
            if stock is None:
                raise NotFoundError(f"Stock with ID {payload.stock_id} not found")

            ensure_unassigned(repo, stock.id)
            weight = payload.assigned_weight if payload.assigned_weight is not None else stock.weight
            assignment = record_assignment(repo, stock, payload.user_cognito_id, weight, admin_cognito_id)
            return serialize_row(assignment, exclude=("id",))

        assignment = self._run(operation)
        logger.info(f"Assigned stock {payload.stock_id} to {payload.user_cognito_id}")
        return assignment

    def bulk_assign(self, payload: BulkAssignStocks, admin_cognito_id: str) -> List[Dict[str, Any]]:
        """
        Assign several stocks to one buyer in a single transaction.

        Raises:
            NotFoundError: unknown buyer, or any stock ID missing (all listed)
            DomainError: any stock already assigned (details name each one)
        """
        stock_ids = [item.stock_id for item in payload.assignments]

        def operation(tx: Session) -> List[Dict[str, Any]]:
            ensure_user_exists(tx, payload.user_cognito_id)
            repo = StockRepository(tx)
            stocks = {stock.id: stock for stock in repo.find_by_ids(stock_ids)}
            missing = [str(stock_id) for stock_id in stock_ids if stock_id not in stocks]
            if missing:
                raise NotFoundError(f"Stocks with IDs {', '.join(missing)} not found")

            existing = repo.find_assignments(stock_ids)
            if existing:
                raise DomainError("Some stocks are already assigned", details="; ".join(
                    f"Stock {a.stocks_id} is assigned to user {a.user_cognito_id}" for a in existing
                ))

            created = []
            for item in payload.assignments:
                stock = stocks[item.stock_id]
                weight = item.assigned_weight if item.assigned_weight is not None else stock.weight
                assignment = record_assignment(repo, stock, payload.user_cognito_id, weight, admin_cognito_id)
                created.append(serialize_row(assignment, exclude=("id",)))
            return created

        created = self._run(operation)
        logger.info(f"Assigned {len(created)} stocks to {payload.user_cognito_id}")
        return created

    def unassign_stock(self, payload: UnassignStock, admin_cognito_id: str) -> None:
        def operation(tx: Session) -> None:
            repo = StockRepository(tx)
            assignment = repo.find_assignment(payload.stock_id, payload.user_cognito_id)
            if assignment is None:
                raise NotFoundError(
                    f"No assignment found for stock ID {payload.stock_id} and user {payload.user_cognito_id}"
                )
            repo.remove_assignment(assignment)
            repo.add_history(payload.stock_id, UNASSIGNED, admin_cognito_id, details={
                "userCognitoId": payload.user_cognito_id,
                "assignedWeight": assignment.assigned_weight,
            })

        self._run(operation)

    def toggle_favorite(self, user_cognito_id: str, stock_id: int) -> Dict[str, Any]:
        """
        Favorite the stock for the user, or unfavorite it if already favorited.

        Returns:
            dict with ``favorited`` telling which way it went
        """
        def operation(tx: Session) -> Dict[str, Any]:
            repo = StockRepository(tx)
            if repo.find_by_id(stock_id) is None:
                raise NotFoundError(f"Stock with ID {stock_id} not found")

            existing = repo.find_favorite(user_cognito_id, stock_id)
            if existing is not None:
                repo.remove_favorite(existing)
                return {"stockId": stock_id, "userCognitoId": user_cognito_id, "favorited": False}

            favorite = repo.add_favorite(user_cognito_id, stock_id)
            data = serialize_row(favorite)
            data["favorited"] = True
            return data

        return self._run(operation)


STOCK_EXPORT_COLUMNS = (
    ("Lot Number", "lot_no"),
    ("Sale Code", "sale_code"),
    ("Broker", "broker"),
    ("Mark", "mark"),
    ("Grade", "grade"),
    ("Invoice Number", "invoice_no"),
    ("Batch Number", "batch_number"),
    ("Bags", "bags"),
    ("Weight (kg)", "weight"),
    ("Weight per Bag", "weight_per_bag"),
    ("Purchase Value", "purchase_value"),
    ("Low Stock Threshold", "low_stock_threshold"),
)

# Extra CSV headers seen in warehouse sheets
STOCK_HEADER_ALIASES = {
    "lotnumber": "lot_no",
    "sellingmark": "mark",
    "invoicenumber": "invoice_no",
    "netweight": "weight",
    "kgs": "weight",
}


def record_stock_created(repo: StockRepository, stock: Stock, admin_cognito_id: str) -> None:
    """History hook for stocks created by a CSV import"""
    repo.add_history(stock.id, CREATED, admin_cognito_id, details={
        "lotNo": stock.lot_no,
        "bags": stock.bags,
        "weight": stock.weight,
        "reason": "Imported from CSV",
    })
