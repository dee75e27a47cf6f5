"""
Service for shipment business logic.

Creating a shipment deducts the shipped weight (and the bags it occupies)
from each stock lot; deleting one restores it. Both run as a single retried
transaction.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from fastapi import status as http_status
from sqlalchemy.orm import Session

from teatrade.core.errors import DomainError, NotFoundError
from teatrade.core.transactions import retry_transaction
from teatrade.domain.common import serialize_row
from teatrade.domain.shipment import ShipmentCreate, ShipmentItem, ShipmentUpdate
from teatrade.models import Shipment, ShipmentHistory, ShipmentStock
from teatrade.repositories.shipment_repository import ShipmentRepository
from teatrade.repositories.stock_repository import StockRepository
from teatrade.repositories.user_repository import UserRepository
from teatrade.services.stock_service import SHIPPED, apply_adjustment, bags_for_weight

logger = logging.getLogger(__name__)

# Statuses an owner may set on their own shipment
USER_STATUSES = ("Pending", "Cancelled")


def serialize_shipment(shipment: Shipment) -> Dict[str, Any]:
    data = serialize_row(shipment)
    data["stocks"] = [
        {"stocksId": link.stocks_id, "assignedWeight": link.assigned_weight}
        for link in shipment.stocks
    ]
    return data


def serialize_history_entry(entry: ShipmentHistory) -> Dict[str, Any]:
    data = serialize_row(entry)
    shipment = entry.shipment
    data["shipment"] = (
        {"id": shipment.id, "shipmark": shipment.shipmark, "status": shipment.status}
        if shipment is not None else None
    )
    data["items"] = (entry.details or {}).get("items", [])
    return data


class ShipmentService:
    """Service for shipment writes"""

    def __init__(self, session_factory: Callable[[], Session], max_retries: int = 3,
                 sleep: Callable[[float], None] = time.sleep):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.sleep = sleep

    def _run(self, operation):
        return retry_transaction(
            operation,
            max_retries=self.max_retries,
            session_factory=self.session_factory,
            sleep=self.sleep,
        )

    def create_shipment(self, user_cognito_id: str, payload: ShipmentCreate) -> Dict[str, Any]:
        """
        Create a shipment for ``user_cognito_id`` and deduct its items from stock.

        Raises:
            NotFoundError: unknown user or stock
            DomainError: an item asks for more weight than the stock holds
            IntegrityError: duplicate shipmark (not retried)
        """
        items = [item.model_dump(by_alias=True) for item in payload.items]

        def operation(tx: Session) -> Dict[str, Any]:
            if UserRepository(tx).find_user(user_cognito_id) is None:
                raise NotFoundError(f"User with userCognitoId {user_cognito_id} not found")

            shipments = ShipmentRepository(tx)
            stocks = StockRepository(tx)

            # Check every item before writing anything
            locked = {}
            for item in payload.items:
                stock = stocks.find_by_id(item.stocks_id, for_update=True)
                if stock is None:
                    raise NotFoundError(f"Stock {item.stocks_id} not found")
                if item.total_weight > stock.weight:
                    raise DomainError(
                        f"Insufficient stock for stock {item.stocks_id}: "
                        f"requested {item.total_weight}, available {stock.weight}"
                    )
                locked[item.stocks_id] = stock

            shipment = shipments.create(Shipment(
                user_cognito_id=user_cognito_id,
                shipment_date=payload.shipment_date,
                status=payload.status,
                consignee=payload.consignee,
                vessel=payload.vessel,
                shipmark=payload.shipmark,
                packaging_instructions=payload.packaging_instructions,
                additional_instructions=payload.additional_instructions,
                stocks=[
                    ShipmentStock(stocks_id=item.stocks_id, assigned_weight=item.total_weight)
                    for item in payload.items
                ],
            ))

            shipments.add_history(shipment.id, "CREATED", user_cognito_id, details={
                "consignee": shipment.consignee,
                "vessel": shipment.vessel,
                "shipmark": shipment.shipmark,
                "packagingInstructions": shipment.packaging_instructions,
                "additionalInstructions": shipment.additional_instructions,
                "status": shipment.status,
                "items": items,
            })

            for item in payload.items:
                stock = locked[item.stocks_id]
                # Earlier items for the same stock have already been deducted
                if item.total_weight > stock.weight:
                    raise DomainError(
                        f"Insufficient stock for stock {item.stocks_id}: "
                        f"requested {item.total_weight}, available {stock.weight}"
                    )

                bags = bags_for_weight(stock, item.total_weight)
                stock.bags = max(stock.bags - bags, 0)
                stock.weight = stock.weight - item.total_weight

                stocks.add_history(stock.id, SHIPPED, user_cognito_id, shipment_id=shipment.id, details={
                    "totalWeight": item.total_weight,
                    "reason": f"Stock reduced for shipment {shipment.id}",
                    "lotNo": stock.lot_no,
                    "mark": stock.mark,
                    "grade": stock.grade,
                    "broker": stock.broker,
                    "saleCode": stock.sale_code,
                })

            return serialize_shipment(shipment)

        result = self._run(operation)
        logger.info(f"Shipment {result['id']} created with {len(items)} items")
        return result

    def update_status(self, shipment_id: int, status: str, admin_cognito_id: str) -> Dict[str, Any]:
        def operation(tx: Session) -> Dict[str, Any]:
            shipments = ShipmentRepository(tx)
            shipment = shipments.find_by_id(shipment_id)
            if shipment is None:
                raise NotFoundError(f"Shipment with ID {shipment_id} not found")

            previous = shipment.status
            shipment.status = status
            shipments.add_history(shipment.id, "STATUS_UPDATED", admin_cognito_id, details={
                "previousStatus": previous,
                "status": status,
            })
            return serialize_shipment(shipment)

        return self._run(operation)

    def update_shipment(self, shipment_id: int, user_cognito_id: str,
                        payload: ShipmentUpdate) -> Dict[str, Any]:
        """
        Let the owner edit a shipment that is not cancelled.

        Users may only move the status to Pending or Cancelled. New
        ``items`` restore the previous stock lines first, then deduct the
        new weights, inside the same transaction.

        Raises:
            NotFoundError: unknown shipment or stock
            DomainError: 403 for another user's shipment or a status users
                may not set, 400 for a cancelled shipment or insufficient stock
        """
        sent = payload.model_dump(exclude_unset=True, exclude={"items"})
        changes = {k: v for k, v in sent.items() if v is not None or k == "additional_instructions"}

        def operation(tx: Session) -> Dict[str, Any]:
            shipments = ShipmentRepository(tx)
            shipment = shipments.find_by_id(shipment_id)
            if shipment is None:
                raise NotFoundError(f"Shipment with ID {shipment_id} not found")
            if shipment.user_cognito_id != user_cognito_id:
                raise DomainError("Forbidden: You can only update your own shipments", http_status.HTTP_403_FORBIDDEN)
            if shipment.status == "Cancelled":
                raise DomainError("Cannot update a cancelled shipment")
            if "status" in changes and changes["status"] not in USER_STATUSES:
                raise DomainError(
                    "Forbidden: Users can only set status to Pending or Cancelled", http_status.HTTP_403_FORBIDDEN
                )

            if payload.items is not None:
                self._replace_items(tx, shipment, payload.items, user_cognito_id)

            for key, value in changes.items():
                setattr(shipment, key, value)
            tx.flush()

            shipments.add_history(shipment.id, "UPDATED", user_cognito_id, details={
                "consignee": shipment.consignee,
                "vessel": shipment.vessel,
                "shipmark": shipment.shipmark,
                "packagingInstructions": shipment.packaging_instructions,
                "additionalInstructions": shipment.additional_instructions,
                "status": shipment.status,
                "items": [
                    {"stocksId": link.stocks_id, "totalWeight": link.assigned_weight}
                    for link in shipment.stocks
                ],
            })
            return serialize_shipment(shipment)

        result = self._run(operation)
        logger.info(f"Shipment {shipment_id} updated", extra={"meta": {"fields": sorted(changes)}})
        return result

    @staticmethod
    def _replace_items(tx: Session, shipment: Shipment, items: List[ShipmentItem], actor: str) -> None:
        for link in shipment.stocks:
            apply_adjustment(
                tx,
                link.stocks_id,
                link.assigned_weight,
                f"Stock restored for shipment {shipment.id} update",
                actor,
                shipment.id,
            )
        shipment.stocks.clear()
        tx.flush()

        stocks = StockRepository(tx)
        for item in items:
            stock = stocks.find_by_id(item.stocks_id, for_update=True)
            if stock is None:
                raise NotFoundError(f"Stock {item.stocks_id} not found")
            if item.total_weight > stock.weight:
                raise DomainError(
                    f"Insufficient stock for stock {item.stocks_id}: "
                    f"requested {item.total_weight}, available {stock.weight}"
                )
            apply_adjustment(
                tx,
                item.stocks_id,
                -item.total_weight,
                f"Stock reduced for shipment {shipment.id} update",
                actor,
                shipment.id,
            )
            shipment.stocks.append(ShipmentStock(stocks_id=item.stocks_id, assigned_weight=item.total_weight))
        tx.flush()

    def delete_shipment(self, shipment_id: int, owner_cognito_id: Optional[str],
                        actor_cognito_id: str) -> Dict[str, Any]:
        """
        Delete a shipment and restore the weight it took from each stock.

        Args:
            shipment_id: Shipment to delete
            owner_cognito_id: Required owner (None = any owner)
            actor_cognito_id: Who deletes it (history)
        """
        def operation(tx: Session) -> Dict[str, Any]:
            shipments = ShipmentRepository(tx)
            shipment = shipments.find_by_id(shipment_id)
            if shipment is None or (owner_cognito_id and shipment.user_cognito_id != owner_cognito_id):
                raise NotFoundError(f"Shipment with ID {shipment_id} not found")

            for link in shipment.stocks:
                apply_adjustment(
                    tx,
                    link.stocks_id,
                    link.assigned_weight,
                    f"Stock restored for deleted shipment {shipment_id}",
                    actor_cognito_id,
                    shipment_id,
                )

            deleted = serialize_shipment(shipment)
            shipments.delete(shipment)
            shipments.add_history(None, "DELETED", actor_cognito_id, details={
                "shipmentId": shipment_id,
                "consignee": deleted["consignee"],
                "vessel": deleted["vessel"],
                "shipmark": deleted["shipmark"],
                "status": deleted["status"],
                "items": deleted["stocks"],
            })
            return deleted

        result = self._run(operation)
        logger.info(f"Shipment {shipment_id} deleted and stock restored")
        return result
