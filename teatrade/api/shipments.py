"""
Shipments API Endpoints

Users create and list their own shipments; admins see every shipment and
move them through their statuses.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from teatrade.api.deps import ensure_self_or_admin, get_shipment_service
from teatrade.core.auth import TokenUser, require_admin, require_any_role, require_user
from teatrade.core.database import get_db
from teatrade.core.responses import paginated_response, success_response
from teatrade.core.validation import RequestSchema, ValidatedRequest, validate
from teatrade.domain.common import ApiModel
from teatrade.domain.shipment import (
    ShipmentCreate,
    ShipmentHistoryQuery,
    ShipmentOwnerParams,
    ShipmentParams,
    ShipmentQuery,
    ShipmentStatusUpdate,
    ShipmentUpdate,
)
from teatrade.repositories.shipment_repository import ShipmentRepository
from teatrade.services.shipment_service import ShipmentService, serialize_history_entry, serialize_shipment

logger = logging.getLogger(__name__)

router = APIRouter()


class _ShipmentIdParams(ApiModel):
    id: int


CREATE_SHIPMENT = RequestSchema(body=ShipmentCreate, params=ShipmentOwnerParams)
LIST_USER_SHIPMENTS = RequestSchema(query=ShipmentQuery, params=ShipmentOwnerParams)
LIST_ALL_SHIPMENTS = RequestSchema(query=ShipmentQuery)
UPDATE_STATUS = RequestSchema(body=ShipmentStatusUpdate, params=_ShipmentIdParams)
DELETE_SHIPMENT = RequestSchema(params=ShipmentParams)
UPDATE_SHIPMENT = RequestSchema(body=ShipmentUpdate, params=ShipmentParams)
SHIPMENT_HISTORY = RequestSchema(query=ShipmentHistoryQuery, params=ShipmentOwnerParams)


@router.post("/users/{userCognitoId}", status_code=status.HTTP_201_CREATED)
def create_shipment(
    userCognitoId: str,
    user: TokenUser = Depends(require_user),
    validated: ValidatedRequest = Depends(validate(CREATE_SHIPMENT)),
    service: ShipmentService = Depends(get_shipment_service),
):
    """
    Create a shipment and deduct its items from stock

    All-or-nothing: an unknown stock or an item heavier than its stock
    rejects the whole shipment.
    """
    if user.id != userCognitoId:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Cannot create shipments for another user",
        )

    shipment = service.create_shipment(userCognitoId, validated.body)
    return success_response(shipment, message="Shipment created")


@router.get("/users/{userCognitoId}")
def list_user_shipments(
    userCognitoId: str,
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(LIST_USER_SHIPMENTS)),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(user, userCognitoId)

    query: ShipmentQuery = validated.query
    shipments, total = ShipmentRepository(db).find_all(query, user_cognito_id=userCognitoId)
    return paginated_response([serialize_shipment(s) for s in shipments], query.page, query.limit, total)


@router.get("/admin")
def list_all_shipments(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(LIST_ALL_SHIPMENTS)),
    db: Session = Depends(get_db),
):
    query: ShipmentQuery = validated.query
    shipments, total = ShipmentRepository(db).find_all(query)
    return paginated_response([serialize_shipment(s) for s in shipments], query.page, query.limit, total)


@router.put("/admin/{id}/status")
def update_shipment_status(
    id: int,
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(UPDATE_STATUS)),
    service: ShipmentService = Depends(get_shipment_service),
):
    shipment = service.update_status(id, validated.body.status, user.id)
    logger.info(f"Shipment {id} moved to {shipment['status']}")
    return success_response(shipment, message="Shipment status updated")


@router.delete("/users/{userCognitoId}/{id}")
def delete_shipment(
    userCognitoId: str,
    id: int,
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(DELETE_SHIPMENT)),
    service: ShipmentService = Depends(get_shipment_service),
):
    """Delete a shipment and put its weight back on the stock lots"""
    ensure_self_or_admin(user, userCognitoId)

    shipment = service.delete_shipment(id, userCognitoId, user.id)
    return success_response(shipment, message="Shipment deleted")


@router.patch("/users/{userCognitoId}/{id}")
def update_shipment(
    userCognitoId: str,
    id: int,
    user: TokenUser = Depends(require_user),
    validated: ValidatedRequest = Depends(validate(UPDATE_SHIPMENT)),
    service: ShipmentService = Depends(get_shipment_service),
):
    """Owner edits a shipment; new items are re-deducted from stock"""
    if user.id != userCognitoId:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: You can only update your own shipments",
        )

    shipment = service.update_shipment(id, user.id, validated.body)
    return success_response(shipment, message="Shipment updated")


@router.get("/users/{userCognitoId}/shipment-history")
def shipment_history(
    userCognitoId: str,
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(SHIPMENT_HISTORY)),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(user, userCognitoId, detail="Forbidden: Cannot access other users' shipment history")

    query: ShipmentHistoryQuery = validated.query
    entries, total = ShipmentRepository(db).find_history(query, user_cognito_id=userCognitoId)
    return paginated_response([serialize_history_entry(e) for e in entries], query.page, query.limit, total)
