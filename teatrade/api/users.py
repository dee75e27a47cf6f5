"""
Users API Endpoints
"""
import logging
from collections import defaultdict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from teatrade.api.deps import ensure_self_or_admin
from teatrade.core.auth import TokenUser, require_admin, require_any_role
from teatrade.core.database import get_db
from teatrade.core.errors import DomainError, NotFoundError
from teatrade.core.responses import paginated_response, success_response
from teatrade.core.validation import RequestSchema, ValidatedRequest, validate
from teatrade.domain.common import serialize_row
from teatrade.domain.stock import AssignmentHistoryQuery
from teatrade.domain.user import LoggedInUsersQuery, UserRegister, UserUpdate
from teatrade.models import Admin, User
from teatrade.repositories.shipment_repository import ShipmentRepository
from teatrade.repositories.stock_repository import StockRepository
from teatrade.repositories.user_repository import UserRepository
from teatrade.services.shipment_service import serialize_shipment
from teatrade.services.stock_service import serialize_assignment_history, serialize_stock

logger = logging.getLogger(__name__)

router = APIRouter()

REGISTER_USER = RequestSchema(body=UserRegister)
UPDATE_USER = RequestSchema(body=UserUpdate)
LOGGED_IN_USERS = RequestSchema(query=LoggedInUsersQuery)
STOCK_HISTORY = RequestSchema(query=AssignmentHistoryQuery)


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user(
    validated: ValidatedRequest = Depends(validate(REGISTER_USER)),
    db: Session = Depends(get_db),
):
    """
    Register a user or admin account after Cognito sign-up

    Returns 409 when the Cognito ID or email is already taken.
    """
    payload: UserRegister = validated.body
    repo = UserRepository(db)

    if repo.exists(payload.user_cognito_id, payload.email):
        raise DomainError("User with this userCognitoId or email already exists", status.HTTP_409_CONFLICT)

    if payload.role == "admin":
        account = repo.create_admin(payload.user_cognito_id, payload.name, payload.email, payload.phone_number)
    else:
        account = repo.create_user(payload.user_cognito_id, payload.name, payload.email, payload.phone_number)
    db.commit()

    logger.info(f"Registered {payload.role} account", extra={"meta": {"userCognitoId": payload.user_cognito_id}})
    data = serialize_row(account)
    data["role"] = payload.role
    return success_response(data)


@router.get("/logged-in")
def list_logged_in_users(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(LOGGED_IN_USERS)),
    db: Session = Depends(get_db),
):
    """
    Page through registered buyers (admin only)

    ``includeShipments``, ``includeFavoritedStocks`` and
    ``includeAssignedStocks`` embed the related rows in each user.
    """
    query: LoggedInUsersQuery = validated.query
    users, total = UserRepository(db).find_users(query.limit, query.offset, query.search)
    ids = [account.user_cognito_id for account in users]

    shipments, favorites, assignments = defaultdict(list), defaultdict(list), defaultdict(list)
    if query.include_shipments:
        for shipment in ShipmentRepository(db).find_by_owners(ids):
            shipments[shipment.user_cognito_id].append(serialize_shipment(shipment))
    if query.include_favorited_stocks:
        for favorite in StockRepository(db).favorites_for_users(ids):
            favorites[favorite.user_cognito_id].append(serialize_stock(favorite.stock))
    if query.include_assigned_stocks:
        for assignment in StockRepository(db).assignments_for_users(ids):
            row = serialize_row(assignment)
            row["stocks"] = serialize_stock(assignment.stock)
            assignments[assignment.user_cognito_id].append(row)

    items = []
    for account in users:
        data = serialize_row(account)
        data["role"] = "user"
        if query.include_shipments:
            data["shipments"] = shipments[account.user_cognito_id]
        if query.include_favorited_stocks:
            data["favoritedStocks"] = favorites[account.user_cognito_id]
        if query.include_assigned_stocks:
            data["assignedStocks"] = assignments[account.user_cognito_id]
        items.append(data)

    return paginated_response(items, query.page, query.limit, total)


@router.get("/{userCognitoId}")
def get_user(
    userCognitoId: str,
    user: TokenUser = Depends(require_any_role),
    db: Session = Depends(get_db),
):
    ensure_self_or_admin(user, userCognitoId)

    account = UserRepository(db).find_account(userCognitoId)
    if account is None:
        raise NotFoundError(f"User with userCognitoId {userCognitoId} not found")

    data = serialize_row(account)
    data["role"] = "admin" if isinstance(account, Admin) else "user"
    return success_response(data)


@router.put("/{userCognitoId}")
def update_user(
    userCognitoId: str,
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(UPDATE_USER)),
    db: Session = Depends(get_db),
):
    """Change a buyer's profile (self or admin); the role cannot be changed here"""
    ensure_self_or_admin(user, userCognitoId)
    payload: UserUpdate = validated.body
    repo = UserRepository(db)

    account = repo.find_user(userCognitoId)
    if account is None:
        raise NotFoundError("User not found")
    if payload.email and repo.email_taken(User, payload.email, userCognitoId):
        raise DomainError("Email is already in use by another user", status.HTTP_409_CONFLICT)

    repo.update(account, payload.model_dump(exclude_unset=True))
    db.commit()

    logger.info("Updated user profile", extra={"meta": {"userCognitoId": userCognitoId}})
    data = serialize_row(account)
    data["role"] = "user"
    return success_response(data)


@router.get("/{userCognitoId}/stock-history")
def user_stock_history(
    userCognitoId: str,
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(STOCK_HISTORY)),
    db: Session = Depends(get_db),
):
    """Stocks assigned to the user, with the stock details at read time"""
    ensure_self_or_admin(user, userCognitoId)

    query: AssignmentHistoryQuery = validated.query
    rows, total = StockRepository(db).find_user_assignments(userCognitoId, query)
    return paginated_response([serialize_assignment_history(a) for a in rows], query.page, query.limit, total)
