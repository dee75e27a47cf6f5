"""
Admins API Endpoints

Admin accounts are managed by other admins only.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from teatrade.core.auth import TokenUser, require_admin
from teatrade.core.database import get_db
from teatrade.core.errors import DomainError, NotFoundError
from teatrade.core.responses import success_response
from teatrade.core.validation import RequestSchema, ValidatedRequest, validate
from teatrade.domain.common import serialize_row
from teatrade.domain.user import AdminCreate, AdminUpdate
from teatrade.models import Admin
from teatrade.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

router = APIRouter()

CREATE_ADMIN = RequestSchema(body=AdminCreate)
UPDATE_ADMIN = RequestSchema(body=AdminUpdate)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_admin(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(CREATE_ADMIN)),
    db: Session = Depends(get_db),
):
    payload: AdminCreate = validated.body
    repo = UserRepository(db)

    if repo.exists(payload.admin_cognito_id, payload.email):
        raise DomainError("Admin with this Cognito ID or email already exists", status.HTTP_409_CONFLICT)

    admin = repo.create_admin(payload.admin_cognito_id, payload.name, payload.email, payload.phone_number)
    db.commit()

    logger.info("Created admin account", extra={"meta": {"adminCognitoId": payload.admin_cognito_id,
                                                         "createdBy": user.id}})
    return success_response(serialize_row(admin), message="Admin created")


@router.get("/{adminCognitoId}")
def get_admin(
    adminCognitoId: str,
    user: TokenUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    admin = UserRepository(db).find_admin(adminCognitoId)
    if admin is None:
        raise NotFoundError("Admin not found")
    return success_response(serialize_row(admin))


@router.put("/{adminCognitoId}")
def update_admin(
    adminCognitoId: str,
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(UPDATE_ADMIN)),
    db: Session = Depends(get_db),
):
    """Change an admin's name, email or phone number"""
    payload: AdminUpdate = validated.body
    repo = UserRepository(db)

    admin = repo.find_admin(adminCognitoId)
    if admin is None:
        raise NotFoundError("Admin not found")
    if payload.email and repo.email_taken(Admin, payload.email, adminCognitoId):
        raise DomainError("Email already in use by another admin", status.HTTP_409_CONFLICT)

    repo.update(admin, payload.model_dump(exclude_unset=True))
    db.commit()
    return success_response(serialize_row(admin), message="Admin updated")
