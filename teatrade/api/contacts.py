"""
Contact form API Endpoints

POST is public and rate limited per client IP; listing is admin-only.
"""
import logging
from typing import Optional

import nh3
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from teatrade.core.auth import TokenUser, require_admin
from teatrade.core.database import get_db
from teatrade.core.rate_limit import RateLimit
from teatrade.core.responses import paginated_response, success_response
from teatrade.core.validation import RequestSchema, ValidatedRequest, validate
from teatrade.domain.common import serialize_row
from teatrade.domain.contact import ContactCreate, ContactListQuery
from teatrade.repositories.user_repository import ContactRepository

logger = logging.getLogger(__name__)

router = APIRouter()

CREATE_CONTACT = RequestSchema(body=ContactCreate)
LIST_CONTACTS = RequestSchema(query=ContactListQuery)


def sanitize(text: Optional[str]) -> Optional[str]:
    """
    Strip scripts and disallowed markup from user text

    Safe inline tags survive; text is entity-encoded, so the result can
    be longer than the input.
    """
    if text is None:
        return None
    return nh3.clean(text)


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(RateLimit("contact"))])
def create_contact(
    validated: ValidatedRequest = Depends(validate(CREATE_CONTACT)),
    db: Session = Depends(get_db),
):
    """Store a contact form submission with markup sanitized"""
    payload: ContactCreate = validated.body

    contact = ContactRepository(db).create(
        name=sanitize(payload.name),
        email=payload.email,
        subject=sanitize(payload.subject),
        message=sanitize(payload.message),
        privacy_consent=payload.privacy_consent,
        user_cognito_id=payload.user_cognito_id,
    )
    db.commit()

    logger.info(
        f"Contact submission {contact.id} created",
        extra={"meta": {"email": contact.email, "userCognitoId": contact.user_cognito_id or "anonymous"}},
    )
    return success_response(serialize_row(contact))


@router.get("")
def list_contacts(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(LIST_CONTACTS)),
    db: Session = Depends(get_db),
):
    query: ContactListQuery = validated.query
    contacts, total = ContactRepository(db).find_all(query.limit, query.offset, query.search)
    return paginated_response([serialize_row(c) for c in contacts], query.page, query.limit, total)
