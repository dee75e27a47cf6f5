"""
Contact form schemas
"""
from typing import Annotated, Optional

from pydantic import AfterValidator
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from teatrade.domain.common import ApiModel, PageQuery, required_text


def _check_email(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Email is required")
    try:
        _, email = validate_email(value)
    except PydanticCustomError:
        raise ValueError("Invalid email address")
    return email


def _check_subject(value: str) -> str:
    if len(value) > 200:
        raise ValueError("Subject is too long")
    return value


def _check_consent(value: bool) -> bool:
    if value is not True:
        raise ValueError("Privacy policy consent is required")
    return value


EmailAddress = Annotated[str, AfterValidator(_check_email)]


class ContactCreate(ApiModel):
    """Body of POST /contacts"""
    name: Annotated[str, required_text("Name is required", 100, "Name is too long")]
    email: EmailAddress
    subject: Optional[Annotated[str, AfterValidator(_check_subject)]] = None
    message: Annotated[str, required_text("Message is required", 1000, "Message is too long")]
    privacy_consent: Annotated[bool, AfterValidator(_check_consent)]
    user_cognito_id: Optional[str] = None


class ContactListQuery(PageQuery):
    search: Optional[str] = None
