"""
User and admin account schemas
"""
from typing import Annotated, Optional

from pydantic import model_validator

from teatrade.domain.common import ApiModel, OptionalText, PageQuery, one_of, required_text
from teatrade.domain.contact import EmailAddress

ROLES = ("user", "admin")

AccountName = Annotated[str, required_text("Name is required", 255, "Name is too long")]


class UserRegister(ApiModel):
    """Body of POST /users/register"""
    user_cognito_id: Annotated[str, required_text("User Cognito ID is required")]
    name: AccountName
    email: EmailAddress
    phone_number: Optional[str] = None
    role: Annotated[str, one_of(ROLES, "Role must be 'user' or 'admin'")] = "user"


class ProfileUpdate(ApiModel):
    """Partial profile change; at least one field must be sent"""
    name: Optional[AccountName] = None
    email: Optional[EmailAddress] = None
    phone_number: OptionalText = None

    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class UserUpdate(ProfileUpdate):
    """Body of PUT /users/{userCognitoId}"""


class AdminUpdate(ProfileUpdate):
    """Body of PUT /admins/{id}"""


class AdminCreate(ApiModel):
    """Body of POST /admins"""
    admin_cognito_id: Annotated[str, required_text("Admin Cognito ID is required")]
    name: AccountName
    email: EmailAddress
    phone_number: Optional[str] = None


class LoggedInUsersQuery(PageQuery):
    """Query of GET /users/logged-in; the include flags embed related rows"""
    search: OptionalText = None
    include_shipments: bool = False
    include_favorited_stocks: bool = False
    include_assigned_stocks: bool = False
