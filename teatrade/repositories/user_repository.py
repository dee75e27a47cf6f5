"""
User Repository - users, admins and contact submissions
"""
from typing import List, Optional, Tuple, Type, Union

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from teatrade.models import Admin, Contact, User


class UserRepository:
    """Repository for User/Admin accounts"""

    def __init__(self, session: Session):
        self.session = session

    def find_user(self, user_cognito_id: str) -> Optional[User]:
        return self.session.scalars(
            select(User).where(User.user_cognito_id == user_cognito_id)
        ).first()

    def find_admin(self, admin_cognito_id: str) -> Optional[Admin]:
        return self.session.scalars(
            select(Admin).where(Admin.admin_cognito_id == admin_cognito_id)
        ).first()

    def find_account(self, cognito_id: str) -> Optional[Union[User, Admin]]:
        """User or admin with this Cognito ID"""
        return self.find_user(cognito_id) or self.find_admin(cognito_id)

    def exists(self, cognito_id: str, email: Optional[str] = None) -> bool:
        """True when a user or admin already uses this Cognito ID or email"""
        for model, id_column in ((User, User.user_cognito_id), (Admin, Admin.admin_cognito_id)):
            conditions = [id_column == cognito_id]
            if email:
                conditions.append(model.email == email)
            if self.session.scalars(select(model.id).where(or_(*conditions))).first() is not None:
                return True
        return False

    def create_user(self, user_cognito_id: str, name: str, email: str,
                    phone_number: Optional[str] = None) -> User:
        user = User(user_cognito_id=user_cognito_id, name=name, email=email, phone_number=phone_number)
        self.session.add(user)
        self.session.flush()
        return user

    def find_users(self, limit: int, offset: int, search: Optional[str] = None) -> Tuple[List[User], int]:
        """Page of users, newest first; ``search`` matches name or email"""
        stmt = select(User)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = stmt.order_by(User.created_at.desc(), User.id.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt)), total or 0

    def email_taken(self, model: Type[Union[User, Admin]], email: str, cognito_id: str) -> bool:
        """True when another account of ``model`` already uses ``email``"""
        id_column = model.user_cognito_id if model is User else model.admin_cognito_id
        stmt = select(model.id).where(model.email == email, id_column != cognito_id)
        return self.session.scalars(stmt).first() is not None

    def update(self, account: Union[User, Admin], data: dict) -> Union[User, Admin]:
        for key, value in data.items():
            setattr(account, key, value)
        self.session.flush()
        return account

    def create_admin(self, admin_cognito_id: str, name: str, email: str,
                     phone_number: Optional[str] = None) -> Admin:
        admin = Admin(admin_cognito_id=admin_cognito_id, name=name, email=email, phone_number=phone_number)
        self.session.add(admin)
        self.session.flush()
        return admin


class ContactRepository:
    """Repository for contact form submissions"""

    def __init__(self, session: Session):
        self.session = session

    def create(self, **fields) -> Contact:
        contact = Contact(**fields)
        self.session.add(contact)
        self.session.flush()
        return contact

    def find_all(self, limit: int, offset: int, search: Optional[str] = None) -> Tuple[List[Contact], int]:
        stmt = select(Contact)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                Contact.name.ilike(pattern),
                Contact.email.ilike(pattern),
                Contact.subject.ilike(pattern),
            ))

        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = stmt.order_by(Contact.created_at.desc(), Contact.id.desc()).limit(limit).offset(offset)
        return list(self.session.scalars(stmt)), total or 0
