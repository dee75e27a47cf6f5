"""
User, admin and contact tables
"""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from teatrade.core.database import Base


class User(Base):
    """Trading account holder, identified by the Cognito subject"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    user_cognito_id = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255))
    email = Column(String(255))
    phone_number = Column(String(50))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    admin_cognito_id = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(255))
    email = Column(String(255))
    phone_number = Column(String(50))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Contact(Base):
    """Submission from the public contact form"""
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    # Text: sanitized values may outgrow the submitted length limits
    name = Column(Text, nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(Text)
    message = Column(Text, nullable=False)
    privacy_consent = Column(Boolean, nullable=False, default=False)
    user_cognito_id = Column(String(100), index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
