"""
Uploaded reports shared between admins and buyers
"""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from teatrade.core.database import Base


class Report(Base):
    """
    Metadata of a document stored elsewhere (``file_url``)

    Reports are linked to accounts by Cognito ID only; either side may be null.
    """
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    file_url = Column(String(1024), nullable=False)
    file_type = Column(String(10), nullable=False, index=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    admin_cognito_id = Column(String(100), index=True)
    user_cognito_id = Column(String(100), index=True)

    admin = relationship(
        "Admin",
        primaryjoin="foreign(Report.admin_cognito_id) == Admin.admin_cognito_id",
        viewonly=True,
    )
    user = relationship(
        "User",
        primaryjoin="foreign(Report.user_cognito_id) == User.user_cognito_id",
        viewonly=True,
    )
