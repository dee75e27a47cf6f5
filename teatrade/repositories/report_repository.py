"""
Report Repository - Data Access Layer for uploaded reports
"""
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from teatrade.domain.report import REPORT_FILE_TYPES, ReportQuery
from teatrade.models import Report


def visible_to(role: str, cognito_id: str):
    """
    Reports an account may see

    Admins see their own reports and unowned ones; buyers see reports
    addressed to them.
    """
    if role == "admin":
        return or_(Report.admin_cognito_id == cognito_id, Report.admin_cognito_id.is_(None))
    return Report.user_cognito_id == cognito_id


class ReportRepository:
    """Repository for Report data access; every read is scoped to the caller"""

    def __init__(self, session: Session):
        self.session = session

    def _filtered(self, query: ReportQuery, role: str, cognito_id: str):
        stmt = select(Report).where(visible_to(role, cognito_id))

        if query.title:
            stmt = stmt.where(Report.title.ilike(f"%{query.title}%"))
        if query.file_type_filter:
            stmt = stmt.where(Report.file_type == query.file_type_filter)
        if query.admin_cognito_id:
            stmt = stmt.where(Report.admin_cognito_id == query.admin_cognito_id)
        if query.user_cognito_id:
            stmt = stmt.where(Report.user_cognito_id == query.user_cognito_id)
        if query.search:
            pattern = f"%{query.search}%"
            conditions = [Report.title.ilike(pattern), Report.description.ilike(pattern)]
            if query.search in REPORT_FILE_TYPES:
                conditions.append(Report.file_type == query.search)
            stmt = stmt.where(or_(*conditions))
        return stmt

    def find_all(self, query: ReportQuery, role: str, cognito_id: str) -> Tuple[List[Report], int]:
        stmt = self._filtered(query, role, cognito_id)
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = (
            stmt.options(selectinload(Report.admin), selectinload(Report.user))
            .order_by(Report.uploaded_at.desc(), Report.id.desc())
            .limit(query.limit)
            .offset(query.offset)
        )
        return list(self.session.scalars(stmt)), total or 0

    def find_by_id(self, report_id: int, role: str, cognito_id: str) -> Optional[Report]:
        stmt = select(Report).where(Report.id == report_id, visible_to(role, cognito_id))
        return self.session.scalars(stmt).first()

    def find_by_ids(self, ids: List[int], role: str, cognito_id: str) -> List[Report]:
        stmt = (
            select(Report)
            .where(Report.id.in_(ids), visible_to(role, cognito_id))
            .order_by(Report.id)
        )
        return list(self.session.scalars(stmt))

    def filter_options(self, role: str, cognito_id: str) -> Dict[str, Any]:
        """Distinct file types and owners, and the upload date range"""
        scope = visible_to(role, cognito_id)

        def distinct(column) -> List[str]:
            stmt = select(column).where(scope, column.is_not(None)).distinct().order_by(column)
            return list(self.session.scalars(stmt))

        low, high = self.session.execute(
            select(func.min(Report.uploaded_at), func.max(Report.uploaded_at)).where(scope)
        ).one()
        return {
            "fileTypes": distinct(Report.file_type),
            "adminCognitoIds": distinct(Report.admin_cognito_id),
            "userCognitoIds": distinct(Report.user_cognito_id),
            "uploadedAt": {
                "min": low.isoformat() if low else None,
                "max": high.isoformat() if high else None,
            },
        }

    def create(self, **fields) -> Report:
        report = Report(**fields)
        self.session.add(report)
        self.session.flush()
        return report

    def delete(self, reports: List[Report]) -> None:
        for report in reports:
            self.session.delete(report)
        self.session.flush()
