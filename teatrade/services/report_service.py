"""
Service for report writes
"""
import logging
import time
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from teatrade.core.errors import NotFoundError
from teatrade.core.transactions import retry_transaction
from teatrade.domain.common import serialize_row
from teatrade.domain.report import ReportCreate
from teatrade.models import Report
from teatrade.repositories.report_repository import ReportRepository

logger = logging.getLogger(__name__)

REPORT_EXPORT_COLUMNS = (
    ("ID", "id"),
    ("Title", "title"),
    ("Description", "description"),
    ("File URL", "file_url"),
    ("File Type", "file_type"),
    ("Uploaded At", "uploaded_at"),
    ("Admin Cognito ID", "admin_cognito_id"),
)


def serialize_report(report: Report) -> Dict[str, Any]:
    data = serialize_row(report)
    admin, user = report.admin, report.user
    data["admin"] = (
        {"adminCognitoId": admin.admin_cognito_id, "name": admin.name, "email": admin.email}
        if admin is not None else None
    )
    data["user"] = (
        {"userCognitoId": user.user_cognito_id, "name": user.name, "email": user.email}
        if user is not None else None
    )
    return data


class ReportService:
    """Service for creating and deleting reports"""

    def __init__(self, session_factory: Callable[[], Session], max_retries: int = 3,
                 sleep: Callable[[float], None] = time.sleep):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.sleep = sleep

    def _run(self, operation):
        return retry_transaction(
            operation,
            max_retries=self.max_retries,
            session_factory=self.session_factory,
            sleep=self.sleep,
        )

    def create_report(self, payload: ReportCreate, admin_cognito_id: str) -> Dict[str, Any]:
        def operation(tx: Session) -> Dict[str, Any]:
            report = ReportRepository(tx).create(
                **payload.model_dump(),
                admin_cognito_id=admin_cognito_id,
            )
            return serialize_row(report)

        report = self._run(operation)
        logger.info(f"Report {report['id']} created", extra={"meta": {"fileType": report["fileType"]}})
        return report

    def delete_reports(self, ids: List[int], admin_cognito_id: str) -> Dict[str, Any]:
        """
        Delete the listed reports the admin owns (or that have no owner).

        Raises:
            NotFoundError: none of the IDs is deletable by this admin
        """
        def operation(tx: Session) -> Dict[str, Any]:
            repo = ReportRepository(tx)
            reports = repo.find_by_ids(ids, "admin", admin_cognito_id)
            if not reports:
                raise NotFoundError("No reports found or unauthorized")

            associations = [{"id": report.id, "title": report.title} for report in reports]
            repo.delete(reports)
            return {"deletedCount": len(associations), "associations": associations}

        result = self._run(operation)
        logger.info(f"Deleted {result['deletedCount']} reports")
        return result
