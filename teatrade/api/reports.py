"""
Reports API Endpoints

Admins publish report metadata; every caller only sees the reports in
their scope (admins: their own and unowned ones, buyers: their own).
"""
from datetime import date

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from teatrade.api.deps import get_report_service
from teatrade.core.auth import TokenUser, require_admin, require_any_role
from teatrade.core.database import get_db
from teatrade.core.errors import NotFoundError
from teatrade.core.responses import paginated_response, success_response
from teatrade.core.validation import RequestSchema, ValidatedRequest, validate
from teatrade.domain.report import DeleteReportsBody, ReportCreate, ReportExportBody, ReportQuery
from teatrade.repositories.report_repository import ReportRepository
from teatrade.services.import_export_service import XLSX_MEDIA_TYPE, export_xlsx
from teatrade.services.report_service import REPORT_EXPORT_COLUMNS, ReportService, serialize_report

router = APIRouter()

LIST_REPORTS = RequestSchema(query=ReportQuery)
CREATE_REPORT = RequestSchema(body=ReportCreate)
DELETE_REPORTS = RequestSchema(body=DeleteReportsBody)
EXPORT_REPORTS = RequestSchema(body=ReportExportBody)


@router.get("")
def list_reports(
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(LIST_REPORTS)),
    db: Session = Depends(get_db),
):
    query: ReportQuery = validated.query
    reports, total = ReportRepository(db).find_all(query, user.role, user.id)
    return paginated_response([serialize_report(r) for r in reports], query.page, query.limit, total)


@router.get("/filters")
def report_filter_options(
    user: TokenUser = Depends(require_any_role),
    db: Session = Depends(get_db),
):
    return success_response(ReportRepository(db).filter_options(user.role, user.id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_report(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(CREATE_REPORT)),
    service: ReportService = Depends(get_report_service),
):
    return success_response(service.create_report(validated.body, user.id), message="Report created")


@router.delete("/bulk")
def delete_reports(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(DELETE_REPORTS)),
    service: ReportService = Depends(get_report_service),
):
    result = service.delete_reports(validated.body.ids, user.id)
    return success_response(result, message=f"Successfully deleted {result['deletedCount']} report(s)")


@router.post("/export/xlsx")
def export_reports(
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(EXPORT_REPORTS)),
    db: Session = Depends(get_db),
):
    """Spreadsheet of the listed reports, or of one page of the filtered list"""
    body: ReportExportBody = validated.body
    repo = ReportRepository(db)
    if body.report_ids:
        reports = repo.find_by_ids(body.report_ids, user.role, user.id)
    else:
        reports, _ = repo.find_all(body, user.role, user.id)
    if not reports:
        raise NotFoundError("No reports found")

    filename = f"reports_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        export_xlsx(reports, REPORT_EXPORT_COLUMNS, title="Reports"),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{report_id}")
def get_report(
    report_id: int,
    user: TokenUser = Depends(require_any_role),
    db: Session = Depends(get_db),
):
    report = ReportRepository(db).find_by_id(report_id, user.role, user.id)
    if report is None:
        raise NotFoundError("Report not found or unauthorized")
    return success_response(serialize_report(report))
