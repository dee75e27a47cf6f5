"""
Shared dependencies for the API routers
"""
from fastapi import HTTPException, Request, status

from teatrade.core.auth import TokenUser
from teatrade.core.validation import ValidationFailed
from teatrade.repositories.lot_repository import LotResource
from teatrade.services.import_export_service import DUPLICATE_ACTIONS, ImportExportService
from teatrade.services.lot_service import LotService
from teatrade.services.report_service import ReportService
from teatrade.services.shipment_service import ShipmentService
from teatrade.services.stock_service import StockService


def _retry_options(request: Request) -> dict:
    settings = request.app.state.settings
    return {
        "session_factory": request.app.state.database.session_factory,
        "max_retries": settings.TRANSACTION_MAX_RETRIES,
    }


def get_stock_service(request: Request) -> StockService:
    return StockService(**_retry_options(request))


def get_shipment_service(request: Request) -> ShipmentService:
    return ShipmentService(**_retry_options(request))


def get_report_service(request: Request) -> ReportService:
    return ReportService(**_retry_options(request))


def get_import_export_service(request: Request) -> ImportExportService:
    return ImportExportService(**_retry_options(request))


async def get_duplicate_action(request: Request) -> str:
    """Multipart form field ``duplicateAction``: skip (default) or replace"""
    form = await request.form()
    action = form.get("duplicateAction") or "skip"
    if action not in DUPLICATE_ACTIONS:
        raise ValidationFailed(["Invalid duplicateAction"])
    return action


def ensure_self_or_admin(user: TokenUser, cognito_id: str,
                         detail: str = "Forbidden: Admin role or self-access required") -> None:
    if user.role != "admin" and user.id != cognito_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def lot_service_dependency(resource: LotResource):
    """Dependency building a LotService bound to ``resource``"""
    def get_lot_service(request: Request) -> LotService:
        return LotService(resource, **_retry_options(request))
    return get_lot_service
