"""
Stocks API Endpoints
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from teatrade.api.deps import get_duplicate_action, get_import_export_service, get_stock_service
from teatrade.core.auth import TokenUser, require_admin, require_any_role
from teatrade.core.database import get_db
from teatrade.core.errors import DomainError, NotFoundError
from teatrade.core.responses import paginated_response, success_response
from teatrade.core.uploads import UploadedFile, upload_single_file
from teatrade.core.validation import RequestSchema, ValidatedRequest, validate
from teatrade.domain.common import serialize_row
from teatrade.domain.lots import ExportLotsBody
from teatrade.domain.stock import (
    AssignStock,
    BulkAssignStocks,
    DeleteStocksBody,
    FavoriteToggle,
    StockAdjust,
    StockCreate,
    StockHistoryQuery,
    StockQuery,
    StockUpdate,
    UnassignStock,
)
from teatrade.repositories.stock_repository import StockRepository
from teatrade.services.import_export_service import XLSX_MEDIA_TYPE, ImportExportService, export_xlsx
from teatrade.services.stock_service import (
    STOCK_EXPORT_COLUMNS,
    STOCK_HEADER_ALIASES,
    StockService,
    record_stock_created,
    serialize_stock,
)

logger = logging.getLogger(__name__)

router = APIRouter()

LIST_STOCKS = RequestSchema(query=StockQuery)
CREATE_STOCK = RequestSchema(body=StockCreate)
DELETE_STOCKS = RequestSchema(body=DeleteStocksBody)
ADJUST_STOCK = RequestSchema(body=StockAdjust)
TOGGLE_FAVORITE = RequestSchema(body=FavoriteToggle)
STOCK_HISTORY = RequestSchema(query=StockHistoryQuery)
EXPORT_STOCKS = RequestSchema(body=ExportLotsBody)
UPDATE_STOCK = RequestSchema(body=StockUpdate)
ASSIGN_STOCK = RequestSchema(body=AssignStock)
BULK_ASSIGN = RequestSchema(body=BulkAssignStocks)
UNASSIGN_STOCK = RequestSchema(body=UnassignStock)


@router.get("")
def list_stocks(
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(LIST_STOCKS)),
    db: Session = Depends(get_db),
):
    """
    List stock lots

    Every item carries ``isFavorited`` for the caller; ``onlyFavorites=true``
    restricts the list to the caller's favorites.
    """
    query: StockQuery = validated.query
    repo = StockRepository(db)
    stocks, total = repo.find_all(query, user_cognito_id=user.id)
    favorites = repo.favorite_ids(user.id, (stock.id for stock in stocks))

    items = [serialize_stock(stock, stock.id in favorites) for stock in stocks]
    return paginated_response(items, query.page, query.limit, total)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_stock(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(CREATE_STOCK)),
    service: StockService = Depends(get_stock_service),
):
    stock = service.create_stock(validated.body, user.id)
    logger.info(f"Created stock {stock['lotNo']}")
    return success_response(stock)


@router.delete("")
def delete_stocks(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(DELETE_STOCKS)),
    service: StockService = Depends(get_stock_service),
):
    deleted = service.delete_stocks(validated.body.ids)
    return success_response({"deletedCount": deleted}, message=f"Deleted {deleted} stocks")


@router.post("/adjust")
def adjust_stock(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(ADJUST_STOCK)),
    service: StockService = Depends(get_stock_service),
):
    """
    Add or remove weight from a stock lot

    Bags follow the weight using the lot's average bag weight. Rejected
    with 400 when the lot would go negative.
    """
    stock = service.adjust_stock(validated.body, user.id)
    return success_response(stock, message="Stock adjusted")


@router.post("/favorites")
def toggle_favorite(
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(TOGGLE_FAVORITE)),
    service: StockService = Depends(get_stock_service),
):
    payload: FavoriteToggle = validated.body
    if payload.user_cognito_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden: Cannot modify another user's favorites")

    result = service.toggle_favorite(payload.user_cognito_id, payload.stock_id)
    if result["favorited"]:
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=success_response(result, message="Stock added to favorites"),
        )
    return success_response(result, message="Stock removed from favorites")


@router.post("/upload")
def upload_stocks(
    user: TokenUser = Depends(require_admin),
    upload: Optional[UploadedFile] = Depends(upload_single_file),
    duplicate_action: str = Depends(get_duplicate_action),
    service: ImportExportService = Depends(get_import_export_service),
):
    """Bulk import stock lots; each created lot gets a CREATED history row"""
    if upload is None:
        raise DomainError("CSV file required")

    result = service.import_upload(
        upload,
        StockCreate,
        StockRepository,
        duplicate_action,
        user.id,
        aliases=STOCK_HEADER_ALIASES,
        on_created=record_stock_created,
    )
    return JSONResponse(
        status_code=result.status_code,
        content={
            "message": f"Processed {result.total_rows} stock rows",
            "data": result.to_dict(),
        },
    )


@router.post("/export")
def export_stocks(
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(EXPORT_STOCKS)),
    db: Session = Depends(get_db),
):
    stocks = StockRepository(db).find_by_ids(validated.body.ids)
    if not stocks:
        raise NotFoundError("No stocks found to export")

    return StreamingResponse(
        export_xlsx(stocks, STOCK_EXPORT_COLUMNS, title="Stocks"),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="stocks_export.xlsx"'},
    )


@router.post("/assign")
def assign_stock(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(ASSIGN_STOCK)),
    service: StockService = Depends(get_stock_service),
):
    """Reserve a stock lot for a buyer; refused while it is assigned to anyone"""
    assignment = service.assign_stock(validated.body, user.id)
    return success_response(assignment, message="Stock assigned successfully")


@router.post("/bulk-assign", status_code=status.HTTP_201_CREATED)
def bulk_assign_stocks(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(BULK_ASSIGN)),
    service: StockService = Depends(get_stock_service),
):
    assignments = service.bulk_assign(validated.body, user.id)
    return success_response(assignments, message="Stocks assigned successfully")


@router.post("/unassign")
def unassign_stock(
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(UNASSIGN_STOCK)),
    service: StockService = Depends(get_stock_service),
):
    service.unassign_stock(validated.body, user.id)
    return success_response(None, message="Stock unassigned successfully")


@router.put("/{stock_id}")
def update_stock(
    stock_id: int,
    user: TokenUser = Depends(require_admin),
    validated: ValidatedRequest = Depends(validate(UPDATE_STOCK)),
    service: StockService = Depends(get_stock_service),
):
    stock = service.update_stock(stock_id, validated.body, user.id)
    return success_response(stock, message="Stock updated")


@router.get("/{stock_id}")
def get_stock(
    stock_id: int,
    user: TokenUser = Depends(require_any_role),
    db: Session = Depends(get_db),
):
    repo = StockRepository(db)
    stock = repo.find_by_id(stock_id)
    if stock is None:
        raise NotFoundError(f"Stock with ID {stock_id} not found")

    favorited = stock_id in repo.favorite_ids(user.id, [stock_id])
    return success_response(serialize_stock(stock, favorited))


@router.get("/{stock_id}/history")
def get_stock_history(
    stock_id: int,
    user: TokenUser = Depends(require_any_role),
    validated: ValidatedRequest = Depends(validate(STOCK_HISTORY)),
    db: Session = Depends(get_db),
):
    query: StockHistoryQuery = validated.query
    repo = StockRepository(db)
    if repo.find_by_id(stock_id) is None:
        raise NotFoundError(f"Stock with ID {stock_id} not found")

    entries, total = repo.find_history(stock_id, query)
    return paginated_response([serialize_row(entry) for entry in entries], query.page, query.limit, total)
