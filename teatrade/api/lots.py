"""
Lot listing API Endpoints: catalogs, selling prices and out-lots

One router factory serves all three resources; what differs between them
(columns, filters, export format) lives in their ``LotResource``.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic.alias_generators import to_camel, to_snake
from sqlalchemy.orm import Session

from teatrade.api.deps import get_duplicate_action, get_import_export_service, lot_service_dependency
from teatrade.core.auth import TokenUser, require_admin, require_any_role
from teatrade.core.database import get_db
from teatrade.core.errors import DomainError, NotFoundError
from teatrade.core.responses import paginated_response, success_response
from teatrade.core.uploads import UploadedFile, upload_single_file
from teatrade.core.validation import RequestSchema, ValidatedRequest, ValidationFailed, validate
from teatrade.domain.common import serialize_row
from teatrade.domain.lots import DeleteLotsBody, ExportLotsBody
from teatrade.repositories.lot_repository import LOT_RESOURCES, LotRepository, LotResource
from teatrade.services.import_export_service import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    ImportExportService,
    export_csv,
    export_xlsx,
)
from teatrade.services.lot_service import LotService

logger = logging.getLogger(__name__)

DELETE_LOTS = RequestSchema(body=DeleteLotsBody)
EXPORT_LOTS = RequestSchema(body=ExportLotsBody)


def build_lot_router(resource: LotResource) -> APIRouter:
    """Create the list/filters/get/create/delete/upload/export routes for one resource"""
    router = APIRouter()
    list_schema = RequestSchema(query=resource.query_schema)
    create_schema = RequestSchema(body=resource.create_schema)
    get_lot_service = lot_service_dependency(resource)

    @router.get("")
    def list_lots(
        validated: ValidatedRequest = Depends(validate(list_schema)),
        db: Session = Depends(get_db),
    ):
        query = validated.query
        if query.sort_by:
            sort_by = to_snake(query.sort_by)
            if sort_by not in resource.sortable_columns:
                raise ValidationFailed([f"Invalid sortBy: {query.sort_by}"])
            query = query.model_copy(update={"sort_by": sort_by})

        rows, total = LotRepository(db, resource).find_all(query)
        return paginated_response([serialize_row(row) for row in rows], query.page, query.limit, total)

    @router.get("/filters")
    def filter_options(db: Session = Depends(get_db)):
        """Distinct values for every filterable column"""
        options = LotRepository(db, resource).distinct_values()
        return success_response({to_camel(column): values for column, values in options.items()})

    @router.get("/{lot_id}")
    def get_lot(lot_id: int, db: Session = Depends(get_db)):
        row = LotRepository(db, resource).find_by_id(lot_id)
        if row is None:
            raise NotFoundError(f"{resource.label.capitalize()} with ID {lot_id} not found")
        return success_response(serialize_row(row))

    @router.post("", status_code=status.HTTP_201_CREATED)
    def create_lot(
        user: TokenUser = Depends(require_admin),
        validated: ValidatedRequest = Depends(validate(create_schema)),
        service: LotService = Depends(get_lot_service),
    ):
        data = validated.body.model_dump(exclude={"admin_cognito_id"})
        return success_response(service.create(data, user.id))

    @router.delete("")
    def delete_lots(
        user: TokenUser = Depends(require_admin),
        validated: ValidatedRequest = Depends(validate(DELETE_LOTS)),
        service: LotService = Depends(get_lot_service),
    ):
        deleted = service.delete(validated.body.ids)
        return success_response({"deletedCount": deleted}, message=f"Deleted {deleted} {resource.label}s")

    @router.post("/upload")
    def upload_lots(
        user: TokenUser = Depends(require_admin),
        upload: Optional[UploadedFile] = Depends(upload_single_file),
        duplicate_action: str = Depends(get_duplicate_action),
        service: ImportExportService = Depends(get_import_export_service),
    ):
        """
        Bulk import from CSV/XLSX

        201 when every row was imported or skipped, 207 with per-row errors
        when only some were, 400 when none were.
        """
        if upload is None:
            raise DomainError("CSV file required")

        result = service.import_upload(
            upload,
            resource.create_schema,
            lambda tx: LotRepository(tx, resource),
            duplicate_action,
            user.id,
            aliases=resource.header_aliases,
        )
        return JSONResponse(
            status_code=result.status_code,
            content={
                "message": f"Processed {result.total_rows} {resource.label} rows",
                "data": result.to_dict(),
            },
        )

    @router.post("/export")
    def export_lots(
        user: TokenUser = Depends(require_any_role),
        validated: ValidatedRequest = Depends(validate(EXPORT_LOTS)),
        db: Session = Depends(get_db),
    ):
        rows = LotRepository(db, resource).find_by_ids(validated.body.ids)
        if not rows:
            raise NotFoundError(f"No {resource.label}s found to export")

        filename = f"{resource.name}_export"
        if resource.export_format == "xlsx":
            content = export_xlsx(rows, resource.export_columns, title=resource.name)
            return StreamingResponse(
                content,
                media_type=XLSX_MEDIA_TYPE,
                headers={"Content-Disposition": f'attachment; filename="{filename}.xlsx"'},
            )

        return Response(
            content=export_csv(rows, resource.export_columns),
            media_type=CSV_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
        )

    return router


routers = {resource.name: build_lot_router(resource) for resource in LOT_RESOURCES}
