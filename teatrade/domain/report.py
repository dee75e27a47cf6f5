"""
Report schemas
"""
from typing import Annotated, List, Optional

from pydantic import AfterValidator

from teatrade.domain.common import (
    ANY,
    ApiModel,
    OptionalText,
    PageQuery,
    between,
    one_of,
    positive,
    required_text,
)

REPORT_FILE_TYPES = ("pdf", "doc", "docx", "txt", "csv", "xlsx")

_INVALID_FILE_TYPE = f"Invalid file type, must be one of: {', '.join(REPORT_FILE_TYPES)}"

FileType = Annotated[str, one_of(REPORT_FILE_TYPES, _INVALID_FILE_TYPE)]
FileTypeFilter = Annotated[str, one_of(REPORT_FILE_TYPES, _INVALID_FILE_TYPE, allow_any=True)]
ReportLimit = Annotated[int, between(1, 1000, "Limit must be between 1 and 1000")]


def _some_ids(ids: list) -> list:
    if not ids:
        raise ValueError("No report IDs provided")
    return ids


ReportIds = Annotated[
    List[Annotated[int, positive("Report IDs must be positive integers")]],
    AfterValidator(_some_ids),
]


class ReportQuery(PageQuery):
    """
    Filters of GET /reports

    ``search`` matches title or description, or the file type when it
    names one exactly.
    """
    limit: ReportLimit = 10
    title: OptionalText = None
    file_type: Optional[FileTypeFilter] = None
    admin_cognito_id: OptionalText = None
    user_cognito_id: OptionalText = None
    search: OptionalText = None

    @property
    def file_type_filter(self) -> Optional[str]:
        return None if self.file_type == ANY else self.file_type


class ReportCreate(ApiModel):
    title: Annotated[str, required_text("Title is required", 255, "Title is too long")]
    description: OptionalText = None
    file_url: Annotated[str, required_text("File URL is required")]
    file_type: FileType


class ReportExportBody(ReportQuery):
    """Body of POST /reports/export/xlsx: explicit IDs, or the list filters"""
    report_ids: Optional[ReportIds] = None


class DeleteReportsBody(ApiModel):
    ids: ReportIds
