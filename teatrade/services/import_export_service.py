"""
Service for CSV/Excel imports and exports using pandas and openpyxl.

Imports normalise headers, validate each row on its own and write the
valid rows in batches, each batch in one retried transaction. Exports
render ORM rows as CSV (pandas) or a styled XLSX workbook (openpyxl).
"""
import io
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from teatrade.core.errors import DomainError
from teatrade.core.transactions import TransactionRetryError, retry_transaction
from teatrade.core.uploads import UploadedFile
from teatrade.core.validation import format_error

logger = logging.getLogger(__name__)

DUPLICATE_ACTIONS = ("skip", "replace")
BATCH_SIZE = 100

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MEDIA_TYPE = "text/csv"

_HEADER_NOISE = re.compile(r"[\s_\-]+")


def normalize_header(name: Any) -> str:
    """'Lot No', 'lot_no' and '\\ufeffLotNo' all become 'lotno'"""
    text = str(name).replace("\ufeff", "").strip().lower()
    return _HEADER_NOISE.sub("", text)


def build_header_map(schema: Type[BaseModel], aliases: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Map normalized header text to schema field names"""
    mapping = {}
    for name, info in schema.model_fields.items():
        mapping[normalize_header(name)] = name
        mapping[normalize_header(info.alias or to_camel(name))] = name
    for header, name in (aliases or {}).items():
        mapping[normalize_header(header)] = name
    return mapping


@dataclass
class RowError:
    row: int
    message: str
    lot_no: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"row": self.row, "message": self.message}
        if self.lot_no:
            data["lotNo"] = self.lot_no
        return data


@dataclass
class ImportResult:
    """Outcome of one upload"""
    total_rows: int = 0
    created: int = 0
    replaced: int = 0
    skipped: int = 0
    errors: List[RowError] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.created + self.replaced + self.skipped

    @property
    def status_code(self) -> int:
        """201 all rows fine, 207 some rows failed, 400 nothing succeeded"""
        if not self.errors:
            return 201
        if self.succeeded:
            return 207
        return 400

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "createdCount": self.created,
            "replacedCount": self.replaced,
            "skippedCount": self.skipped,
            "errors": [error.to_dict() for error in self.errors],
        }


def _is_excel(upload: UploadedFile) -> bool:
    return upload.filename.lower().endswith(".xlsx") or upload.content_type == XLSX_MEDIA_TYPE


def read_table(upload: UploadedFile) -> pd.DataFrame:
    """
    Load an uploaded CSV or XLSX file with every cell as text.

    Raises:
        DomainError: the file cannot be parsed or has no data rows
    """
    buffer = io.BytesIO(upload.content)
    try:
        if _is_excel(upload):
            df = pd.read_excel(buffer, sheet_name=0, dtype=str, engine="openpyxl")
        else:
            df = pd.read_csv(buffer, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        raise DomainError("CSV file is empty")
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        logger.warning(f"Could not parse upload {upload.filename!r}: {e}")
        raise DomainError(f"Invalid file format: {e}")

    df = df.fillna("")
    if df.empty:
        raise DomainError("CSV file is empty")
    return df


def parse_records(df: pd.DataFrame, schema: Type[BaseModel],
                  aliases: Optional[Dict[str, str]] = None) -> Tuple[List[Tuple[int, BaseModel]], List[RowError]]:
    """
    Validate every row of ``df`` against ``schema``.

    Unknown columns are ignored and blank cells count as absent. Row
    numbers are spreadsheet rows (the header is row 1).

    Returns:
        (valid rows as (row number, model), errors)
    """
    header_map = build_header_map(schema, aliases)
    columns = {column: header_map.get(normalize_header(column)) for column in df.columns}
    unknown = [column for column, name in columns.items() if name is None]
    if unknown:
        logger.info(f"Ignoring unknown columns: {unknown}")

    valid: List[Tuple[int, BaseModel]] = []
    errors: List[RowError] = []
    seen_lots: Dict[str, int] = {}

    for index, raw in enumerate(df.to_dict(orient="records")):
        row_number = index + 2
        data = {}
        for column, value in raw.items():
            name = columns.get(column)
            if name is None:
                continue
            value = str(value).strip()
            if value:
                data[name] = value

        lot_no = data.get("lot_no")
        try:
            record = schema.model_validate(data)
        except ValidationError as e:
            message = ", ".join(format_error(err) for err in e.errors())
            errors.append(RowError(row_number, message, lot_no))
            continue

        if lot_no in seen_lots:
            errors.append(RowError(row_number, f"Duplicate lot number {lot_no} (also on row {seen_lots[lot_no]})", lot_no))
            continue
        if lot_no:
            seen_lots[lot_no] = row_number
        valid.append((row_number, record))

    return valid, errors


class ImportExportService:
    """Service for bulk CSV/XLSX import and export"""

    def __init__(self, session_factory: Callable[[], Session], max_retries: int = 3,
                 sleep: Callable[[float], None] = time.sleep, batch_size: int = BATCH_SIZE):
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.sleep = sleep
        self.batch_size = batch_size

    def import_upload(
        self,
        upload: UploadedFile,
        schema: Type[BaseModel],
        repository_factory: Callable[[Session], Any],
        duplicate_action: str,
        owner_id: str,
        aliases: Optional[Dict[str, str]] = None,
        on_created: Optional[Callable[[Any, Any, str], None]] = None,
    ) -> ImportResult:
        """
        Import every valid row of ``upload``.

        Args:
            upload: Accepted CSV/XLSX file
            schema: Row schema (the resource's create schema)
            repository_factory: Builds a repository with find_by_lot_nos/create/update
                from a session
            duplicate_action: ``skip`` keeps existing rows, ``replace`` overwrites them
            owner_id: Stored as ``admin_cognito_id`` on every written row
            aliases: Extra header names for the schema fields
            on_created: Called with (repository, row, owner_id) after each insert
        """
        if duplicate_action not in DUPLICATE_ACTIONS:
            raise DomainError("Invalid duplicateAction")

        df = read_table(upload)
        valid, errors = parse_records(df, schema, aliases)
        result = ImportResult(total_rows=len(df.index), errors=errors)

        for start in range(0, len(valid), self.batch_size):
            batch = valid[start:start + self.batch_size]
            try:
                created, replaced, skipped = retry_transaction(
                    lambda tx: self._write_batch(tx, batch, repository_factory, duplicate_action, owner_id, on_created),
                    max_retries=self.max_retries,
                    session_factory=self.session_factory,
                    sleep=self.sleep,
                )
            except (IntegrityError, TransactionRetryError) as e:
                logger.error(f"Import batch starting at row {batch[0][0]} failed: {e}")
                result.errors.extend(
                    RowError(row_number, f"Batch failed: {getattr(e, 'orig', e)}", getattr(record, "lot_no", None))
                    for row_number, record in batch
                )
                continue

            result.created += created
            result.replaced += replaced
            result.skipped += skipped

        result.errors.sort(key=lambda error: error.row)
        logger.info(
            f"Import of {upload.filename!r} finished: {result.created} created, "
            f"{result.replaced} replaced, {result.skipped} skipped, {len(result.errors)} errors"
        )
        return result

    @staticmethod
    def _write_batch(tx: Session, batch, repository_factory, duplicate_action: str,
                     owner_id: str, on_created) -> Tuple[int, int, int]:
        repo = repository_factory(tx)
        existing = repo.find_by_lot_nos(record.lot_no for _, record in batch)
        created = replaced = skipped = 0

        for _, record in batch:
            data = record.model_dump(exclude={"admin_cognito_id"})
            data["admin_cognito_id"] = owner_id
            current = existing.get(record.lot_no)

            if current is None:
                row = repo.create(data)
                if on_created is not None:
                    on_created(repo, row, owner_id)
                created += 1
            elif duplicate_action == "replace":
                repo.update(current, data)
                replaced += 1
            else:
                skipped += 1

        return created, replaced, skipped


def _cell_value(row: Any, attr: str) -> Any:
    value = getattr(row, attr)
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return value


def export_csv(rows: Iterable[Any], columns: Sequence[Tuple[str, str]]) -> bytes:
    """Render rows as CSV with the given (header, attribute) columns"""
    records = [
        {header: _csv_value(getattr(row, attr)) for header, attr in columns}
        for row in rows
    ]
    df = pd.DataFrame(records, columns=[header for header, _ in columns])
    return df.to_csv(index=False).encode("utf-8")


def _csv_value(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


def export_xlsx(rows: Iterable[Any], columns: Sequence[Tuple[str, str]], title: str) -> io.BytesIO:
    """Render rows as a single-sheet workbook with a styled, frozen header"""
    wb = Workbook()
    ws = wb.active
    ws.title = title[:31]

    # Define styles
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    header_font = Font(color="FFFFFF", bold=True, size=12)
    border = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    # Write headers
    for col_num, (header, _) in enumerate(columns, 1):
        cell = ws.cell(row=1, column=col_num, value=header)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal='center', vertical='center')
        cell.border = border

    # Write data
    for row_num, row in enumerate(rows, 2):
        for col_num, (_, attr) in enumerate(columns, 1):
            value = _cell_value(row, attr)
            cell = ws.cell(row=row_num, column=col_num, value=value)
            cell.border = border
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                cell.alignment = Alignment(horizontal='right', vertical='center')
                cell.number_format = '#,##0.00' if isinstance(value, float) else '#,##0'
            else:
                cell.alignment = Alignment(horizontal='left', vertical='center')

    # Adjust column widths
    for col_num, (header, _) in enumerate(columns, 1):
        ws.column_dimensions[get_column_letter(col_num)].width = max(14, len(header) + 4)

    # Freeze header row
    ws.freeze_panes = 'A2'

    excel_file = io.BytesIO()
    wb.save(excel_file)
    excel_file.seek(0)
    return excel_file
