"""
Shared vocabulary for request schemas

Enumerations from the tea auction data set plus small Annotated field
types whose validators raise ``ValueError`` with the message the client
sees (the validation gate uses it verbatim).
"""
import re
from datetime import date, datetime
from typing import Annotated, Iterable, Optional

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

BROKERS = (
    "AMBR", "ANJL", "ATBL", "ATLS", "BICL", "BTBL", "CENT", "COMK",
    "CTBL", "PRME", "PTBL", "TBEA", "UNTB", "VENS", "TTBL", "UIBD",
)

TEA_GRADES = (
    "PD", "PD2", "DUST", "DUST1", "DUST2", "PF", "PF1", "BP", "BP1",
    "FNGS1", "BOP", "BOPF", "FNGS", "FNGS2", "BMF", "BMFD", "PF2", "BMF1",
)

TEA_CATEGORIES = ("M1", "M2", "M3", "S1")

SHIPMENT_STATUSES = ("Pending", "Approved", "Shipped", "Delivered", "Cancelled")

VESSELS = ("first", "second", "third", "fourth")

PACKAGING_INSTRUCTIONS = ("oneJutetwoPolly", "oneJuteOnePolly")

# Query filters accept this in place of an enum value to mean "no filter"
ANY = "any"

_REPRINT_PATTERN = re.compile(r"^[1-9]\d*$")

# Formats accepted for manufacture dates, tried in order
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%m/%d/%Y")


class ApiModel(BaseModel):
    """Base for request bodies: camelCase keys, unknown keys rejected"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def required_text(message: str, max_length: Optional[int] = None, too_long: Optional[str] = None):
    """Non-empty (after strip) string with an optional length cap"""
    def check(value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(message)
        if max_length is not None and len(value) > max_length:
            raise ValueError(too_long or f"Must be at most {max_length} characters")
        return value
    return AfterValidator(check)


def one_of(values: Iterable[str], message: str, allow_any: bool = False):
    allowed = set(values)
    if allow_any:
        allowed.add(ANY)

    def check(value: str) -> str:
        if value not in allowed:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def positive(message: str):
    def check(value):
        if value <= 0:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def between(low, high, message: str):
    def check(value):
        if value < low or value > high:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def non_negative(message: str):
    def check(value):
        if value < 0:
            raise ValueError(message)
        return value
    return AfterValidator(check)


def parse_reprint(value):
    """'No', a positive integer string, or None; blanks become None"""
    if value is None:
        return None
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    if not isinstance(value, str):
        raise ValueError("Reprint must be 'No' or a positive integer string")
    value = value.strip()
    if not value:
        return None
    if value == "No" or _REPRINT_PATTERN.match(value):
        return value
    raise ValueError("Reprint must be 'No' or a positive integer string")


def parse_manufacture_date(value):
    """
    Accept a date, an ISO string, YYYY/MM/DD, DD/MM/YYYY or M/D/YYYY.

    Ambiguous day/month strings are read as DD/MM/YYYY first.
    """
    if value is None or isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    if not isinstance(value, str):
        raise ValueError("Invalid manufacture date")
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(
        "Invalid date format (expected YYYY/MM/DD, DD/MM/YYYY, M/D/YYYY, or YYYY/M/D)"
    )


Broker = Annotated[str, one_of(BROKERS, "Invalid broker value")]
TeaGrade = Annotated[str, one_of(TEA_GRADES, "Invalid tea grade")]
TeaCategory = Annotated[str, one_of(TEA_CATEGORIES, "Invalid tea category")]
ShipmentStatus = Annotated[str, one_of(SHIPMENT_STATUSES, "Invalid shipment status")]
Vessel = Annotated[str, one_of(VESSELS, "Invalid vessel")]
Packaging = Annotated[str, one_of(PACKAGING_INSTRUCTIONS, "Invalid packaging instructions")]
Reprint = Annotated[Optional[str], BeforeValidator(parse_reprint)]
ManufactureDate = Annotated[date, BeforeValidator(parse_manufacture_date)]

# Filters: enum value or "any"
BrokerFilter = Annotated[str, one_of(BROKERS, "Invalid broker value", allow_any=True)]
GradeFilter = Annotated[str, one_of(TEA_GRADES, "Invalid tea grade", allow_any=True)]
CategoryFilter = Annotated[str, one_of(TEA_CATEGORIES, "Invalid tea category", allow_any=True)]

OptionalText = Annotated[Optional[str], BeforeValidator(_blank_to_none)]

PageNumber = Annotated[int, positive("Page must be a positive integer")]
PageLimit = Annotated[int, between(1, 100, "Limit must be between 1 and 100")]


class PageQuery(ApiModel):
    """Pagination parameters shared by list endpoints"""
    page: PageNumber = 1
    limit: PageLimit = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def serialize_row(obj, exclude: Iterable[str] = ()) -> dict:
    """
    Convert an ORM row to a JSON-ready dict with camelCase keys

    Dates and datetimes are rendered as ISO 8601 strings.
    """
    skip = set(exclude)
    data = {}
    for column in obj.__table__.columns:
        if column.key in skip:
            continue
        value = getattr(obj, column.key)
        if isinstance(value, (date, datetime)):
            value = value.isoformat()
        data[to_camel(column.key)] = value
    return data
