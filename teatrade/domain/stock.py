"""
Stock schemas
"""
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BeforeValidator

from teatrade.domain.common import (
    ApiModel,
    Broker,
    OptionalText,
    PageLimit,
    PageQuery,
    TeaGrade,
    non_negative,
    one_of,
    positive,
    required_text,
)

ASSIGNMENT_STATUSES = ("all", "assigned", "unassigned")

HISTORY_ACTIONS = ("CREATED", "REDUCED", "RESTORED", "SHIPPED", "UPDATED", "ASSIGNED", "UNASSIGNED")


def _truthy_flag(value):
    if isinstance(value, str):
        if value not in ("true", "false"):
            raise ValueError("onlyFavorites must be 'true' or 'false'")
        return value == "true"
    return value


def _nonzero(value: float) -> float:
    if value == 0:
        raise ValueError("Adjustment weight must not be zero")
    return value


def _single_assignment(assignments: list) -> list:
    if len(assignments) > 1:
        raise ValueError("A stock can only be assigned to one user")
    return assignments


def _at_least_one_assignment(assignments: list) -> list:
    if not assignments:
        raise ValueError("At least one assignment is required")
    return assignments


class StockCreate(ApiModel):
    """Body of POST /stocks and the row schema of stock CSV imports"""
    sale_code: Annotated[str, required_text("Sale code is required")]
    broker: Broker
    lot_no: Annotated[str, required_text("Lot number is required")]
    mark: Annotated[str, required_text("Mark is required")]
    grade: TeaGrade
    invoice_no: Annotated[str, required_text("Invoice number is required")]
    bags: Annotated[int, positive("Bags must be a positive integer")]
    weight: Annotated[float, positive("Weight must be positive")]
    purchase_value: Annotated[float, non_negative("Purchase value must be non-negative")] = 0
    batch_number: OptionalText = None
    low_stock_threshold: Optional[
        Annotated[float, non_negative("Low stock threshold must be non-negative")]
    ] = None
    admin_cognito_id: Optional[str] = None


class AssignmentItem(ApiModel):
    user_cognito_id: Annotated[str, required_text("User Cognito ID is required")]
    assigned_weight: Annotated[float, positive("Assigned weight must be positive")]


class StockUpdate(ApiModel):
    """
    Body of PUT /stocks/{id}

    Only the fields sent are changed; ``batchNumber`` and
    ``lowStockThreshold`` may be sent as null to clear them.
    """
    sale_code: Optional[Annotated[str, required_text("Sale code must not be empty")]] = None
    broker: Optional[Broker] = None
    lot_no: Optional[Annotated[str, required_text("Lot number must not be empty")]] = None
    mark: Optional[Annotated[str, required_text("Mark must not be empty")]] = None
    grade: Optional[TeaGrade] = None
    invoice_no: Optional[Annotated[str, required_text("Invoice number must not be empty")]] = None
    bags: Optional[Annotated[int, non_negative("Bags must be non-negative")]] = None
    weight: Optional[Annotated[float, non_negative("Weight must be non-negative")]] = None
    purchase_value: Optional[Annotated[float, non_negative("Purchase value must be non-negative")]] = None
    batch_number: OptionalText = None
    low_stock_threshold: Optional[
        Annotated[float, non_negative("Low stock threshold must be non-negative")]
    ] = None
    admin_cognito_id: Optional[Annotated[str, required_text("Admin Cognito ID must be a valid string")]] = None
    assignments: Optional[Annotated[List[AssignmentItem], AfterValidator(_single_assignment)]] = None


class StockQuery(PageQuery):
    limit: PageLimit = 100
    lot_no: OptionalText = None
    batch_number: OptionalText = None
    grade: Optional[TeaGrade] = None
    broker: Optional[Broker] = None
    min_weight: Optional[
        Annotated[float, non_negative("Minimum weight must be non-negative")]
    ] = None
    search: OptionalText = None
    assignment_status: Annotated[str, one_of(ASSIGNMENT_STATUSES, "Invalid assignment status")] = "all"
    only_favorites: Annotated[bool, BeforeValidator(_truthy_flag)] = False


class StockAdjust(ApiModel):
    """
    Body of POST /stocks/adjust

    ``weight`` is signed: positive restores stock, negative reduces it.
    """
    stocks_id: Annotated[int, positive("Stock ID must be a positive integer")]
    weight: Annotated[float, AfterValidator(_nonzero)]
    reason: Annotated[str, required_text("Reason is required")]
    shipment_id: Optional[Annotated[int, positive("Shipment ID must be a positive integer")]] = None


class FavoriteToggle(ApiModel):
    user_cognito_id: Annotated[str, required_text("User Cognito ID is required")]
    stock_id: Annotated[int, positive("Stock ID must be a positive integer")]


class AssignStock(ApiModel):
    """Body of POST /stocks/assign; the whole lot is assigned unless a weight is given"""
    stock_id: Annotated[int, positive("Stock ID must be a positive integer")]
    user_cognito_id: Annotated[str, required_text("User Cognito ID is required")]
    assigned_weight: Optional[Annotated[float, positive("Assigned weight must be positive")]] = None


class BulkAssignmentItem(ApiModel):
    stock_id: Annotated[int, positive("Stock ID must be a positive integer")]
    assigned_weight: Optional[Annotated[float, positive("Assigned weight must be positive")]] = None


class BulkAssignStocks(ApiModel):
    user_cognito_id: Annotated[str, required_text("User Cognito ID is required")]
    assignments: Annotated[List[BulkAssignmentItem], AfterValidator(_at_least_one_assignment)]


class UnassignStock(ApiModel):
    stock_id: Annotated[int, positive("Stock ID must be a positive integer")]
    user_cognito_id: Annotated[str, required_text("User Cognito ID is required")]


class StockHistoryQuery(PageQuery):
    action: Optional[Annotated[str, one_of(HISTORY_ACTIONS, "Invalid history action")]] = None


class AssignmentHistoryQuery(PageQuery):
    """Query of GET /users/{userCognitoId}/stock-history"""
    limit: PageLimit = 10
    search: OptionalText = None
    sort_by: Annotated[
        str, one_of(("assignedAt", "stocksId", "assignedWeight"), "Invalid sortBy")
    ] = "assignedAt"
    sort_order: Annotated[str, one_of(("asc", "desc"), "Invalid sortOrder")] = "desc"


class DeleteStocksBody(ApiModel):
    ids: List[Annotated[int, positive("IDs must be positive integers")]]
