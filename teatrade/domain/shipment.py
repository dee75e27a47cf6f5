"""
Shipment schemas
"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import AfterValidator, Field

from teatrade.domain.common import (
    ApiModel,
    OptionalText,
    Packaging,
    PageLimit,
    PageQuery,
    ShipmentStatus,
    Vessel,
    positive,
    required_text,
)


def _at_least_one_item(items: list) -> list:
    if not items:
        raise ValueError("At least one stock item is required")
    return items


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ShipmentItem(ApiModel):
    stocks_id: Annotated[int, positive("stocksId must be a positive integer")]
    total_weight: Annotated[float, positive("Total weight must be a positive number")]


class ShipmentCreate(ApiModel):
    """Body of POST /shipments/users/{userCognitoId}"""
    items: Annotated[List[ShipmentItem], AfterValidator(_at_least_one_item)]
    shipment_date: Annotated[datetime, AfterValidator(_aware)] = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    status: ShipmentStatus = "Pending"
    consignee: Annotated[str, required_text("Consignee is required")]
    vessel: Vessel
    shipmark: Annotated[str, required_text("Shipmark is required")]
    packaging_instructions: Packaging
    additional_instructions: OptionalText = None
    # Path parameter wins; kept so clients may echo it in the body
    user_cognito_id: Optional[str] = None


class ShipmentStatusUpdate(ApiModel):
    status: ShipmentStatus


class ShipmentQuery(PageQuery):
    status: Optional[ShipmentStatus] = None
    stocks_id: Optional[Annotated[int, positive("stocksId must be a positive integer")]] = None
    search: OptionalText = None


class ShipmentOwnerParams(ApiModel):
    user_cognito_id: Annotated[str, required_text("userCognitoId is required")]


class ShipmentParams(ShipmentOwnerParams):
    id: Annotated[int, positive("Shipment ID must be a positive integer")]


class ShipmentUpdate(ApiModel):
    """
    Body of PATCH /shipments/users/{userCognitoId}/{id}

    Sending ``items`` replaces the shipment's stock lines: the old weights
    go back to stock before the new ones are deducted.
    """
    status: Optional[ShipmentStatus] = None
    consignee: Optional[Annotated[str, required_text("Consignee must not be empty")]] = None
    vessel: Optional[Vessel] = None
    shipmark: Optional[Annotated[str, required_text("Shipmark must not be empty")]] = None
    packaging_instructions: Optional[Packaging] = None
    additional_instructions: OptionalText = None
    items: Optional[Annotated[List[ShipmentItem], AfterValidator(_at_least_one_item)]] = None


class ShipmentHistoryQuery(PageQuery):
    limit: PageLimit = 10
    shipment_id: Optional[Annotated[int, positive("shipmentId must be a positive integer")]] = None
