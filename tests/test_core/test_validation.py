"""
Unit tests for the request validation gate and the shared field types
"""
from datetime import date

import pytest

from teatrade.core.validation import RequestSchema, ValidationFailed, check_request, format_error
from teatrade.domain.contact import ContactCreate
from teatrade.domain.lots import CatalogCreate, CatalogQuery, SellingPriceCreate
from teatrade.domain.shipment import ShipmentCreate
from teatrade.domain.stock import StockAdjust, StockQuery

CONTACT = RequestSchema(body=ContactCreate)


class TestFormatError:
    """Test format_error rendering"""

    def test_value_error_message_is_used_verbatim(self):
        error = {"type": "value_error", "loc": ("name",), "msg": "Value error, Name is required",
                 "ctx": {"error": ValueError("Name is required")}}
        assert format_error(error) == "Name is required"

    def test_missing_field(self):
        assert format_error({"type": "missing", "loc": ("body", "email"), "msg": "Field required"}) == \
            "body.email is required"

    def test_builtin_error_is_prefixed_with_field(self):
        error = {"type": "int_parsing", "loc": ("bags",), "msg": "Input should be a valid integer"}
        assert format_error(error) == "bags: Input should be a valid integer"


class TestCheckRequest:
    """Test check_request collects every failure"""

    def test_valid_contact(self):
        result = check_request(CONTACT, body={
            "name": "Wanjiru",
            "email": "wanjiru@example.com",
            "message": "Interested in BP1 lots",
            "privacyConsent": True,
        })

        assert result.body.name == "Wanjiru"
        assert result.body.subject is None

    def test_all_messages_are_reported(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_request(CONTACT, body={
                "name": "",
                "email": "not-an-email",
                "message": "x" * 1001,
                "privacyConsent": False,
            })

        message = exc_info.value.message
        assert "Name is required" in message
        assert "Invalid email address" in message
        assert "Message is too long" in message
        assert "Privacy policy consent is required" in message
        assert exc_info.value.to_response()["status"] == "fail"

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(ValidationFailed):
            check_request(CONTACT, body={
                "name": "A", "email": "a@example.com", "message": "m",
                "privacyConsent": True, "isAdmin": True,
            })

    def test_parts_not_described_are_ignored(self):
        result = check_request(RequestSchema(query=StockQuery), body={"anything": 1}, query={"page": "2"})

        assert result.body is None
        assert result.query.page == 2
        assert result.query.offset == 100

    @pytest.mark.parametrize("limit", ["0", "101", "100000"])
    def test_page_limit_is_capped(self, limit):
        with pytest.raises(ValidationFailed) as exc_info:
            check_request(RequestSchema(query=StockQuery), query={"limit": limit})

        assert exc_info.value.messages == ["Limit must be between 1 and 100"]

    def test_page_limit_upper_bound_is_accepted(self):
        result = check_request(RequestSchema(query=StockQuery), query={"limit": "100"})

        assert result.query.limit == 100

    def test_query_and_body_errors_are_combined(self):
        schema = RequestSchema(body=StockAdjust, query=StockQuery)

        with pytest.raises(ValidationFailed) as exc_info:
            check_request(schema, body={"stocksId": 1, "weight": 0, "reason": "x"}, query={"onlyFavorites": "yes"})

        assert exc_info.value.messages == [
            "Adjustment weight must not be zero",
            "onlyFavorites must be 'true' or 'false'",
        ]


class TestLotFields:
    """Test reprint and manufacture date parsing"""

    def base(self, **overrides):
        data = {
            "saleCode": "2024-12", "category": "M1", "broker": "AMBR", "lotNo": "C-1",
            "sellingMark": "GACHARAGE", "grade": "PF1", "invoiceNo": "I-1", "bags": 20,
            "netWeight": 1200, "totalWeight": 1230, "askingPrice": 3.4,
            "manufactureDate": "2024-11-02",
        }
        data.update(overrides)
        return data

    @pytest.mark.parametrize("raw, expected", [
        ("2024-11-02", date(2024, 11, 2)),
        ("2024/1/5", date(2024, 1, 5)),
        ("25/12/2024", date(2024, 12, 25)),
        ("12/25/2024", date(2024, 12, 25)),
    ])
    def test_manufacture_date_formats(self, raw, expected):
        assert CatalogCreate.model_validate(self.base(manufactureDate=raw)).manufacture_date == expected

    def test_invalid_manufacture_date(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_request(RequestSchema(body=CatalogCreate), body=self.base(manufactureDate="next week"))
        assert "Invalid date format" in exc_info.value.message

    @pytest.mark.parametrize("raw, expected", [("No", "No"), ("2", "2"), (3, "3"), ("", None)])
    def test_catalog_reprint(self, raw, expected):
        assert CatalogCreate.model_validate(self.base(reprint=raw)).reprint == expected

    def test_catalog_reprint_rejects_zero(self):
        with pytest.raises(ValidationFailed):
            check_request(RequestSchema(body=CatalogCreate), body=self.base(reprint="0"))

    def test_selling_price_reprint_no_means_zero(self):
        record = SellingPriceCreate.model_validate(self.base(reprint="No", purchasePrice=3.1))
        assert record.reprint == 0

    def test_invalid_broker_and_grade(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_request(RequestSchema(body=CatalogCreate), body=self.base(broker="XXXX", grade="ZZ"))
        assert exc_info.value.messages == ["Invalid broker value", "Invalid tea grade"]

    def test_query_filters_accept_any(self):
        query = CatalogQuery.model_validate({"broker": "any", "grade": "any", "category": "M2"})
        assert query.broker == "any"
        assert query.category == "M2"


class TestShipmentCreate:
    """Test ShipmentCreate defaults and rules"""

    def body(self, **overrides):
        data = {
            "items": [{"stocksId": 1, "totalWeight": 50}],
            "consignee": "Mombasa Packers",
            "vessel": "first",
            "shipmark": "SM-1",
            "packagingInstructions": "oneJuteOnePolly",
        }
        data.update(overrides)
        return data

    def test_defaults(self):
        shipment = ShipmentCreate.model_validate(self.body())

        assert shipment.status == "Pending"
        assert shipment.shipment_date.tzinfo is not None

    def test_items_required(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_request(RequestSchema(body=ShipmentCreate), body=self.body(items=[]))
        assert exc_info.value.messages == ["At least one stock item is required"]

    def test_invalid_vessel_and_packaging(self):
        with pytest.raises(ValidationFailed) as exc_info:
            check_request(RequestSchema(body=ShipmentCreate),
                          body=self.body(vessel="fifth", packagingInstructions="box"))
        assert exc_info.value.messages == ["Invalid vessel", "Invalid packaging instructions"]
