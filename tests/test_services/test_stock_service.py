"""
Unit tests for StockService
"""
import pytest
from sqlalchemy import select

from teatrade.core.errors import DomainError, NotFoundError
from teatrade.domain.stock import StockAdjust, StockCreate
from teatrade.models import Stock, StockHistory
from teatrade.services.stock_service import StockService, bags_for_weight

ADMIN_ID = "admin-sub-0001"
USER_ID = "user-sub-0001"


@pytest.fixture
def service(database, no_sleep):
    return StockService(database.session_factory, sleep=no_sleep)


def adjust(stocks_id, weight, reason="Recount"):
    return StockAdjust(stocks_id=stocks_id, weight=weight, reason=reason)


class TestBagsForWeight:
    """Test the bag count derived from a weight"""

    def test_rounds_up(self):
        stock = Stock(bags=10, weight=500.0)
        assert stock.weight_per_bag == 50.0
        assert bags_for_weight(stock, 120) == 3

    def test_uses_rounded_average(self):
        stock = Stock(bags=3, weight=100.0)
        assert stock.weight_per_bag == 33.33
        assert bags_for_weight(stock, -66.66) == 2

    def test_stock_without_bags(self):
        assert bags_for_weight(Stock(bags=0, weight=0.0), 10) == 0


class TestCreateStock:
    """Test StockService.create_stock"""

    def test_creates_stock_and_history(self, service, db_session, sample_stock_data):
        created = service.create_stock(StockCreate.model_validate(sample_stock_data), ADMIN_ID)

        assert created["lotNo"] == "LOT-1001"
        assert created["adminCognitoId"] == ADMIN_ID
        assert created["weightPerBag"] == 50.0

        history = db_session.scalars(select(StockHistory)).all()
        assert [(h.stocks_id, h.action) for h in history] == [(created["id"], "CREATED")]


class TestAdjustStock:
    """Test StockService.adjust_stock"""

    def test_reduce(self, service, db_session, make_stock):
        stock_id = make_stock(bags=10, weight=500.0)

        result = service.adjust_stock(adjust(stock_id, -120), ADMIN_ID)

        assert result["weight"] == 380.0
        assert result["bags"] == 7
        entry = db_session.scalars(select(StockHistory)).one()
        assert entry.action == "REDUCED"
        assert entry.details["reason"] == "Recount"
        assert entry.details["weight"] == 380.0

    def test_restore(self, service, db_session, make_stock):
        stock_id = make_stock(bags=10, weight=500.0)

        result = service.adjust_stock(adjust(stock_id, 50), USER_ID)

        assert result["weight"] == 550.0
        assert result["bags"] == 11
        assert db_session.scalars(select(StockHistory)).one().action == "RESTORED"

    def test_negative_result_is_rejected(self, service, db_session, make_stock):
        stock_id = make_stock(bags=10, weight=500.0)

        with pytest.raises(DomainError) as exc_info:
            service.adjust_stock(adjust(stock_id, -600), ADMIN_ID)

        assert "negative weight" in exc_info.value.message
        # Nothing was written
        stock = db_session.get(Stock, stock_id)
        db_session.refresh(stock)
        assert stock.weight == 500.0
        assert db_session.scalars(select(StockHistory)).all() == []

    def test_unknown_stock(self, service):
        with pytest.raises(NotFoundError):
            service.adjust_stock(adjust(999, -1), ADMIN_ID)


class TestFavoritesAndDelete:
    """Test favorite toggling and bulk delete"""

    def test_toggle_favorite_twice(self, service, make_stock):
        stock_id = make_stock()

        first = service.toggle_favorite(USER_ID, stock_id)
        second = service.toggle_favorite(USER_ID, stock_id)

        assert first["favorited"] is True
        assert first["stocksId"] == stock_id
        assert second["favorited"] is False

    def test_toggle_unknown_stock(self, service):
        with pytest.raises(NotFoundError):
            service.toggle_favorite(USER_ID, 42)

    def test_delete_stocks(self, service, db_session, make_stock):
        ids = [make_stock(), make_stock()]

        assert service.delete_stocks(ids + [999]) == 2
        assert db_session.scalars(select(Stock)).all() == []

    def test_delete_nothing_matched(self, service):
        with pytest.raises(NotFoundError):
            service.delete_stocks([999])
