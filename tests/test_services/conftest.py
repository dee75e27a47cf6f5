"""
Service tests run against a bare in-memory database, without the app
"""
from unittest.mock import Mock

import pytest

from teatrade.core.database import Database


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def no_sleep():
    return Mock()
