"""
Service for catalog, selling price and out-lot writes
"""
import logging
import time
from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from teatrade.core.errors import NotFoundError
from teatrade.core.transactions import retry_transaction
from teatrade.domain.common import serialize_row
from teatrade.repositories.lot_repository import LotRepository, LotResource

logger = logging.getLogger(__name__)


class LotService:
    """Writes for one lot resource, each in its own retried transaction"""

    def __init__(self, resource: LotResource, session_factory: Callable[[], Session],
                 max_retries: int = 3, sleep: Callable[[float], None] = time.sleep):
        self.resource = resource
        self.session_factory = session_factory
        self.max_retries = max_retries
        self.sleep = sleep

    def _run(self, operation):
        return retry_transaction(
            operation,
            max_retries=self.max_retries,
            session_factory=self.session_factory,
            sleep=self.sleep,
        )

    def create(self, data: Dict[str, Any], admin_cognito_id: str) -> Dict[str, Any]:
        values = {**data, "admin_cognito_id": admin_cognito_id}
        created = self._run(lambda tx: serialize_row(LotRepository(tx, self.resource).create(values)))
        logger.info(f"Created {self.resource.label} {created['lotNo']}")
        return created

    def delete(self, ids: List[int]) -> int:
        deleted = self._run(lambda tx: LotRepository(tx, self.resource).delete_by_ids(ids))
        if not deleted:
            raise NotFoundError(f"No {self.resource.label}s found for the provided IDs")
        logger.info(f"Deleted {deleted} {self.resource.label}s")
        return deleted
