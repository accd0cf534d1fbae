import uuid

from .domain import TaskAnalytics
from .ports import AnalyticsStore


class AnalyticsService:
    """Read side of the analytics projection (eventually consistent, never cached)."""

    def __init__(self, store: AnalyticsStore) -> None:
        self.store = store

    def get_by_user_id(self, owner_id: uuid.UUID) -> TaskAnalytics:
        # Owners without any task activity read as all-zero counters, not NotFound
        return self.store.get_by_owner(owner_id)
