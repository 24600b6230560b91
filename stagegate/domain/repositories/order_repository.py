"""Repository interface for the Order aggregate."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..entities.order import Order


class OrderRepository(ABC):
    """Abstract repository for Order persistence."""

    @abstractmethod
    def get(self, order_id: int) -> Optional[Order]:
        """Retrieve order by identifier.

        Args:
            order_id: Order primary key

        Returns:
            Order if found, None otherwise
        """
        pass

    @abstractmethod
    def add(self, order: Order) -> Order:
        """Persist a new order and assign its identifier.

        Args:
            order: Order to persist

        Returns:
            The stored order with ``id`` populated
        """
        pass

    @abstractmethod
    def update(self, order: Order) -> None:
        """Persist changes to an existing order."""
        pass

    @abstractmethod
    def find_created_between(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[Order]:
        """List orders whose ``created_at`` falls inside the range.

        Args:
            date_from: Inclusive lower bound, open when None
            date_to: Inclusive upper bound, open when None

        Returns:
            Matching orders in insertion order
        """
        pass
