"""Order repository interface.

Extends ``IRepository[Order]`` with the queries the order lifecycle
needs: atomic creation with items, locked reads for staff transitions,
token look-up for public links and the auto-cancel candidate scan.

The Service Layer and the sweep depend exclusively on this contract.
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.dtos import CreateOrderDTO
    from modules.orders.models import Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The aggregate includes its OrderItem snapshots.  Creation must be
    atomic; status changes go through the model's transition methods.
    """

    @abstractmethod
    def create(self, dto: CreateOrderDTO) -> Order:
        """Persist a new pending order together with its items."""

    @abstractmethod
    def get_by_id(self, id: int) -> Optional[Order]:
        """Retrieve an order with prefetched items."""

    @abstractmethod
    def get_for_update(self, id: int) -> Optional[Order]:
        """Retrieve an order holding a row-level lock."""

    @abstractmethod
    def get_by_access_token(self, token: str) -> Optional[Order]:
        """Retrieve an order by its public access token."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List orders with optional filters."""

    @abstractmethod
    def list_expired_pending(self, cutoff: datetime) -> List[Order]:
        """Pending orders created strictly before *cutoff*, oldest first."""

    @abstractmethod
    def pending_summary(self, limit: int) -> tuple[List[Order], int]:
        """Newest *limit* pending orders and the total pending count."""
