"""Order visibility policy.

A single pure function decides who may view, update or delete an order:

- staff: everything;
- the authenticated owner: view only;
- anyone else: view only, and only when they present the order's access
  token, passed the phone gate, and the order is still in flight.

Views and services call ``evaluate`` rather than re-implementing checks.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from modules.orders.constants import TERMINAL_STATES

if TYPE_CHECKING:
    from modules.orders.models import Order


@dataclass(frozen=True)
class Actor:
    """Who is asking.  ``id`` is ``None`` for anonymous visitors."""

    id: Optional[int] = None
    is_staff: bool = False

    @property
    def is_anonymous(self) -> bool:
        return self.id is None

    @classmethod
    def from_user(cls, user: Any) -> Actor:
        if user is None or not getattr(user, "is_authenticated", False):
            return ANONYMOUS
        return cls(id=user.pk, is_staff=bool(getattr(user, "is_staff", False)))


ANONYMOUS = Actor()


@dataclass(frozen=True)
class OrderPermissions:
    view: bool = False
    update: bool = False
    delete: bool = False


NO_ACCESS = OrderPermissions()
VIEW_ONLY = OrderPermissions(view=True)
FULL_ACCESS = OrderPermissions(view=True, update=True, delete=True)


def is_access_expired(order: Order) -> bool:
    """Token links die once the order is delivered or cancelled."""
    return order.status in TERMINAL_STATES


def evaluate(
    actor: Actor,
    order: Order,
    presented_token: Optional[str] = None,
    phone_verified: bool = False,
) -> OrderPermissions:
    if actor.is_staff:
        return FULL_ACCESS
    if not actor.is_anonymous and order.user_id is not None and order.user_id == actor.id:
        return VIEW_ONLY
    if (
        presented_token
        and hmac.compare_digest(presented_token, order.access_token)
        and phone_verified
        and not is_access_expired(order)
    ):
        return VIEW_ONLY
    return NO_ACCESS
