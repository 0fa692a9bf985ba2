"""Order domain exceptions.

Raised by the model and the Service Layer when business rules are
violated.  The API layer (Views) catches these and translates them into
HTTP responses; the auto-cancel sweep logs them per order.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class OrderValidationError(Exception):
    """Order input is malformed (e.g. no items, inconsistent money fields)."""


class IllegalTransition(Exception):
    """A status transition was requested from a state that does not allow it."""


class AccessDenied(Exception):
    """The visibility policy refused the actor.

    Deliberately carries no detail about which check failed.
    """


class TransientStorageError(Exception):
    """The order row could not be read or written; safe to retry later."""


class AccessExpired(AccessDenied):
    """The order's public link is no longer valid (delivered or cancelled)."""

    def __init__(self, order_number: str) -> None:
        super().__init__(f"Order {order_number} is no longer available.")
        self.order_number = order_number
