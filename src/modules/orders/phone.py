"""Phone verification gate for anonymous, token-based order access.

Customers type their number in whatever shape they like (``0812-3456-7890``,
``+62 812 3456 7890``, ``62812…``).  Both the stored and the submitted
number are reduced to the same canonical digit string before an exact
comparison.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Optional

from django.conf import settings

if TYPE_CHECKING:
    from modules.orders.models import Order

_NON_DIGITS = re.compile(r"\D")

TRUNK_PREFIX = "0"


def country_code() -> str:
    return str(getattr(settings, "PHONE_COUNTRY_CODE", "62"))


def normalize(phone: Optional[str], code: Optional[str] = None) -> str:
    """Strip non-digits and rewrite a leading trunk ``0`` to the country code.

    Idempotent: ``normalize(normalize(x)) == normalize(x)``.
    """
    digits = _NON_DIGITS.sub("", phone or "")
    if digits.startswith(TRUNK_PREFIX):
        digits = (code or country_code()) + digits[len(TRUNK_PREFIX):]
    return digits


def verify(order: "Order", submitted_phone: str) -> bool:
    """Return ``True`` iff *submitted_phone* matches the order's phone.

    Does not look at the order status: callers check access expiry first.
    """
    expected = normalize(order.customer_phone)
    return bool(expected) and expected == normalize(submitted_phone)


def input_pattern(code: Optional[str] = None) -> re.Pattern[str]:
    """Accepted shape of a submitted number once spaces and dashes are removed."""
    code = re.escape(code or country_code())
    return re.compile(rf"^(\+{code}|{code}|0)[0-9]{{9,13}}$")
