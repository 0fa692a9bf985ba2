"""Access token issuer.

Public order links are keyed by a ULID instead of the sequential primary
key: 26 Crockford base32 characters, a millisecond timestamp prefix
followed by 80 random bits, so tokens sort by creation time but cannot be
enumerated.
"""

from __future__ import annotations

import re

from ulid import ULID

from modules.orders.constants import ACCESS_TOKEN_LENGTH

_TOKEN_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{%d}$" % ACCESS_TOKEN_LENGTH)


def issue_access_token() -> str:
    return str(ULID())


def is_well_formed(token: str) -> bool:
    """Cheap shape check before touching the database."""
    return bool(token) and bool(_TOKEN_RE.match(token.upper()))
