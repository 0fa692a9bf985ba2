"""Rate limits for the public phone verification endpoint.

Keyed by user id when logged in, otherwise by client IP (DRF's
``get_ident``), so a single requester cannot brute-force a phone number.
"""

from rest_framework.throttling import UserRateThrottle


class OrderVerifyBurstThrottle(UserRateThrottle):
    scope = "order_verify_burst"


class OrderVerifySustainedThrottle(UserRateThrottle):
    scope = "order_verify_sustained"
