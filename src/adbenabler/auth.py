"""
=============================================================================
SHARED-SECRET AUTHENTICATION
=============================================================================

Protected operations carry the shared secret in the JSON body:

    {"secretKey": "s3cret", "action": "openAccessibilitySettings"}

    ┌──────────────────────────┬────────────────┬──────────────────────────┐
    │ Stored secret            │ Claimed secret │ Result                   │
    ├──────────────────────────┼────────────────┼──────────────────────────┤
    │ None / "" / "   "        │ anything       │ NOT_CONFIGURED  → 403    │
    │ "s3cret"                 │ "S3cret"       │ UNAUTHORIZED    → 401    │
    │ "s3cret"                 │ "s3cret"       │ AUTHORIZED               │
    └──────────────────────────┴────────────────┴──────────────────────────┘

The comparison is exact: case-sensitive, no trimming, no normalization.

The secret is set through the unauthenticated /set-secret route. That is
the first-run pairing step over a trusted network and is kept as is.

=============================================================================
"""

import hmac
from enum import Enum

from .http.request import Payload
from .store import SECRET_KEY_PREF, SecretStore


class AuthResult(Enum):
    AUTHORIZED = "authorized"
    NOT_CONFIGURED = "not_configured"
    UNAUTHORIZED = "unauthorized"


class Authenticator:
    """
    Validates a payload's secretKey against the SecretStore.

    The stored secret is read on every call, so a /set-secret from one
    connection takes effect for the next request on any other.
    """

    def __init__(self, store: SecretStore, key: str = SECRET_KEY_PREF):
        self.store = store
        self.key = key

    def authorize(self, payload: Payload) -> AuthResult:
        stored = self.store.get(self.key)
        if stored is None or not stored.strip():
            return AuthResult.NOT_CONFIGURED

        claimed = payload.get_str("secretKey")
        if not hmac.compare_digest(claimed.encode("utf-8"), stored.encode("utf-8")):
            return AuthResult.UNAUTHORIZED

        return AuthResult.AUTHORIZED
