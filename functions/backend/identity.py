"""
Identity provider abstraction: ID token verification and custom claims.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from firebase_admin import auth, exceptions as firebase_exceptions

from shared.types import CallerIdentity

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Token verification or a claims update failed."""


class IdentityProvider(Protocol):
    def verify_id_token(self, token: str) -> dict:
        ...

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        ...


def caller_from_claims(decoded_token: Optional[dict]) -> Optional[CallerIdentity]:
    """Builds the caller identity from a decoded ID token (or None)."""
    if not decoded_token:
        return None
    uid = decoded_token.get("uid") or decoded_token.get("sub")
    if not uid:
        return None
    return CallerIdentity(
        uid=uid,
        display_name=decoded_token.get("name"),
        role=decoded_token.get("role"),
    )


class FirebaseIdentityProvider:
    """Firebase Auth via the Admin SDK."""

    def verify_id_token(self, token: str) -> dict:
        try:
            return auth.verify_id_token(token)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            raise IdentityError(f"Token verification failed: {e}") from e

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        try:
            auth.set_custom_user_claims(uid, claims)
        except (ValueError, firebase_exceptions.FirebaseError) as e:
            raise IdentityError(f"Setting custom claims failed: {e}") from e


@dataclass
class InMemoryIdentityProvider:
    """Test double holding users, their claims and issued tokens."""

    claims: Dict[str, dict] = field(default_factory=dict)
    tokens: Dict[str, dict] = field(default_factory=dict)

    def add_user(self, uid: str, **claims) -> None:
        self.claims[uid] = dict(claims)

    def issue_token(self, uid: str, name: Optional[str] = None) -> str:
        if uid not in self.claims:
            raise IdentityError(f"No user record for uid {uid}")
        token = uuid.uuid4().hex
        self.tokens[token] = {"uid": uid, "name": name}
        return token

    def verify_id_token(self, token: str) -> dict:
        issued = self.tokens.get(token)
        if issued is None:
            raise IdentityError("Token verification failed: unknown token")
        # Claims are read live rather than frozen at issue time.
        decoded = dict(self.claims.get(issued["uid"], {}))
        decoded.update({key: value for key, value in issued.items() if value})
        return decoded

    def set_custom_user_claims(self, uid: str, claims: dict) -> None:
        if uid not in self.claims:
            raise IdentityError(f"Setting custom claims failed: no user {uid}")
        self.claims[uid] = dict(claims)
