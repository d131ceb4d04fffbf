"""
Caller identity for the HTTP API, from a Firebase ID token bearer header.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.dependencies import get_identity_provider
from backend.errors import ErrorCode, ServiceError
from backend.identity import IdentityError, IdentityProvider, caller_from_claims
from shared.types import CallerIdentity

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Optional[CallerIdentity]:
    """
    Returns None for anonymous requests so each operation decides whether
    authentication is required. A token that fails verification is rejected.
    """
    if credentials is None:
        return None
    try:
        decoded_token = identity.verify_id_token(credentials.credentials)
    except IdentityError as e:
        logger.warning("[Auth] Token verification failed: %s", e)
        raise ServiceError(
            ErrorCode.UNAUTHENTICATED, "Invalid authentication credentials"
        ) from e
    return caller_from_claims(decoded_token)
