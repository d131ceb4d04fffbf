"""
Role assignment: the `role` custom claim plus its mirror on the user profile.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.errors import ErrorCode, ServiceError
from backend.identity import IdentityError, IdentityProvider
from backend.store import DocumentStore, StoreError, WriteBatch
from shared.api import SetUserRoleResult
from shared.firebase_constants import USERS_COLLECTION
from shared.types import CallerIdentity

logger = logging.getLogger(__name__)


def set_user_role(
    store: DocumentStore,
    identity: IdentityProvider,
    caller: Optional[CallerIdentity],
    uid: Optional[str],
    new_role: Optional[str],
) -> SetUserRoleResult:
    """
    Gives `uid` the role `new_role`. Only admins may call this.

    The claim is set first and the profile mirror second. The two writes are
    not atomic: if the mirror write fails, the claim stays changed and the
    failure is logged as an inconsistency before INTERNAL is raised.
    """
    if caller is None:
        raise ServiceError(
            ErrorCode.UNAUTHENTICATED,
            "The function must be called while authenticated.",
        )
    if not caller.is_admin:
        raise ServiceError(
            ErrorCode.PERMISSION_DENIED, "Only admins can set user roles."
        )
    if not uid or not new_role:
        raise ServiceError(
            ErrorCode.INVALID_ARGUMENT,
            'The function must be called with "uid" and "newRole" arguments.',
        )
    # The uid names the profile document, so it must be a single path segment.
    if not isinstance(uid, str) or "/" in uid or not isinstance(new_role, str):
        raise ServiceError(
            ErrorCode.INVALID_ARGUMENT,
            '"uid" and "newRole" must be strings and "uid" must not contain "/".',
        )

    try:
        identity.set_custom_user_claims(uid, {"role": new_role})
    except IdentityError as e:
        logger.error("Error setting custom claims for %s: %s", uid, e)
        raise ServiceError(ErrorCode.INTERNAL, "Unable to set custom role.") from e

    batch = WriteBatch()
    batch.set(f"{USERS_COLLECTION}/{uid}", {"role": new_role}, merge=True)
    try:
        store.commit(batch)
    except StoreError as e:
        # TODO: retry the mirror write, or roll the claim back, once a
        # compensation policy is agreed.
        logger.error(
            "Role claim for %s is now %r but the profile mirror write failed; "
            "claim and profile disagree: %s",
            uid,
            new_role,
            e,
        )
        raise ServiceError(ErrorCode.INTERNAL, "Unable to set custom role.") from e

    message = f"Success! User {uid} has been given the role of {new_role}."
    logger.info(message)
    return SetUserRoleResult(result=message)
