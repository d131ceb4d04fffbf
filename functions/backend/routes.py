"""
HTTP routes mirroring the Firebase callables.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends

from backend import daily_lists, order_emails, roles
from backend.auth import get_caller
from backend.dependencies import (
    get_date_lock,
    get_email_transport,
    get_identity_provider,
    get_triggering_document_store,
)
from backend.identity import IdentityProvider
from backend.locks import DateLock
from backend.mail import EmailTransport
from backend.schemas import (
    ErrorResponse,
    GenerateListsPayload,
    GenerateListsResponse,
    SendOrderEmailPayload,
    SendOrderEmailResponse,
    SetUserRolePayload,
    SetUserRoleResponse,
)
from backend.store import DocumentStore
from shared.types import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    status: {"model": ErrorResponse} for status in (400, 401, 403, 500)
}


@router.post(
    "/generate_lists",
    response_model=GenerateListsResponse,
    responses=_ERROR_RESPONSES,
)
def generate_lists(
    payload: GenerateListsPayload,
    caller: Optional[CallerIdentity] = Depends(get_caller),
    store: DocumentStore = Depends(get_triggering_document_store),
    lock: DateLock = Depends(get_date_lock),
) -> GenerateListsResponse:
    result = daily_lists.generate_lists(
        store, lock, caller, payload.date_string, payload.selected_dish_refs
    )
    return GenerateListsResponse(**asdict(result))


@router.post(
    "/send_order_email",
    response_model=SendOrderEmailResponse,
    responses=_ERROR_RESPONSES,
)
def send_order_email(
    payload: SendOrderEmailPayload,
    caller: Optional[CallerIdentity] = Depends(get_caller),
    transport: EmailTransport = Depends(get_email_transport),
) -> SendOrderEmailResponse:
    result = order_emails.send_order_email(
        transport, caller, payload.recipient_email, payload.subject, payload.body
    )
    return SendOrderEmailResponse(**asdict(result))


@router.post(
    "/set_user_role",
    response_model=SetUserRoleResponse,
    responses=_ERROR_RESPONSES,
)
def set_user_role(
    payload: SetUserRolePayload,
    caller: Optional[CallerIdentity] = Depends(get_caller),
    store: DocumentStore = Depends(get_triggering_document_store),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> SetUserRoleResponse:
    result = roles.set_user_role(
        store, identity, caller, payload.uid, payload.new_role
    )
    return SetUserRoleResponse(**asdict(result))
