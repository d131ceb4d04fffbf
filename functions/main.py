# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Cloud functions for the kitchen backend - daily lists, notifications,
# ordering suggestions, roles and order emails.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from dataclasses import asdict
from typing import Optional

# Third-party library imports
from dacite import from_dict, Config
from firebase_admin import initialize_app
from firebase_functions import https_fn, logger, options
from firebase_functions.firestore_fn import (
    on_document_created,
    on_document_updated,
    Event,
    Change,
    DocumentSnapshot,
)

# Local application imports
from backend import daily_lists, order_emails, roles
from backend.dependencies import (
    get_date_lock,
    get_document_store,
    get_email_transport,
    get_identity_provider,
    get_trigger_dispatcher,
)
from backend.errors import ErrorCode, ServiceError
from backend.store import DocumentChange, EventKind
from shared.api import GenerateListsRequest, SendOrderEmailRequest, SetUserRoleRequest
from shared.firebase_constants import INVENTORY_ITEM_DOCUMENT, STOCK_REQUISITION_DOCUMENT
from shared.json_utils import convert_keys
from shared.types import CallerIdentity

FUNCTION_REGION = "europe-west1"

initialize_app()

_FUNCTIONS_ERROR_CODES = {
    ErrorCode.UNAUTHENTICATED: https_fn.FunctionsErrorCode.UNAUTHENTICATED,
    ErrorCode.PERMISSION_DENIED: https_fn.FunctionsErrorCode.PERMISSION_DENIED,
    ErrorCode.INVALID_ARGUMENT: https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
    ErrorCode.INTERNAL: https_fn.FunctionsErrorCode.INTERNAL,
}


def _https_error(error: ServiceError) -> https_fn.HttpsError:
    return https_fn.HttpsError(_FUNCTIONS_ERROR_CODES[error.code], error.message)


def _caller_identity(auth) -> Optional[CallerIdentity]:
    """The caller as verified by the callable protocol, or None if anonymous."""
    if auth is None or not auth.uid:
        return None
    token = auth.token or {}
    return CallerIdentity(
        uid=auth.uid,
        display_name=token.get("name"),
        role=token.get("role"),
    )


def _parse_request(data_class, data):
    # Non-object payloads carry no fields; the operation reports what is missing.
    if not isinstance(data, dict):
        data = {}
    return from_dict(
        data_class=data_class,
        data=convert_keys(data, "camel_to_snake"),
        config=Config(check_types=False),
    )


def _generate_lists(data, caller: Optional[CallerIdentity]) -> dict:
    request = _parse_request(GenerateListsRequest, data)
    try:
        result = daily_lists.generate_lists(
            get_document_store(),
            get_date_lock(),
            caller,
            request.date_string,
            request.selected_dish_refs,
        )
    except ServiceError as e:
        raise _https_error(e) from e
    return convert_keys(asdict(result), "snake_to_camel")


def _send_order_email(data, caller: Optional[CallerIdentity]) -> dict:
    request = _parse_request(SendOrderEmailRequest, data)
    try:
        result = order_emails.send_order_email(
            get_email_transport(),
            caller,
            request.recipient_email,
            request.subject,
            request.body,
        )
    except ServiceError as e:
        raise _https_error(e) from e
    return convert_keys(asdict(result), "snake_to_camel")


def _set_user_role(data, caller: Optional[CallerIdentity]) -> dict:
    request = _parse_request(SetUserRoleRequest, data)
    try:
        result = roles.set_user_role(
            get_document_store(),
            get_identity_provider(),
            caller,
            request.uid,
            request.new_role,
        )
    except ServiceError as e:
        raise _https_error(e) from e
    return convert_keys(asdict(result), "snake_to_camel")


@https_fn.on_call(region=FUNCTION_REGION, memory=options.MemoryOption.MB_512)
def generate_lists(req: https_fn.CallableRequest) -> dict:
    """
    Replaces the prep tasks and stock requisitions of a day's to-do list.

    Args:
        req (https_fn.CallableRequest): The request, containing `dateString`
            and `selectedDishRefs`.

    Returns:
        A dictionary representation of the GenerateListsResult object.
    """
    return _generate_lists(req.data, _caller_identity(req.auth))


@https_fn.on_call()
def send_order_email(req: https_fn.CallableRequest) -> dict:
    """
    Emails an order to a supplier.

    Args:
        req (https_fn.CallableRequest): The request, containing
            `recipientEmail`, `subject` and the HTML `body`.

    Returns:
        A dictionary representation of the SendOrderEmailResult object.
    """
    return _send_order_email(req.data, _caller_identity(req.auth))


@https_fn.on_call()
def set_user_role(req: https_fn.CallableRequest) -> dict:
    """
    Sets a user's role claim and mirrors it on their profile. Admins only.

    Args:
        req (https_fn.CallableRequest): The request, containing `uid` and
            `newRole`.

    Returns:
        A dictionary representation of the SetUserRoleResult object.
    """
    return _set_user_role(req.data, _caller_identity(req.auth))


def _snapshot_data(snapshot: Optional[DocumentSnapshot]) -> Optional[dict]:
    if snapshot is None or not snapshot.exists:
        return None
    return snapshot.to_dict()


def _document_change(
    kind: EventKind,
    document_pattern: str,
    params: dict,
    before: Optional[DocumentSnapshot],
    after: Optional[DocumentSnapshot],
) -> DocumentChange:
    return DocumentChange(
        path=document_pattern.format(**params),
        kind=kind,
        before=_snapshot_data(before),
        after=_snapshot_data(after),
        params=dict(params),
    )


def _dispatch(change: DocumentChange) -> int:
    handled = get_trigger_dispatcher().dispatch(change)
    logger.info(f"{change.kind.value} {change.path}: {handled} handler(s) ran")
    return handled


def _requisition_created(params: dict, snapshot: Optional[DocumentSnapshot]) -> int:
    if snapshot is None:
        logger.warn(f"No data for created requisition {params}")
        return 0
    return _dispatch(
        _document_change(
            EventKind.CREATED, STOCK_REQUISITION_DOCUMENT, params, None, snapshot
        )
    )


def _inventory_item_updated(
    params: dict,
    before: Optional[DocumentSnapshot],
    after: Optional[DocumentSnapshot],
) -> int:
    return _dispatch(
        _document_change(
            EventKind.UPDATED, INVENTORY_ITEM_DOCUMENT, params, before, after
        )
    )


@on_document_created(document=STOCK_REQUISITION_DOCUMENT)
def on_stock_requisition_created(event: Event[Optional[DocumentSnapshot]]) -> None:
    """
    Notifies kitchen staff and admins about a new stock requisition.
    Triggered by creation of any document under a day's stockRequisitions.
    """
    _requisition_created(event.params, event.data)


@on_document_updated(document=INVENTORY_ITEM_DOCUMENT)
def on_inventory_item_updated(
    event: Event[Change[Optional[DocumentSnapshot]]],
) -> None:
    """
    Suggests a reorder when an item's stock drops to its minimum level.
    Triggered by any update to an inventory item.
    """
    if event.data is None:
        return
    _inventory_item_updated(event.params, event.data.before, event.data.after)
