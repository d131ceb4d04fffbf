"""
In-app notifications for newly created stock requisitions.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.store import DocumentChange, DocumentStore, QueryFilter, StoreError, WriteBatch
from shared.firebase_constants import NOTIFICATIONS_COLLECTION, USERS_COLLECTION
from shared.json_utils import convert_keys
from shared.types import (
    DEFAULT_REQUISITION_ITEM_NAME,
    REQUISITION_NOTIFIED_ROLES,
    Notification,
)

logger = logging.getLogger(__name__)

NOTIFICATION_TITLE = "New Stock Requisition"


def _notification_for(list_date: str, requisition_id: str, requisition: dict) -> dict:
    task_name = (requisition or {}).get("taskName") or DEFAULT_REQUISITION_ITEM_NAME
    notification = Notification(
        title=NOTIFICATION_TITLE,
        body=f"{task_name} has been requested for {list_date}.",
        read=False,
        created_at=SERVER_TIMESTAMP,
        requisition_id=requisition_id,
        list_date=list_date,
    )
    data = convert_keys(asdict(notification), "snake_to_camel")
    # asdict deep-copies values; restore the timestamp sentinel.
    data["createdAt"] = SERVER_TIMESTAMP
    return data


def fan_out_requisition_notification(
    store: DocumentStore, list_date: str, requisition_id: str, requisition: dict
) -> int:
    """
    Writes one notification per kitchen staff member and admin in a single
    batch. Returns the number of notifications written.

    Redelivery of the same requisition notifies again; there is no dedup.
    """
    users = store.query(
        USERS_COLLECTION,
        filters=[QueryFilter("role", "in", [str(role) for role in REQUISITION_NOTIFIED_ROLES])],
    )
    if not users:
        logger.info("No users to notify about requisition %s", requisition_id)
        return 0

    notification = _notification_for(list_date, requisition_id, requisition)
    batch = WriteBatch()
    for user in users:
        batch.create(f"{user.path}/{NOTIFICATIONS_COLLECTION}", notification)

    try:
        store.commit(batch)
    except StoreError:
        logger.error(
            "Failed to notify %d users about requisition %s", len(users), requisition_id
        )
        raise
    logger.info(
        "Notified %d users about requisition %s", len(users), requisition_id
    )
    return len(users)


def handle_stock_requisition_created(store: DocumentStore, change: DocumentChange) -> None:
    fan_out_requisition_notification(
        store,
        list_date=change.params["date"],
        requisition_id=change.params["requisitionId"],
        requisition=change.after or {},
    )
