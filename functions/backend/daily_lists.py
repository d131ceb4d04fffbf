"""
Daily prep list and stock requisition (re)generation.

A run replaces every task under `dailyTodoLists/{date}` with tasks built from
the selected dishes' templates and the bar/floor checklist. Reads happen first;
all deletes and creates are then committed as a single batch, so a failure
leaves the previous lists untouched.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Optional, Sequence

from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.errors import ErrorCode, ServiceError
from backend.locks import DateLock, LockUnavailableError
from backend.store import DocumentStore, WriteBatch, is_document_path
from shared.api import GenerateListsResult
from shared.firebase_constants import (
    DAILY_LISTS_COLLECTION,
    DISH_TASKS_COLLECTION,
    DISHES_COLLECTION,
    FLOOR_CHECKLIST_COLLECTION,
    PREP_TASKS_COLLECTION,
    STOCK_REQUISITIONS_COLLECTION,
)
from shared.types import BAR_GROUP_NAME, UNKNOWN_USER_NAME, CallerIdentity

logger = logging.getLogger(__name__)

LISTS_GENERATED_MESSAGE = "Lists generated successfully."
GENERATION_FAILED_MESSAGE = "Failed to generate lists."


def daily_list_path(date_string: str) -> str:
    return f"{DAILY_LISTS_COLLECTION}/{date_string}"


def _invalid(message: str) -> ServiceError:
    return ServiceError(ErrorCode.INVALID_ARGUMENT, message)


def _dish_path(ref) -> str:
    """Accepts a dish document path (`dishes/abc`) or a bare dish id."""
    if not isinstance(ref, str) or not ref.strip("/"):
        raise _invalid(f"Invalid dish reference: {ref!r}")
    ref = ref.strip("/")
    if "/" not in ref:
        return f"{DISHES_COLLECTION}/{ref}"
    if not is_document_path(ref):
        raise _invalid(f"Invalid dish reference: {ref!r}")
    return ref


def _validate(
    caller: Optional[CallerIdentity],
    date_string,
    selected_dish_refs,
) -> List[str]:
    if caller is None:
        raise ServiceError(
            ErrorCode.UNAUTHENTICATED, "You must be logged in to generate lists."
        )
    if not date_string or not isinstance(date_string, str):
        raise _invalid("The function must be called with a 'dateString'.")
    if "/" in date_string:
        raise _invalid("'dateString' must not contain '/'.")
    if selected_dish_refs is None:
        return []
    if not isinstance(selected_dish_refs, (list, tuple)):
        raise _invalid("'selectedDishRefs' must be a list of dish references.")
    return [_dish_path(ref) for ref in selected_dish_refs]


def _clear_existing_tasks(store: DocumentStore, batch: WriteBatch, list_path: str) -> int:
    cleared = 0
    for collection in (PREP_TASKS_COLLECTION, STOCK_REQUISITIONS_COLLECTION):
        for task in store.query(f"{list_path}/{collection}"):
            batch.delete(task.path)
            cleared += 1
    return cleared


def _add_dish_tasks(
    store: DocumentStore,
    batch: WriteBatch,
    list_path: str,
    dish_path: str,
    counts: Counter,
) -> None:
    dish = store.get(dish_path)
    if not dish.exists:
        logger.info("Skipping missing dish %s", dish_path)
        return

    dish_name = dish.data.get("dishName") or dish.id
    for template in store.query(f"{dish_path}/{DISH_TASKS_COLLECTION}"):
        target = (
            STOCK_REQUISITIONS_COLLECTION
            if template.data.get("isStockRequisition")
            else PREP_TASKS_COLLECTION
        )
        batch.create(
            f"{list_path}/{target}",
            {
                **template.data,
                "dishName": dish_name,
                "isCompleted": False,
                "createdAt": SERVER_TIMESTAMP,
            },
        )
        counts[target] += 1


def _add_checklist_tasks(
    store: DocumentStore, batch: WriteBatch, list_path: str, counts: Counter
) -> None:
    for item in store.query(FLOOR_CHECKLIST_COLLECTION, order_by="order"):
        batch.create(
            f"{list_path}/{PREP_TASKS_COLLECTION}",
            {
                "taskName": item.data.get("name"),
                "isCompleted": False,
                "createdAt": SERVER_TIMESTAMP,
                "note": "",
                "dishName": BAR_GROUP_NAME,
                "category": BAR_GROUP_NAME,
            },
        )
        counts[PREP_TASKS_COLLECTION] += 1


def generate_lists(
    store: DocumentStore,
    lock: DateLock,
    caller: Optional[CallerIdentity],
    date_string: Optional[str],
    selected_dish_refs: Optional[Sequence[str]] = None,
) -> GenerateListsResult:
    """
    Replaces the prep tasks and stock requisitions of `date_string`.

    Args:
        store: The document store to read from and commit to.
        lock: Serializes concurrent generations of the same date.
        caller: The authenticated caller; recorded as `createdBy`.
        date_string: The list's date key, e.g. "2025-03-14".
        selected_dish_refs: Dish document paths or ids. Missing dishes are
            skipped; duplicates each contribute their tasks.

    Raises:
        ServiceError: UNAUTHENTICATED or INVALID_ARGUMENT before any read,
            INTERNAL if a read, the commit, or the lock fails. Nothing is
            written in any of these cases.
    """
    dish_paths = _validate(caller, date_string, selected_dish_refs)
    list_path = daily_list_path(date_string)

    try:
        with lock.hold(date_string):
            batch = WriteBatch()
            counts: Counter = Counter()

            logger.info("Clearing tasks for %s...", date_string)
            cleared = _clear_existing_tasks(store, batch, list_path)

            batch.set(
                list_path,
                {
                    "date": date_string,
                    "createdAt": SERVER_TIMESTAMP,
                    "createdBy": caller.display_name or UNKNOWN_USER_NAME,
                },
                merge=True,
            )

            logger.info("Adding tasks for %d selected dishes...", len(dish_paths))
            for dish_path in dish_paths:
                _add_dish_tasks(store, batch, list_path, dish_path, counts)

            logger.info("Adding tasks from %s...", FLOOR_CHECKLIST_COLLECTION)
            _add_checklist_tasks(store, batch, list_path, counts)

            store.commit(batch)
    except LockUnavailableError as e:
        logger.error("Could not lock %s for generation: %s", date_string, e)
        raise ServiceError(ErrorCode.INTERNAL, GENERATION_FAILED_MESSAGE) from e
    except Exception as e:
        logger.exception("Error generating lists for %s", date_string)
        raise ServiceError(ErrorCode.INTERNAL, GENERATION_FAILED_MESSAGE) from e

    logger.info(
        "Generated lists for %s: cleared %d, %d prep tasks, %d stock requisitions",
        date_string,
        cleared,
        counts[PREP_TASKS_COLLECTION],
        counts[STOCK_REQUISITIONS_COLLECTION],
    )
    return GenerateListsResult(success=True, message=LISTS_GENERATED_MESSAGE)
