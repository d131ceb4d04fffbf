"""
Reorder suggestions created when an inventory item drops to its minimum.
"""

from __future__ import annotations

import logging
import numbers
from dataclasses import asdict
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from dacite import Config, from_dict
from google.cloud.firestore_v1 import SERVER_TIMESTAMP

from backend.config import get_settings
from backend.store import DocumentChange, DocumentStore, QueryFilter, WriteBatch
from shared.firebase_constants import (
    ORDERING_SUGGESTIONS_COLLECTION,
    SUGGESTIONS_COLLECTION,
)
from shared.json_utils import convert_keys
from shared.types import InventoryItem, OrderSuggestion, SuggestionStatus

logger = logging.getLogger(__name__)


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def _inventory_item(data: Optional[dict]) -> InventoryItem:
    return from_dict(
        data_class=InventoryItem,
        data=convert_keys(data or {}, "camel_to_snake"),
        config=Config(check_types=False),
    )


def today_key(timezone_name: Optional[str] = None) -> str:
    """Today's date as YYYY-MM-DD in the business timezone."""
    tz = ZoneInfo(timezone_name or get_settings().business_timezone)
    return datetime.now(tz).date().isoformat()


def quantity_to_order(before: InventoryItem, after: InventoryItem) -> Optional[float]:
    """
    Returns how much to reorder, or None when no suggestion is warranted.

    A suggestion is warranted only when the quantity on hand strictly dropped,
    now sits at or below the minimum stock level, and is below par.
    """
    fields = (
        before.quantity_on_hand,
        after.quantity_on_hand,
        after.min_stock_level,
        after.par_level,
    )
    if not all(_is_number(value) for value in fields):
        return None
    if after.quantity_on_hand >= before.quantity_on_hand:
        return None
    if after.quantity_on_hand > after.min_stock_level:
        return None
    amount = after.par_level - after.quantity_on_hand
    return amount if amount > 0 else None


def create_order_suggestion(
    store: DocumentStore,
    item_id: str,
    before: Optional[dict],
    after: Optional[dict],
    day: Optional[str] = None,
) -> Optional[str]:
    """
    Creates today's reorder suggestion for `item_id` if the update warrants
    one and none exists yet. Returns the new suggestion's path, or None.
    """
    previous = _inventory_item(before)
    current = _inventory_item(after)
    amount = quantity_to_order(previous, current)
    if amount is None:
        return None

    day = day or today_key()
    day_path = f"{ORDERING_SUGGESTIONS_COLLECTION}/{day}"
    suggestions_path = f"{day_path}/{SUGGESTIONS_COLLECTION}"
    existing = store.query(
        suggestions_path, filters=[QueryFilter("inventoryItemId", "==", item_id)]
    )
    if existing:
        logger.info("Suggestion for %s already exists for %s", item_id, day)
        return None

    suggestion = OrderSuggestion(
        inventory_item_id=item_id,
        item_name=current.item_name,
        supplier=current.supplier,
        unit=current.unit,
        current_quantity=current.quantity_on_hand,
        quantity_to_order=amount,
        status=SuggestionStatus.PENDING,
        created_at=SERVER_TIMESTAMP,
    )
    batch = WriteBatch()
    batch.set(day_path, {"date": day, "updatedAt": SERVER_TIMESTAMP}, merge=True)
    # asdict deep-copies values; restore references and the timestamp sentinel.
    data = convert_keys(asdict(suggestion), "snake_to_camel")
    data.update(
        {"supplier": current.supplier, "unit": current.unit, "createdAt": SERVER_TIMESTAMP}
    )
    path = batch.create(suggestions_path, data)
    store.commit(batch)
    logger.info(
        "Suggested ordering %s of %s (%s)", amount, current.item_name, item_id
    )
    return path


def handle_inventory_item_updated(store: DocumentStore, change: DocumentChange) -> None:
    create_order_suggestion(
        store,
        item_id=change.params["itemId"],
        before=change.before,
        after=change.after,
    )
