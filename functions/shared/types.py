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

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional


class Role(StrEnum):
    """Role values carried in the `role` custom claim and `users/{uid}.role`."""

    ADMIN = "Admin"
    KITCHEN_STAFF = "Kitchen Staff"


# Roles that are told about every new stock requisition.
REQUISITION_NOTIFIED_ROLES = (Role.KITCHEN_STAFF, Role.ADMIN)

BAR_GROUP_NAME = "Bar"
UNKNOWN_USER_NAME = "Unknown User"
DEFAULT_REQUISITION_ITEM_NAME = "A new item"


class SuggestionStatus(StrEnum):
    PENDING = "pending"


@dataclass(frozen=True)
class CallerIdentity:
    """The authenticated caller of an operation, taken from the ID token."""

    uid: str
    display_name: Optional[str] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class InventoryItem:
    """Fields of an `inventoryItems` document used for reordering."""

    item_name: Optional[str] = None
    quantity_on_hand: Optional[float] = None
    min_stock_level: Optional[float] = None
    par_level: Optional[float] = None
    supplier: Any = None  # Firestore DocumentReference or legacy id string
    unit: Any = None


@dataclass
class OrderSuggestion:
    """Schema for `dailyOrderingSuggestions/{date}/suggestions` documents."""

    inventory_item_id: str
    item_name: Optional[str]
    supplier: Any
    unit: Any
    current_quantity: float
    quantity_to_order: float
    status: str
    created_at: Any  # Firestore timestamp (SERVER_TIMESTAMP)


@dataclass
class Notification:
    """Schema for `users/{uid}/notifications` documents."""

    title: str
    body: str
    read: bool
    created_at: Any  # Firestore timestamp (SERVER_TIMESTAMP)
    requisition_id: Optional[str] = None
    list_date: Optional[str] = None
