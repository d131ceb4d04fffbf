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

"""Collection names and document path templates."""

DAILY_LISTS_COLLECTION = "dailyTodoLists"
PREP_TASKS_COLLECTION = "prepTasks"
STOCK_REQUISITIONS_COLLECTION = "stockRequisitions"

DISHES_COLLECTION = "dishes"
# Template tasks live under each dish in a sub-collection of the same name as
# the daily prep tasks.
DISH_TASKS_COLLECTION = "prepTasks"

FLOOR_CHECKLIST_COLLECTION = "floor_checklist_items"

USERS_COLLECTION = "users"
NOTIFICATIONS_COLLECTION = "notifications"

INVENTORY_ITEMS_COLLECTION = "inventoryItems"
ORDERING_SUGGESTIONS_COLLECTION = "dailyOrderingSuggestions"
SUGGESTIONS_COLLECTION = "suggestions"

STOCK_REQUISITION_DOCUMENT = (
    DAILY_LISTS_COLLECTION
    + "/{date}/"
    + STOCK_REQUISITIONS_COLLECTION
    + "/{requisitionId}"
)
INVENTORY_ITEM_DOCUMENT = INVENTORY_ITEMS_COLLECTION + "/{itemId}"
