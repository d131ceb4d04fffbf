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

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class GenerateListsRequest:
    """Request object for (re)generating the daily lists of a date."""

    date_string: Optional[str] = None
    selected_dish_refs: Optional[List[str]] = field(default_factory=list)


@dataclass
class GenerateListsResult:
    success: bool
    message: str


@dataclass
class SendOrderEmailRequest:
    """Request object for emailing an order to a supplier."""

    recipient_email: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None


@dataclass
class SendOrderEmailResult:
    success: bool
    message: Optional[str] = None


@dataclass
class SetUserRoleRequest:
    uid: Optional[str] = None
    new_role: Optional[str] = None


@dataclass
class SetUserRoleResult:
    result: str
