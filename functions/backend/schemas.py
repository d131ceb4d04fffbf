"""
Pydantic schemas for the FastAPI service. Request and response bodies use the
same camelCase keys as the Firebase callables.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GenerateListsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date_string: Optional[str] = Field(default=None, alias="dateString")
    # Entries are checked by the operation; a non-list is rejected as invalid input.
    selected_dish_refs: Optional[list] = Field(default=None, alias="selectedDishRefs")


class GenerateListsResponse(BaseModel):
    success: bool
    message: str


class SendOrderEmailPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipient_email: Optional[str] = Field(default=None, alias="recipientEmail")
    subject: Optional[str] = None
    body: Optional[str] = None


class SendOrderEmailResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class SetUserRolePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: Optional[str] = None
    new_role: Optional[str] = Field(default=None, alias="newRole")


class SetUserRoleResponse(BaseModel):
    result: str


class ErrorBody(BaseModel):
    status: str
    message: str


class ErrorResponse(BaseModel):
    error: ErrorBody
