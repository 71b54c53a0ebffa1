"""
SubDesk Backend — Subscriber Request/Response Schemas
=======================================================

What:  Contracts for signup (POST /submit-user), the admin listing
       (GET /get-users) and status updates (PUT /update-status/{id}).

Field names follow what the storefront already sends: the price arrives
as "Price" and the listing is wrapped in {"users": [...]}.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

# Optional currency symbol, digits, up to two decimals: "$19.99", "£5", "12.5"
PRICE_PATTERN = re.compile(r"^[$€¥£]?\d+(\.\d{1,2})?$")


class SubmitUserRequest(BaseModel):
    """Signup payload from the storefront checkout form."""

    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(min_length=5, max_length=50)
    plan: str = Field(min_length=1, max_length=100)
    price: str = Field(alias="Price", max_length=20)

    model_config = {"populate_by_name": True}

    @field_validator("name", "plan", "phone")
    @classmethod
    def strip_text(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("must not be blank")
        return stripped

    @field_validator("price")
    @classmethod
    def validate_price(cls, v: str) -> str:
        """Invalid price format is rejected before any database work."""
        trimmed = v.strip()
        if not PRICE_PATTERN.match(trimmed):
            raise ValueError("Invalid price format")
        return trimmed


class SubmitUserResponse(BaseModel):
    invoice: str = Field(description="Generated invoice number")
    message: str = Field(default="Invoice generated and email sent")


class SubscriberItem(BaseModel):
    """One row of the admin subscriber table."""

    id: int
    name: str
    plan: str
    invoice_status: str
    phone: str
    updated_at: datetime

    model_config = {"from_attributes": True}


class SubscriberListResponse(BaseModel):
    users: List[SubscriberItem]


class UpdateStatusRequest(BaseModel):
    # Optional at the schema level so a missing value gets the same 400 as an unknown one
    status: Optional[str] = Field(default=None, description="Free, pending, or paid")
