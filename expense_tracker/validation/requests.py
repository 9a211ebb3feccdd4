"""
Request Models

Shape rules for everything a client can send. By the time a request
reaches the access-control core its fields are present and well-typed;
the core only checks existence, ownership and uniqueness.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from expense_tracker.models.account import ProfilePatch
from expense_tracker.models.ledger import CategoryPatch, ExpensePatch
from expense_tracker.security import MAX_PASSWORD_BYTES


EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PASSWORD_MIN_LENGTH = 8


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_PATTERN.match(value):
        raise ValueError("must be a valid email address")
    return value


def _check_password_strength(value: str) -> str:
    """At least 8 characters, one digit, one uppercase letter."""
    if (
        len(value) < PASSWORD_MIN_LENGTH
        or not any(c.isdigit() for c in value)
        or not any(c.isupper() for c in value)
    ):
        raise ValueError(
            "must be at least 8 characters, include a number and an uppercase letter"
        )
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _check_email(v)


class DeleteAccountRequest(BaseModel):
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(BaseModel):
    """All fields optional; new_password must meet the strength rule."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=254)
    current_password: Optional[str] = None
    new_password: Optional[str] = None

    @field_validator('name')
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v) if v is not None else v

    @field_validator('new_password')
    @classmethod
    def validate_new_password(cls, v: Optional[str]) -> Optional[str]:
        return _check_password_strength(v) if v is not None else v

    def to_patch(self) -> ProfilePatch:
        return ProfilePatch(
            name=self.name,
            email=self.email,
            current_password=self.current_password,
            new_password=self.new_password,
        )


class CategoryRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    owner_id: Optional[UUID] = None

    def to_patch(self) -> CategoryPatch:
        return CategoryPatch(name=self.name, owner_id=self.owner_id)


class ExpenseRequest(BaseModel):
    """
    Create or full-update payload for an expense.

    to_patch() only carries the fields the client actually sent, so an
    omitted note is kept while an explicit null clears it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    category_id: UUID
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    expense_date: Optional[date] = None
    note: Optional[str] = Field(default=None, max_length=500)
    owner_id: Optional[UUID] = None

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not v.isalpha():
            raise ValueError("must be a 3-letter currency code")
        return v.upper()

    def to_patch(self) -> ExpensePatch:
        return ExpensePatch(**self.model_dump(include=self.model_fields_set))
