"""
Catalog Pydantic schemas.

Create, update and response schemas for customers, neighborhoods, payment
methods, products and items. Update schemas carry only optional fields and
are applied with ``exclude_unset``.
"""

from datetime import datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

ResponseT = TypeVar("ResponseT")


class CatalogResponse(BaseModel):
    """Fields shared by every catalog response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    active: bool
    created_at: datetime
    updated_at: datetime


class PageResponse(BaseModel, Generic[ResponseT]):
    """Paginated list of rows."""

    items: list[ResponseT]
    total: int
    skip: int
    limit: int


class NeighborhoodCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    delivery_fee: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)


class NeighborhoodUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    delivery_fee: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    active: Optional[bool] = None


class NeighborhoodResponse(CatalogResponse):
    name: str
    delivery_fee: Decimal


class PaymentMethodCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)


class PaymentMethodUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    active: Optional[bool] = None


class PaymentMethodResponse(CatalogResponse):
    name: str


class CustomerCreate(BaseModel):
    """Request schema for registering a customer."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=8, max_length=30, description="Contact phone")
    neighborhood_id: Optional[UUID] = Field(None, description="Default delivery neighborhood")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Keep digits and a leading plus sign only."""
        cleaned = "".join(c for c in v if c.isdigit() or c == "+")
        if len(cleaned.lstrip("+")) < 8:
            raise ValueError("Phone must contain at least 8 digits")
        return cleaned


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, min_length=8, max_length=30)
    neighborhood_id: Optional[UUID] = None
    active: Optional[bool] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return CustomerCreate.validate_phone(v)


class CustomerResponse(CatalogResponse):
    name: str
    phone: str
    neighborhood_id: Optional[UUID] = None
    last_order_date: Optional[datetime] = None
    last_order_details: Optional[str] = None


class ProductCreate(BaseModel):
    """Request schema for a sellable product."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    price: Decimal = Field(..., ge=0, decimal_places=2, description="Sale price")
    cost_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    cost_price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    active: Optional[bool] = None


class ProductResponse(CatalogResponse):
    name: str
    description: Optional[str] = None
    price: Decimal
    cost_price: Optional[Decimal] = None


class ItemCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category: str = Field(default="geral", min_length=1, max_length=100)
    price: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)


class ItemUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    active: Optional[bool] = None


class ItemResponse(CatalogResponse):
    name: str
    description: Optional[str] = None
    category: str
    price: Decimal
