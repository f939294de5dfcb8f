"""Priority escalation rule schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pdelivery.services.orders.enums import OrderStatus

HEX_COLOR_LENGTHS = (4, 7)


def _validate_color(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not v.startswith("#") or len(v) not in HEX_COLOR_LENGTHS:
        raise ValueError("Color must be a hex value such as #f00 or #ff0000")
    int(v[1:], 16)
    return v.lower()


class PrioritySettingCreate(BaseModel):
    """Request schema for an escalation rule."""

    model_config = ConfigDict(str_strip_whitespace=True)

    status: OrderStatus = Field(..., description="Open status the rule applies to")
    minutes_threshold: int = Field(..., ge=0, le=60 * 24 * 7)
    priority_level: int = Field(..., ge=1, le=100)
    priority_label: str = Field(..., min_length=1, max_length=100)
    color: Optional[str] = Field(None, max_length=7)

    @field_validator("status")
    @classmethod
    def validate_open_status(cls, v: OrderStatus) -> OrderStatus:
        """Rules on terminal statuses would never fire."""
        if not v.is_open():
            raise ValueError(f"Priority rules apply to open statuses only, got {v.value}")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _validate_color(v)


class PrioritySettingUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: Optional[OrderStatus] = None
    minutes_threshold: Optional[int] = Field(None, ge=0, le=60 * 24 * 7)
    priority_level: Optional[int] = Field(None, ge=1, le=100)
    priority_label: Optional[str] = Field(None, min_length=1, max_length=100)
    color: Optional[str] = Field(None, max_length=7)

    @field_validator("status")
    @classmethod
    def validate_open_status(cls, v: Optional[OrderStatus]) -> Optional[OrderStatus]:
        if v is not None and not v.is_open():
            raise ValueError(f"Priority rules apply to open statuses only, got {v.value}")
        return v

    @field_validator("color")
    @classmethod
    def validate_color(cls, v: Optional[str]) -> Optional[str]:
        return _validate_color(v)


class PrioritySettingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    status: OrderStatus
    minutes_threshold: int
    priority_level: int
    priority_label: str
    color: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class EscalationRunResponse(BaseModel):
    """Outcome of one escalation pass."""

    scanned: int
    escalated: int
    failed: int
    escalated_ids: list[UUID]
