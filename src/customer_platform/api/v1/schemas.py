from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CustomerBase(BaseModel):
    customer_name: str = Field(min_length=1, max_length=255)
    customer_class: str = Field(min_length=1, max_length=50)
    reference_number: str = Field(min_length=1, max_length=100)
    status: str = Field(min_length=1, max_length=20)


class CustomerCreate(CustomerBase):
    model_config = ConfigDict(extra="forbid")


class CustomerUpdate(BaseModel):
    customer_name: str | None = Field(default=None, min_length=1, max_length=255)
    customer_class: str | None = Field(default=None, min_length=1, max_length=50)
    reference_number: str | None = Field(default=None, min_length=1, max_length=100)
    status: str | None = Field(default=None, min_length=1, max_length=20)
    model_config = ConfigDict(extra="forbid")


class Customer(CustomerBase):
    customer_id: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int
    limit: int
    totalCount: int
    totalPages: int
    hasNext: bool
    hasPrev: bool


class CustomerPage(BaseModel):
    data: list[Customer]
    pagination: Pagination


class HealthStatus(BaseModel):
    healthy: bool
    service: str
    database: str
    timestamp: str


# projection rows differ per tier; the queries define their columns
UserProjection = dict[str, Any]
