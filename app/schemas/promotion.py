from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PromotionCreate(BaseModel):
    name: str
    description: Optional[str] = None
    type: str
    value: float
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    min_purchase: Optional[float] = None
    max_discount: Optional[float] = None
    start_date: datetime
    end_date: datetime
    target_type: Optional[str] = None
    target_products: list[str] = Field(default_factory=list)
    target_categories: list[str] = Field(default_factory=list)
    priority: Optional[int] = None
    usage_limit: Optional[int] = None


class PromotionUpdate(BaseModel):
    """Whitelisted mutable fields; anything else in the body is ignored.

    ``version`` is optional: when sent it must match the stored version.
    """

    name: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None
    value: Optional[float] = None
    buy_quantity: Optional[int] = None
    get_quantity: Optional[int] = None
    min_purchase: Optional[float] = None
    max_discount: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    target_type: Optional[str] = None
    target_products: Optional[list[str]] = None
    target_categories: Optional[list[str]] = None
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    usage_limit: Optional[int] = None
    version: Optional[int] = None


class CreatorRead(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PromotionRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str]
    type: str
    value: float
    buy_quantity: Optional[int]
    get_quantity: Optional[int]
    min_purchase: float
    max_discount: Optional[float]
    start_date: datetime
    end_date: datetime
    target_type: str
    target_products: list[str]
    target_categories: list[str]
    priority: int
    usage_limit: Optional[int]
    usage_count: int
    is_active: bool
    version: int
    created_by: Optional[CreatorRead] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaginatedPromotions(BaseModel):
    total: int
    page: int
    pages: int
    limit: int
    items: list[PromotionRead]


class ResolvedPromotionRead(BaseModel):
    promotion: PromotionRead
    discount_amount: Optional[float] = None
    usage_exhausted: bool = False

    model_config = ConfigDict(from_attributes=True)


class PromotionsForProduct(BaseModel):
    product_id: str
    category_id: Optional[str] = None
    results: int
    items: list[ResolvedPromotionRead]
    best: Optional[ResolvedPromotionRead] = None
    stacked_discount: Optional[float] = None


class PromotionDeleted(BaseModel):
    message: str
