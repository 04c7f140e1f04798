from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permissions
from app.core.permissions import PERMISSIONS
from app.db.operations import commit_async
from app.db.session_async import get_async_db
from app.domain import promotion_engine
from app.domain.promotion_engine import PurchaseContext
from app.models.user import User
from app.schemas.promotion import (
    PaginatedPromotions,
    PromotionCreate,
    PromotionDeleted,
    PromotionRead,
    PromotionsForProduct,
    PromotionUpdate,
    ResolvedPromotionRead,
)
from app.services import promotion_service

router = APIRouter(prefix="/promotions", tags=["promotions"])

can_view = require_permissions(PERMISSIONS.VIEW_PROMOTIONS)
can_manage = require_permissions(PERMISSIONS.MANAGE_PROMOTIONS)


@router.post("", response_model=PromotionRead, status_code=status.HTTP_201_CREATED)
async def create_promotion(
    payload: PromotionCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_manage),
):
    promotion = await promotion_service.create_promotion(db, payload, created_by=current_user)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.get("", response_model=PaginatedPromotions)
async def list_promotions(
    is_active: Optional[str] = Query(default=None),
    target_type: Optional[str] = Query(default=None),
    page: Optional[str] = Query(default=None),
    limit: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_view),
):
    # page/limit stay strings so junk input falls back to defaults instead of a 400.
    result = await promotion_service.list_promotions(
        db, is_active=is_active, target_type=target_type, page=page, limit=limit
    )
    return PaginatedPromotions(
        total=result["total"],
        page=result["page"],
        pages=result["pages"],
        limit=result["limit"],
        items=[PromotionRead.model_validate(promo, from_attributes=True) for promo in result["items"]],
    )


@router.get("/active", response_model=list[PromotionRead])
async def list_active_promotions(
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_view),
):
    promotions = await promotion_service.list_active_promotions(db)
    return [PromotionRead.model_validate(promo, from_attributes=True) for promo in promotions]


@router.get("/for-product/{product_id}", response_model=PromotionsForProduct)
async def promotions_for_product(
    product_id: str,
    category_id: Optional[str] = Query(default=None),
    unit_price: Optional[float] = Query(default=None, ge=0),
    quantity: int = Query(default=1, ge=0),
    purchase_total: Optional[float] = Query(default=None, ge=0),
    applicable_only: bool = Query(default=False),
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_view),
):
    if unit_price is None:
        promotions = await promotion_service.eligible_for_product(db, product_id, category_id)
        items = [
            ResolvedPromotionRead(promotion=PromotionRead.model_validate(promo, from_attributes=True))
            for promo in promotions
        ]
        return PromotionsForProduct(
            product_id=product_id, category_id=category_id, results=len(items), items=items
        )

    context = PurchaseContext(unit_price=unit_price, quantity=quantity, purchase_total=purchase_total)
    resolved = await promotion_service.resolve_for_product(
        db, product_id, context, category_id, applicable_only=applicable_only
    )
    best = promotion_engine.best_single(resolved)
    return PromotionsForProduct(
        product_id=product_id,
        category_id=category_id,
        results=len(resolved),
        items=[ResolvedPromotionRead.model_validate(item, from_attributes=True) for item in resolved],
        best=ResolvedPromotionRead.model_validate(best, from_attributes=True) if best else None,
        stacked_discount=promotion_engine.stack(resolved, context),
    )


@router.get("/{promotion_id}", response_model=PromotionRead)
async def get_promotion(
    promotion_id: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_view),
):
    promotion = await promotion_service.get_promotion(db, promotion_id)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.patch("/{promotion_id}", response_model=PromotionRead)
async def update_promotion(
    promotion_id: str,
    payload: PromotionUpdate,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_manage),
):
    promotion = await promotion_service.update_promotion(db, promotion_id, payload)
    await commit_async(db)
    return PromotionRead.model_validate(promotion, from_attributes=True)


@router.delete("/{promotion_id}", response_model=PromotionDeleted)
async def delete_promotion(
    promotion_id: str,
    db: AsyncSession = Depends(get_async_db),
    current_user: User = Depends(can_manage),
):
    await promotion_service.deactivate_promotion(db, promotion_id)
    await commit_async(db)
    return PromotionDeleted(message="Promotion deactivated successfully")
