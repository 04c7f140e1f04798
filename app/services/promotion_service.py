from __future__ import annotations

import math
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.logging import get_logger
from app.core.metrics import record_promotion_resolution
from app.db.operations import flush_async, refresh_async
from app.domain import promotion_engine
from app.domain.enums import PromotionType, TargetType
from app.domain.promotion_engine import PurchaseContext, ResolvedPromotion
from app.models.promotion import Promotion
from app.models.user import User
from app.schemas.promotion import PromotionCreate, PromotionUpdate
from app.services.exceptions import ConflictError, DomainValidationError, ResourceNotFoundError

logger = get_logger("app.promotions")

# Columns that may never be cleared through an update.
_NON_NULLABLE_UPDATES = ("name", "type", "value", "start_date", "end_date", "is_active")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_type(value: str) -> str:
    allowed = [item.value for item in PromotionType]
    if value not in allowed:
        raise DomainValidationError(f"Invalid promotion type. Must be: {', '.join(allowed)}")
    return value


def _validate_target_type(value: Optional[str]) -> str:
    if value is None:
        return TargetType.ALL.value
    allowed = [item.value for item in TargetType]
    if value not in allowed:
        raise DomainValidationError(f"Invalid target type. Must be: {', '.join(allowed)}")
    return value


def _validate_window(start_date: datetime, end_date: datetime) -> None:
    start = promotion_engine.as_utc(start_date)
    end = promotion_engine.as_utc(end_date)
    if start >= end:
        raise DomainValidationError("End date must be after start date")


def _validate_amounts(fields: dict[str, Any]) -> None:
    for field in ("value", "min_purchase", "max_discount"):
        if fields[field] is not None and not math.isfinite(fields[field]):
            raise DomainValidationError(f"{field} must be a finite number")
    if fields["value"] < 0:
        raise DomainValidationError("value must not be negative")
    if fields["type"] == PromotionType.PERCENTAGE.value and fields["value"] > 100:
        raise DomainValidationError("PERCENTAGE value must be between 0 and 100")
    if fields["min_purchase"] < 0:
        raise DomainValidationError("min_purchase must not be negative")
    if fields["max_discount"] is not None and fields["max_discount"] < 0:
        raise DomainValidationError("max_discount must not be negative")
    if fields["usage_limit"] is not None and fields["usage_limit"] < 0:
        raise DomainValidationError("usage_limit must not be negative")


def _apply_buy_get_invariant(fields: dict[str, Any]) -> None:
    """Quantities are required for BUY_X_GET_Y and cleared for every other type."""
    if fields["type"] != PromotionType.BUY_X_GET_Y.value:
        fields["buy_quantity"] = None
        fields["get_quantity"] = None
        return
    buy, get = fields["buy_quantity"], fields["get_quantity"]
    if not buy or not get:
        raise DomainValidationError("buy_quantity and get_quantity are required for BUY_X_GET_Y promotions")
    if buy < 0 or get < 0:
        raise DomainValidationError("buy_quantity and get_quantity must be positive")


def _unique_ids(identifiers: Optional[Iterable[Any]]) -> list[str]:
    seen: list[str] = []
    for identifier in identifiers or ():
        value = str(identifier).strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def _parse_positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _as_uuid(promotion_id: str | uuid.UUID) -> uuid.UUID:
    if isinstance(promotion_id, uuid.UUID):
        return promotion_id
    try:
        return uuid.UUID(str(promotion_id))
    except ValueError:
        raise ResourceNotFoundError("Promotion not found") from None


async def create_promotion(
    db: AsyncSession, payload: PromotionCreate, created_by: Optional[User] = None
) -> Promotion:
    if not payload.name or not payload.name.strip():
        raise DomainValidationError("Name, type, value, start_date, and end_date are required")

    fields: dict[str, Any] = {
        "type": _validate_type(payload.type),
        "value": payload.value,
        "buy_quantity": payload.buy_quantity,
        "get_quantity": payload.get_quantity,
        "min_purchase": payload.min_purchase or 0,
        "max_discount": payload.max_discount or None,
        "usage_limit": payload.usage_limit or None,
    }
    _validate_window(payload.start_date, payload.end_date)
    _apply_buy_get_invariant(fields)
    _validate_amounts(fields)

    promotion = Promotion(
        name=payload.name.strip(),
        description=payload.description,
        start_date=payload.start_date,
        end_date=payload.end_date,
        target_type=_validate_target_type(payload.target_type),
        target_products=_unique_ids(payload.target_products),
        target_categories=_unique_ids(payload.target_categories),
        priority=payload.priority or 0,
        usage_count=0,
        is_active=True,
        created_by=created_by,
        **fields,
    )
    db.add(promotion)
    await flush_async(db, promotion)
    await refresh_async(db, promotion)
    logger.info(
        "Promotion created",
        extra={
            "promotion_id": str(promotion.id),
            "type": promotion.type,
            "created_by": str(created_by.id) if created_by else None,
        },
    )
    return promotion


async def list_promotions(
    db: AsyncSession,
    *,
    is_active: Optional[str] = None,
    target_type: Optional[str] = None,
    page: Any = None,
    limit: Any = None,
) -> dict[str, Any]:
    page_num = _parse_positive_int(page, 1)
    limit_num = min(
        _parse_positive_int(limit, settings.PROMOTIONS_DEFAULT_PAGE_SIZE),
        settings.PROMOTIONS_MAX_PAGE_SIZE,
    )

    filters = []
    if is_active is not None:
        filters.append(Promotion.is_active.is_(str(is_active).lower() == "true"))
    if target_type:
        filters.append(Promotion.target_type == target_type.upper())

    stmt = (
        select(Promotion)
        .where(*filters)
        .order_by(Promotion.priority.desc(), Promotion.created_at.desc())
        .offset((page_num - 1) * limit_num)
        .limit(limit_num)
    )
    items = (await db.execute(stmt)).scalars().all()
    total = (await db.execute(select(func.count(Promotion.id)).where(*filters))).scalar_one()

    return {
        "total": total,
        "page": page_num,
        "limit": limit_num,
        "pages": math.ceil(total / limit_num),
        "items": list(items),
    }


async def _window_candidates(db: AsyncSession, now: datetime) -> list[Promotion]:
    """Active rows whose window contains ``now``; the engine re-checks and orders them."""
    stmt = select(Promotion).where(
        Promotion.is_active.is_(True),
        Promotion.start_date <= now,
        Promotion.end_date >= now,
    )
    return list((await db.execute(stmt)).scalars().all())


async def list_active_promotions(db: AsyncSession, now: Optional[datetime] = None) -> list[Promotion]:
    now = now or _now()
    return promotion_engine.filter_eligible(await _window_candidates(db, now), now)


async def get_promotion(db: AsyncSession, promotion_id: str | uuid.UUID) -> Promotion:
    promotion = await db.get(Promotion, _as_uuid(promotion_id))
    if not promotion:
        raise ResourceNotFoundError("Promotion not found")
    return promotion


async def update_promotion(
    db: AsyncSession, promotion_id: str | uuid.UUID, payload: PromotionUpdate
) -> Promotion:
    changes = payload.model_dump(exclude_unset=True)
    expected_version = changes.pop("version", None)

    promotion = await get_promotion(db, promotion_id)
    if expected_version is not None and expected_version != promotion.version:
        raise ConflictError(
            f"Promotion was modified concurrently (expected version {expected_version}, found {promotion.version})"
        )

    for field in _NON_NULLABLE_UPDATES:
        if field in changes and changes[field] is None:
            raise DomainValidationError(f"{field} cannot be null")
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise DomainValidationError("name cannot be empty")

    if "min_purchase" in changes:
        changes["min_purchase"] = changes["min_purchase"] or 0
    if "priority" in changes:
        changes["priority"] = changes["priority"] or 0
    for field in ("max_discount", "usage_limit"):
        if field in changes:
            changes[field] = changes[field] or None
    for field in ("target_products", "target_categories"):
        if field in changes:
            changes[field] = _unique_ids(changes[field])

    merged: dict[str, Any] = {
        field: changes.get(field, getattr(promotion, field))
        for field in (
            "type", "value", "buy_quantity", "get_quantity", "min_purchase",
            "max_discount", "usage_limit", "start_date", "end_date", "target_type",
        )
    }
    if "type" in changes:
        _validate_type(merged["type"])
    if "target_type" in changes:
        changes["target_type"] = _validate_target_type(changes["target_type"])
    if "start_date" in changes or "end_date" in changes:
        _validate_window(merged["start_date"], merged["end_date"])
    _apply_buy_get_invariant(merged)
    _validate_amounts(merged)
    changes["buy_quantity"] = merged["buy_quantity"]
    changes["get_quantity"] = merged["get_quantity"]

    for field, value in changes.items():
        setattr(promotion, field, value)

    db.add(promotion)
    try:
        await flush_async(db, promotion)
    except StaleDataError as exc:
        raise ConflictError("Promotion was modified concurrently, reload and retry") from exc
    await refresh_async(db, promotion)
    logger.info(
        "Promotion updated",
        extra={"promotion_id": str(promotion.id), "fields": sorted(changes), "version": promotion.version},
    )
    return promotion


async def deactivate_promotion(db: AsyncSession, promotion_id: str | uuid.UUID) -> Promotion:
    """Soft delete: the row stays for audit and history."""
    promotion = await get_promotion(db, promotion_id)
    promotion.is_active = False
    db.add(promotion)
    await flush_async(db, promotion)
    await refresh_async(db, promotion)
    logger.info("Promotion deactivated", extra={"promotion_id": str(promotion.id)})
    return promotion


async def eligible_for_product(
    db: AsyncSession,
    product_id: str,
    category_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> list[Promotion]:
    promotion_engine.require_target(product_id)
    now = now or _now()
    return promotion_engine.filter_eligible(
        await _window_candidates(db, now), now, product_id=product_id, category_id=category_id
    )


async def resolve_for_product(
    db: AsyncSession,
    product_id: str,
    context: PurchaseContext,
    category_id: Optional[str] = None,
    *,
    applicable_only: bool = False,
    now: Optional[datetime] = None,
) -> list[ResolvedPromotion]:
    """Ranked promotions with their discount for one line.

    Read-only: safe to call for price previews, usage counters are untouched.
    """
    now = now or _now()
    candidates = await _window_candidates(db, now)
    try:
        resolved = promotion_engine.resolve_for_target(
            candidates, now, product_id, category_id, context, applicable_only=applicable_only
        )
    except DomainValidationError as exc:
        logger.error(
            "Promotion evaluation failed",
            extra={"product_id": product_id, "category_id": category_id, "reason": exc.detail},
        )
        raise
    record_promotion_resolution(any(item.applicable for item in resolved))
    return resolved


async def redeem_promotion(
    db: AsyncSession, promotion_id: str | uuid.UUID, now: Optional[datetime] = None
) -> Promotion:
    """Consume one use of a promotion at sale completion.

    The limit check and the increment run as a single conditional UPDATE, so
    two concurrent redemptions can never both take the last use.
    """
    key = _as_uuid(promotion_id)
    now = now or _now()
    stmt = (
        update(Promotion)
        .where(
            Promotion.id == key,
            Promotion.is_active.is_(True),
            Promotion.start_date <= now,
            Promotion.end_date >= now,
            or_(Promotion.usage_limit.is_(None), Promotion.usage_count < Promotion.usage_limit),
        )
        .values(usage_count=Promotion.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    promotion = await get_promotion(db, key)
    if result.rowcount == 0:
        raise ConflictError("Promotion is not redeemable: inactive, out of window or usage limit reached")
    await refresh_async(db, promotion)
    logger.info(
        "Promotion redeemed",
        extra={"promotion_id": str(promotion.id), "usage_count": promotion.usage_count},
    )
    return promotion
