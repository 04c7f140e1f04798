# tests/test_promotion_service.py
from datetime import datetime, timedelta, timezone

import pytest

from app.db.session_async import AsyncSessionLocal
from app.domain.promotion_engine import PurchaseContext
from app.schemas.promotion import PromotionCreate, PromotionUpdate
from app.services import promotion_service
from app.services.exceptions import ConflictError, DomainValidationError, ResourceNotFoundError


def _create_payload(**overrides) -> PromotionCreate:
    now = datetime.now(timezone.utc)
    data = dict(
        name="Summer10",
        type="PERCENTAGE",
        value=10,
        start_date=now - timedelta(days=1),
        end_date=now + timedelta(days=1),
    )
    data.update(overrides)
    return PromotionCreate(**data)


async def _persist(session, **overrides):
    promotion = await promotion_service.create_promotion(session, _create_payload(**overrides))
    await session.commit()
    return promotion


@pytest.mark.asyncio
async def test_redeem_counts_up_to_the_limit(async_db_session):
    promotion = await _persist(async_db_session, usage_limit=2)

    first = await promotion_service.redeem_promotion(async_db_session, promotion.id)
    assert first.usage_count == 1
    second = await promotion_service.redeem_promotion(async_db_session, promotion.id)
    assert second.usage_count == 2

    with pytest.raises(ConflictError):
        await promotion_service.redeem_promotion(async_db_session, promotion.id)
    await async_db_session.commit()

    reloaded = await promotion_service.get_promotion(async_db_session, promotion.id)
    await async_db_session.refresh(reloaded)
    assert reloaded.usage_count == 2


@pytest.mark.asyncio
async def test_redeem_rejects_inactive_promotion(async_db_session):
    promotion = await _persist(async_db_session)
    await promotion_service.deactivate_promotion(async_db_session, promotion.id)
    await async_db_session.commit()

    with pytest.raises(ConflictError):
        await promotion_service.redeem_promotion(async_db_session, promotion.id)


@pytest.mark.asyncio
async def test_redeem_unknown_promotion_is_not_found(async_db_session):
    with pytest.raises(ResourceNotFoundError):
        await promotion_service.redeem_promotion(async_db_session, "00000000-0000-0000-0000-000000000000")


@pytest.mark.asyncio
async def test_resolve_is_read_only(async_db_session):
    promotion = await _persist(async_db_session, usage_limit=5)
    context = PurchaseContext(unit_price=20, quantity=1)

    first = await promotion_service.resolve_for_product(async_db_session, "sku-1", context)
    second = await promotion_service.resolve_for_product(async_db_session, "sku-1", context)

    assert [r.discount_amount for r in first] == [r.discount_amount for r in second] == [2.0]
    await async_db_session.refresh(promotion)
    assert promotion.usage_count == 0


@pytest.mark.asyncio
async def test_resolve_flags_exhausted_usage(async_db_session):
    promotion = await _persist(async_db_session, usage_limit=1)
    await promotion_service.redeem_promotion(async_db_session, promotion.id)
    await async_db_session.commit()
    context = PurchaseContext(unit_price=20, quantity=1)

    resolved = await promotion_service.resolve_for_product(async_db_session, "sku-1", context)
    assert resolved[0].usage_exhausted is True

    applicable = await promotion_service.resolve_for_product(
        async_db_session, "sku-1", context, applicable_only=True
    )
    assert applicable == []


@pytest.mark.asyncio
async def test_resolve_requires_product_id(async_db_session):
    with pytest.raises(DomainValidationError):
        await promotion_service.resolve_for_product(async_db_session, "  ", PurchaseContext(unit_price=1, quantity=1))


@pytest.mark.asyncio
async def test_type_change_clears_buy_get_quantities(async_db_session):
    promotion = await _persist(
        async_db_session, name="2x1", type="BUY_X_GET_Y", value=100, buy_quantity=2, get_quantity=1
    )
    assert (promotion.buy_quantity, promotion.get_quantity) == (2, 1)

    updated = await promotion_service.update_promotion(
        async_db_session, promotion.id, PromotionUpdate(type="FIXED_AMOUNT", value=3)
    )
    assert updated.type == "FIXED_AMOUNT"
    assert updated.buy_quantity is None
    assert updated.get_quantity is None


@pytest.mark.asyncio
async def test_switching_to_buy_get_requires_quantities(async_db_session):
    promotion = await _persist(async_db_session)
    with pytest.raises(DomainValidationError):
        await promotion_service.update_promotion(
            async_db_session, promotion.id, PromotionUpdate(type="BUY_X_GET_Y")
        )


@pytest.mark.asyncio
async def test_concurrent_update_raises_conflict(async_db_session):
    promotion = await _persist(async_db_session)

    # Both sessions hold version 1 before either writes.
    async with AsyncSessionLocal() as other:
        stale = await promotion_service.get_promotion(other, promotion.id)
        assert stale.version == 1

        await promotion_service.update_promotion(async_db_session, promotion.id, PromotionUpdate(priority=5))
        await async_db_session.commit()

        with pytest.raises(ConflictError):
            await promotion_service.update_promotion(other, promotion.id, PromotionUpdate(priority=9))
        await other.rollback()

    await async_db_session.refresh(promotion)
    assert promotion.priority == 5
    assert promotion.version == 2


@pytest.mark.asyncio
async def test_falsy_limits_are_stored_as_unlimited(async_db_session):
    promotion = await _persist(async_db_session, max_discount=0, usage_limit=0)
    assert promotion.max_discount is None
    assert promotion.usage_limit is None


@pytest.mark.asyncio
async def test_target_ids_are_deduplicated(async_db_session):
    promotion = await _persist(
        async_db_session, target_type="PRODUCT", target_products=["sku-1", " sku-1 ", "sku-2", ""]
    )
    assert promotion.target_products == ["sku-1", "sku-2"]
