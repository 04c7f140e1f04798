# tests/test_seed_scripts.py
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from app.db.session_async import AsyncSessionLocal
from app.models.promotion import Promotion
from app.models.user import Role, User
from app.schemas.promotion import PromotionCreate
from app.services import promotion_service
from scripts.clear_seed_data import clear_seed_data
from scripts.seed_dev_promotions import DEV_CATEGORY_ID, DEV_PRODUCT_ID, seed_dev_promotions
from scripts.seed_rbac import DEV_USERS, seed_rbac


async def _count(model) -> int:
    async with AsyncSessionLocal() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_seed_rbac_is_idempotent():
    assert await seed_rbac() == len(DEV_USERS)
    assert await seed_rbac() == 0

    assert await _count(Role) == 3
    assert await _count(User) == len(DEV_USERS)


@pytest.mark.asyncio
async def test_seed_dev_promotions_is_idempotent():
    assert await seed_dev_promotions() == 3
    assert await seed_dev_promotions() == 0
    assert await _count(Promotion) == 3


@pytest.mark.asyncio
async def test_seeded_promotions_cover_each_target():
    await seed_dev_promotions()
    async with AsyncSessionLocal() as session:
        product = await promotion_service.eligible_for_product(session, DEV_PRODUCT_ID)
        category = await promotion_service.eligible_for_product(session, "other-sku", DEV_CATEGORY_ID)

    assert [promo.name for promo in product] == ["Cables 2x1", "Summer10"]
    assert [promo.name for promo in category] == ["Accessories 5 off", "Summer10"]


@pytest.mark.asyncio
async def test_clear_seed_data_keeps_manual_promotions(now):
    await seed_dev_promotions()
    async with AsyncSessionLocal() as session:
        await promotion_service.create_promotion(
            session,
            PromotionCreate(
                name="Manual",
                type="FIXED_AMOUNT",
                value=1,
                start_date=now,
                end_date=now + timedelta(days=365),
            ),
        )
        await session.commit()

    assert await clear_seed_data() == 3
    assert await _count(Promotion) == 1
