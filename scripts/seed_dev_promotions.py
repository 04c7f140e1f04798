"""Seed a handful of development promotions covering every type and target."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from app.core.config import settings
from app.db.session_async import session_scope
from app.models.promotion import Promotion
from app.schemas.promotion import PromotionCreate
from app.services import promotion_service

SEED_TAG = "[seed]"

DEV_PRODUCT_ID = "64b7f0c2a1e4d5f6a7b8c9d0"
DEV_CATEGORY_ID = "64b7f0c2a1e4d5f6a7b8c9e1"


def _promotions(now: datetime) -> list[PromotionCreate]:
    window = {"start_date": now - timedelta(days=1), "end_date": now + timedelta(days=30)}
    return [
        PromotionCreate(
            name="Summer10",
            description=f"{SEED_TAG} 10% off everything",
            type="PERCENTAGE",
            value=10,
            target_type="ALL",
            **window,
        ),
        PromotionCreate(
            name="Accessories 5 off",
            description=f"{SEED_TAG} 5 off any accessory line",
            type="FIXED_AMOUNT",
            value=5,
            min_purchase=20,
            target_type="CATEGORY",
            target_categories=[DEV_CATEGORY_ID],
            priority=5,
            **window,
        ),
        PromotionCreate(
            name="Cables 2x1",
            description=f"{SEED_TAG} buy two cables, the third is free",
            type="BUY_X_GET_Y",
            value=100,
            buy_quantity=2,
            get_quantity=1,
            target_type="PRODUCT",
            target_products=[DEV_PRODUCT_ID],
            priority=10,
            usage_limit=500,
            **window,
        ),
    ]


async def seed_dev_promotions() -> int:
    """Insert missing seed promotions by name; returns how many were created."""
    logger = logging.getLogger("seed_dev_promotions")
    logger.info("Seeding development promotions into %s", settings.ASYNC_DATABASE_URL)

    created = 0
    async with session_scope() as session:
        existing = set((await session.execute(select(Promotion.name))).scalars().all())
        for payload in _promotions(datetime.now(timezone.utc)):
            if payload.name in existing:
                logger.debug("Skipped promotion %s (already present)", payload.name)
                continue
            await promotion_service.create_promotion(session, payload)
            created += 1

    logger.info("Seed completed: %s promotions created", created)
    return created


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(seed_dev_promotions())
    except KeyboardInterrupt:
        pass
