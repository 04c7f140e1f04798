"""Remove seeded promotions so the store can be re-seeded from scratch.

Users, roles and permissions are left untouched.
"""

from __future__ import annotations

import asyncio
import logging

import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import delete

from app.db.session_async import session_scope
from app.models.promotion import Promotion
from scripts.seed_dev_promotions import SEED_TAG


async def clear_seed_data() -> int:
    logger = logging.getLogger("clear_seed_data")
    async with session_scope() as session:
        result = await session.execute(
            delete(Promotion)
            .where(Promotion.description.like(f"{SEED_TAG}%"))
            .execution_options(synchronize_session=False)
        )
    logger.info("Cleared %s seeded promotions", result.rowcount)
    return result.rowcount


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(clear_seed_data())
