# app/db/operations.py
"""Common async session helpers used by the service layer."""

from collections.abc import Iterable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession


def _coerce_iter(items: Iterable[Any] | None) -> list[Any] | None:
    if not items:
        return None
    return list(items)


async def commit_async(session: AsyncSession) -> None:
    """Commit, rolling back first if the commit itself fails."""
    try:
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def flush_async(session: AsyncSession, *objects: Any) -> None:
    await session.flush(_coerce_iter(objects))


async def refresh_async(session: AsyncSession, *instances: Any, attribute_names: list[str] | None = None) -> None:
    for instance in instances:
        if attribute_names:
            await session.refresh(instance, attribute_names=attribute_names)
        else:
            await session.refresh(instance)
