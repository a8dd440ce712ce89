"""Per-user brand quick picks."""

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.models.brand_shortcut import DEFAULT_BRANDS, BrandShortcut


async def list_brands(db: AsyncSession, user_id: int) -> list[str]:
    result = await db.execute(
        select(BrandShortcut.brand).where(BrandShortcut.user_id == user_id).order_by(BrandShortcut.brand)
    )
    return list(result.scalars().all())


async def add_brand(db: AsyncSession, user_id: int, brand: str) -> bool:
    """Add a brand unless the user already has it. Returns True if a row was added."""
    brand = brand.strip()
    existing = await db.execute(
        select(BrandShortcut.id).where(BrandShortcut.user_id == user_id, BrandShortcut.brand == brand)
    )
    if existing.scalar_one_or_none() is not None:
        return False
    try:
        async with db.begin_nested():
            db.add(BrandShortcut(user_id=user_id, brand=brand))
    except IntegrityError:
        # Added by a concurrent request
        return False
    return True


async def seed_default_brands(db: AsyncSession, user_id: int) -> None:
    for brand in DEFAULT_BRANDS:
        db.add(BrandShortcut(user_id=user_id, brand=brand))


async def remove_brand(db: AsyncSession, user_id: int, brand: str) -> None:
    await db.execute(delete(BrandShortcut).where(BrandShortcut.user_id == user_id, BrandShortcut.brand == brand))
