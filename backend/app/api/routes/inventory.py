import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.auth import CurrentUser
from backend.app.core.database import get_db
from backend.app.core.errors import InvalidInput, NotFound
from backend.app.models.spool import Spool
from backend.app.schemas.spool import (
    BrandCreate,
    InventoryStats,
    RemainingWeightUpdate,
    SpoolCreate,
    SpoolResponse,
)
from backend.app.services.brand_shortcuts import add_brand, list_brands, remove_brand
from backend.app.services.ledger import Ledger, get_ledger

logger = logging.getLogger(__name__)

router = APIRouter(tags=["inventory"])


# ── Spools ────────────────────────────────────────────────────────────────────


@router.get("/spools", response_model=list[SpoolResponse])
async def list_spools(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """List the caller's spools, newest first."""
    result = await db.execute(
        select(Spool).where(Spool.user_id == current_user.id).order_by(Spool.created_at.desc(), Spool.id.desc())
    )
    return list(result.scalars().all())


@router.get("/spools/{spool_id}", response_model=SpoolResponse)
async def get_spool(spool_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(Spool).where(Spool.id == spool_id, Spool.user_id == current_user.id))
    spool = result.scalar_one_or_none()
    if not spool:
        raise NotFound("Spool not found")
    return spool


@router.post("/spools", response_model=SpoolResponse, status_code=status.HTTP_201_CREATED)
async def create_spool(spool_data: SpoolCreate, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Add a spool. Remaining weight starts at the full weight unless given."""
    data = spool_data.model_dump()
    if data["remaining_weight"] is None:
        data["remaining_weight"] = data["total_weight"]
    elif data["remaining_weight"] > data["total_weight"]:
        raise InvalidInput("remaining_weight cannot exceed total_weight")

    spool = Spool(user_id=current_user.id, **data)
    db.add(spool)
    await add_brand(db, current_user.id, spool.brand)
    await db.commit()
    await db.refresh(spool)

    logger.info("User %d added spool %d (%s %s %s)", current_user.id, spool.id, spool.brand, spool.material, spool.color_name)
    return spool


@router.put("/spools/{spool_id}", response_model=SpoolResponse)
async def update_remaining_weight(
    spool_id: int,
    update: RemainingWeightUpdate,
    current_user: CurrentUser,
    ledger: Ledger = Depends(get_ledger),
):
    """Manually correct a spool's remaining weight."""
    return await ledger.adjust_remaining(current_user.id, spool_id, update.remaining_weight)


@router.delete("/spools/{spool_id}")
async def delete_spool(spool_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Delete a spool. Print history keeps its snapshot with the reference cleared."""
    result = await db.execute(delete(Spool).where(Spool.id == spool_id, Spool.user_id == current_user.id))
    if result.rowcount == 0:
        raise NotFound("Spool not found")
    await db.commit()
    logger.info("User %d deleted spool %d", current_user.id, spool_id)
    return {"message": "Spool deleted"}


# ── Brand shortcuts ──────────────────────────────────────────────────────────


@router.get("/brands", response_model=list[str])
async def get_brands(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    return await list_brands(db, current_user.id)


@router.post("/brands", status_code=status.HTTP_201_CREATED)
async def create_brand(brand_data: BrandCreate, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    brand = brand_data.brand.strip()
    await add_brand(db, current_user.id, brand)
    await db.commit()
    return {"brand": brand}


@router.delete("/brands/{brand}")
async def delete_brand(brand: str, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    await remove_brand(db, current_user.id, brand)
    await db.commit()
    return {"message": "Brand removed"}


# ── Stats ────────────────────────────────────────────────────────────────────


@router.get("/stats", response_model=InventoryStats)
async def get_stats(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Totals across the caller's spools. Value is the unused share of each spool's price."""
    result = await db.execute(
        select(
            func.count(Spool.id),
            func.sum(Spool.remaining_weight),
            func.count(func.distinct(Spool.material)),
            func.sum(Spool.remaining_weight / Spool.total_weight * Spool.price),
            func.sum(Spool.price),
        ).where(Spool.user_id == current_user.id)
    )
    total_spools, total_weight, material_types, total_value, total_spent = result.one()
    return InventoryStats(
        totalSpools=total_spools or 0,
        totalWeight=total_weight or 0,
        materialTypes=material_types or 0,
        totalValue=total_value or 0,
        totalSpent=total_spent or 0,
    )
