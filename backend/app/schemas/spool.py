from datetime import datetime

from pydantic import BaseModel, Field


class SpoolBase(BaseModel):
    material: str = Field(..., min_length=1, max_length=50)
    color_name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(..., min_length=1, max_length=32)
    brand: str = Field(..., min_length=1, max_length=100)
    total_weight: float = Field(..., gt=0)
    price: float = Field(0, ge=0)


class SpoolCreate(SpoolBase):
    remaining_weight: float | None = Field(None, ge=0)  # Defaults to total_weight


class RemainingWeightUpdate(BaseModel):
    remaining_weight: float


class SpoolResponse(SpoolBase):
    id: int
    user_id: int
    remaining_weight: float
    created_at: datetime

    class Config:
        from_attributes = True


class BrandCreate(BaseModel):
    brand: str = Field(..., min_length=1, max_length=100)


class InventoryStats(BaseModel):
    totalSpools: int
    totalWeight: float
    materialTypes: int
    totalValue: float
    totalSpent: float
