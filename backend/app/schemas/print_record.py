from datetime import datetime

from pydantic import BaseModel, Field


class PrintItemRequest(BaseModel):
    spool_id: int
    weight_used: float


class PrintCreate(BaseModel):
    name: str = Field(..., max_length=255)
    items: list[PrintItemRequest]


class PrintLineItemResponse(BaseModel):
    id: int
    spool_id: int | None = None
    material: str
    brand: str
    color_name: str
    color: str
    weight_used: float
    cost: float

    class Config:
        from_attributes = True


class PrintResponse(BaseModel):
    id: int
    user_id: int
    name: str
    spool_id: int | None = None
    material: str
    brand: str
    color_name: str
    color: str
    weight_used: float
    cost: float
    created_at: datetime
    line_items: list[PrintLineItemResponse] = []

    class Config:
        from_attributes = True


class PrintHistoryResponse(PrintResponse):
    current_remaining: float | None = None  # Primary spool's weight now, None once deleted
