import logging

from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backend.app.core.auth import CurrentUser
from backend.app.core.database import get_db
from backend.app.core.errors import NotFound
from backend.app.models.print_record import PrintRecord
from backend.app.models.spool import Spool
from backend.app.schemas.print_record import PrintCreate, PrintHistoryResponse, PrintResponse
from backend.app.services.ledger import Ledger, PrintItem, get_ledger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/prints", tags=["prints"])


@router.get("", response_model=list[PrintHistoryResponse])
async def list_prints(current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Print history, newest first, with the primary spool's current weight."""
    result = await db.execute(
        select(PrintRecord, Spool.remaining_weight)
        .outerjoin(Spool, PrintRecord.spool_id == Spool.id)
        .options(selectinload(PrintRecord.line_items))
        .where(PrintRecord.user_id == current_user.id)
        .order_by(PrintRecord.created_at.desc(), PrintRecord.id.desc())
    )
    return [
        PrintHistoryResponse.model_validate(record).model_copy(update={"current_remaining": remaining})
        for record, remaining in result.all()
    ]


@router.post("", response_model=PrintResponse, status_code=status.HTTP_201_CREATED)
async def create_print(
    print_data: PrintCreate,
    response: Response,
    current_user: CurrentUser,
    ledger: Ledger = Depends(get_ledger),
    idempotency_key: str | None = Header(None, alias="Idempotency-Key", max_length=255),
):
    """Log a print, consuming filament from every listed spool atomically.

    Resubmitting with the same ``Idempotency-Key`` returns the original print
    with status 200 and consumes nothing.
    """
    items = [PrintItem(spool_id=item.spool_id, weight_used=item.weight_used) for item in print_data.items]
    recorded = await ledger.record_print(current_user.id, print_data.name, items, idempotency_key=idempotency_key)
    if not recorded.created:
        response.status_code = status.HTTP_200_OK
    return recorded.print_record


@router.delete("/{print_id}")
async def delete_print(print_id: int, current_user: CurrentUser, db: AsyncSession = Depends(get_db)):
    """Remove a print from history. Consumed filament is not restored."""
    result = await db.execute(
        delete(PrintRecord).where(PrintRecord.id == print_id, PrintRecord.user_id == current_user.id)
    )
    if result.rowcount == 0:
        raise NotFound("Print not found")
    await db.commit()
    logger.info("User %d deleted print %d", current_user.id, print_id)
    return {"message": "Print deleted"}
