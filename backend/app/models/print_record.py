from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.core.database import Base


class PrintRecord(Base):
    """One logged print job.

    ``weight_used`` and ``cost`` are totals across all line items. The spool
    reference and snapshot columns describe the first spool of the print and
    are kept for single-filament displays only.
    """

    __tablename__ = "prints"
    __table_args__ = (UniqueConstraint("user_id", "idempotency_key", name="uq_prints_user_idempotency_key"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    spool_id: Mapped[int | None] = mapped_column(ForeignKey("spools.id", ondelete="SET NULL"))
    material: Mapped[str] = mapped_column(String(50))
    brand: Mapped[str] = mapped_column(String(100))
    color_name: Mapped[str] = mapped_column(String(100))
    color: Mapped[str] = mapped_column(String(32))
    weight_used: Mapped[float] = mapped_column(Float)
    cost: Mapped[float] = mapped_column(Float, default=0)
    idempotency_key: Mapped[str | None] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    line_items: Mapped[list["PrintLineItem"]] = relationship(
        back_populates="print_record",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PrintLineItem.id",
    )


class PrintLineItem(Base):
    """Frozen record of how much of one spool a print consumed and at what cost."""

    __tablename__ = "print_line_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    print_id: Mapped[int] = mapped_column(ForeignKey("prints.id", ondelete="CASCADE"), index=True)
    spool_id: Mapped[int | None] = mapped_column(ForeignKey("spools.id", ondelete="SET NULL"), index=True)
    material: Mapped[str] = mapped_column(String(50))
    brand: Mapped[str] = mapped_column(String(100))
    color_name: Mapped[str] = mapped_column(String(100))
    color: Mapped[str] = mapped_column(String(32))
    weight_used: Mapped[float] = mapped_column(Float)
    cost: Mapped[float] = mapped_column(Float, default=0)

    print_record: Mapped[PrintRecord] = relationship(back_populates="line_items")
