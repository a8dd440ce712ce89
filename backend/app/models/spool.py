from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base


class Spool(Base):
    """One spool of filament owned by a user.

    ``total_weight`` is the capacity recorded at purchase and never changes;
    ``remaining_weight`` is debited by the ledger and may be corrected by hand.
    """

    __tablename__ = "spools"
    __table_args__ = (CheckConstraint("total_weight > 0", name="ck_spools_total_weight_positive"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    material: Mapped[str] = mapped_column(String(50))  # PLA, PETG, ABS, etc.
    color_name: Mapped[str] = mapped_column(String(100))  # "Jade White"
    color: Mapped[str] = mapped_column(String(32))  # CSS color value, e.g. "#FFFFFF"
    brand: Mapped[str] = mapped_column(String(100))  # "Polymaker"
    total_weight: Mapped[float] = mapped_column(Float)  # Net filament weight at purchase (g)
    remaining_weight: Mapped[float] = mapped_column(Float)  # Grams left
    price: Mapped[float] = mapped_column(Float, default=0)  # Price paid for the whole spool
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    @property
    def cost_per_gram(self) -> float:
        return (self.price or 0) / self.total_weight

    def __repr__(self) -> str:
        return f"<Spool {self.id} {self.brand} {self.material} {self.color_name}>"
