from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.app.core.database import Base

# Seeded for every new account
DEFAULT_BRANDS = ("Prusament", "Hatchbox", "eSUN", "Polymaker", "Overture")


class BrandShortcut(Base):
    """A brand name offered as a quick pick when adding spools."""

    __tablename__ = "brand_shortcuts"
    __table_args__ = (UniqueConstraint("user_id", "brand", name="uq_brand_shortcuts_user_brand"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    brand: Mapped[str] = mapped_column(String(100))
