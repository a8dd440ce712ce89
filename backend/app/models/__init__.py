from backend.app.models.user import User
from backend.app.models.spool import Spool
from backend.app.models.brand_shortcut import BrandShortcut
from backend.app.models.print_record import PrintLineItem, PrintRecord

__all__ = [
    "User",
    "Spool",
    "BrandShortcut",
    "PrintRecord",
    "PrintLineItem",
]
