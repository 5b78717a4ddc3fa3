from typing import Any, Dict, Optional
from datetime import datetime
from sqlmodel import SQLModel

from freshtrace.db.schema import EventKind


class LedgerEventRead(SQLModel):
    """A committed ledger notification, as delivered to listeners."""
    sequence: int
    kind: EventKind
    product_id: Optional[int] = None
    address: Optional[str] = None
    payload: Dict[str, Any] = {}
    created_at: datetime
