from threading import RLock
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlmodel import Session

from freshtrace.core.events import EventBus
from freshtrace.db.core import get_session
from freshtrace.services.ledger import LedgerService


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_ledger_lock(request: Request) -> RLock:
    return request.app.state.ledger_lock


def get_ledger_service(
    session: Session = Depends(get_session),
    events: EventBus = Depends(get_event_bus),
    lock: RLock = Depends(get_ledger_lock),
) -> LedgerService:
    """Creates a LedgerService bound to the request session and the app-wide lock."""
    return LedgerService(session, events=events, lock=lock)


def get_caller(
    x_participant_address: Optional[str] = Header(default=None),
) -> str:
    """
    Resolves the calling identity for mutating routes.
    The ledger checks roles against this handle; it does not authenticate it.
    """
    if not x_participant_address:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Participant-Address header.",
        )
    return x_participant_address
