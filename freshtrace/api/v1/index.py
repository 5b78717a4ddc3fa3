from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, func

from freshtrace.core.config import settings
from freshtrace.db.core import get_session
from freshtrace.db.schema import LedgerMeta, Participant

router = APIRouter()


@router.get("/", status_code=status.HTTP_200_OK)
def index():
    return {"service": settings.app_name, "status": "running"}


@router.get("/readiness", status_code=status.HTTP_200_OK)
def readiness_check(session: Session = Depends(get_session)):
    """
    Ready once the database answers and the ledger has its owner row.
    """
    try:
        meta = session.get(LedgerMeta, 1)
        active = session.exec(
            select(func.count(Participant.address)).where(
                Participant.is_active.is_(True))
        ).one()
    except SQLAlchemyError:
        logger.exception("Ledger readiness check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not ready"
        )

    if meta is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ledger not initialized"
        )

    return {
        "status": "ready",
        "database": "online",
        "owner_address": meta.owner_address,
        "total_products": meta.product_counter,
        "active_participants": active,
        "initialized_at": meta.initialized_at,
    }
