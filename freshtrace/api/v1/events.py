from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from freshtrace.core.dependencies import get_ledger_service
from freshtrace.services.ledger import LedgerService
from freshtrace.models.event import LedgerEventRead

router = APIRouter()


@router.get(
    "/",
    response_model=List[LedgerEventRead],
    status_code=status.HTTP_200_OK,
    summary="Replay Ledger Events",
    description="Events committed after the given sequence number, oldest first. "
                "Consumers resume from the last sequence they processed."
)
def list_events(
    after: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    product_id: Optional[int] = None,
    service: LedgerService = Depends(get_ledger_service)
):
    return service.list_events(after=after, limit=limit, product_id=product_id)
