from typing import List, Optional
from fastapi import APIRouter, Depends, status

from freshtrace.core.dependencies import get_caller, get_ledger_service
from freshtrace.db.schema import ParticipantRole
from freshtrace.services.ledger import LedgerService
from freshtrace.models.participant import ParticipantCreate, ParticipantRead

router = APIRouter()


@router.post(
    "/",
    response_model=ParticipantRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register Participant",
    description="Owner only. Registers a supply chain actor with a single role."
)
def register_participant(
    data: ParticipantCreate,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    return service.register_participant(caller, data)


@router.get(
    "/",
    response_model=List[ParticipantRead],
    status_code=status.HTTP_200_OK,
    summary="List Participants"
)
def list_participants(
    role: Optional[ParticipantRole] = None,
    service: LedgerService = Depends(get_ledger_service)
):
    return service.list_participants(role=role)


@router.get(
    "/{address}",
    response_model=ParticipantRead,
    status_code=status.HTTP_200_OK,
    summary="Get Participant"
)
def get_participant(
    address: str,
    service: LedgerService = Depends(get_ledger_service)
):
    return service.get_participant(address)


@router.post(
    "/{address}/deactivate",
    response_model=ParticipantRead,
    status_code=status.HTTP_200_OK,
    summary="Deactivate Participant",
    description="Owner only. One-way: the participant keeps read access but can no longer write."
)
def deactivate_participant(
    address: str,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    return service.deactivate_participant(caller, address)
