from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from freshtrace.core.dependencies import get_caller, get_ledger_service
from freshtrace.db.schema import Stage
from freshtrace.services.ledger import LedgerService
from freshtrace.utils.qr import generate_and_save_qr

from freshtrace.models.product import (
    ProductCreate,
    ProductRead,
    ProductTraceRead,
    QualityScoreUpdate,
    DeliveryCreate,
    VerificationRead,
    CountRead,
    AccessRead,
    QRCodeRead
)
from freshtrace.models.checkpoint import CheckpointCreate, CheckpointRead
from freshtrace.models.certification import CertificationCreate, CertificationRead

router = APIRouter()


@router.post(
    "/",
    response_model=ProductRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register Product",
    tags=["Products"]
)
def register_product(
    payload: ProductCreate,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    """
    Farmers only. Allocates the next product ID and records the harvest
    checkpoint at the product origin.
    """
    product = service.register_product(caller, payload)
    return service.product_view(product)


@router.get(
    "/",
    response_model=List[ProductRead],
    summary="List Products",
    tags=["Products"]
)
def list_products(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=500),
    stage: Optional[Stage] = None,
    service: LedgerService = Depends(get_ledger_service)
):
    products = service.list_products(offset=offset, limit=limit, stage=stage)
    return [service.product_view(p) for p in products]


@router.get(
    "/count",
    response_model=CountRead,
    summary="Total Products",
    tags=["Products"]
)
def get_total_products(
    service: LedgerService = Depends(get_ledger_service)
):
    return CountRead(count=service.get_total_products())


@router.get(
    "/track/{product_code}",
    response_model=ProductTraceRead,
    summary="Trace Product",
    description="Public access point for QR codes: product, full journey and certifications.",
    tags=["Public"]
)
def trace_product(
    product_code: str,
    service: LedgerService = Depends(get_ledger_service)
):
    product = service.get_product_by_code(product_code)
    return service.trace_view(product)


@router.get(
    "/{product_id}",
    response_model=ProductRead,
    summary="Get Product",
    tags=["Products"]
)
def get_product(
    product_id: int,
    service: LedgerService = Depends(get_ledger_service)
):
    return service.product_view(service.get_product(product_id))


@router.get(
    "/{product_id}/verify",
    response_model=VerificationRead,
    summary="Verify Product",
    tags=["Products"]
)
def verify_product(
    product_id: int,
    service: LedgerService = Depends(get_ledger_service)
):
    return VerificationRead(product_id=product_id, verified=service.verify_product(product_id))


@router.get(
    "/{product_id}/access/{address}",
    response_model=AccessRead,
    summary="Check Product Access",
    tags=["Products"]
)
def check_product_access(
    product_id: int,
    address: str,
    service: LedgerService = Depends(get_ledger_service)
):
    return AccessRead(
        product_id=product_id,
        address=address,
        has_access=service.has_product_access(product_id, address)
    )


@router.post(
    "/{product_id}/qr",
    response_model=QRCodeRead,
    status_code=status.HTTP_201_CREATED,
    summary="Generate QR Code",
    tags=["Products"]
)
def generate_product_qr(
    product_id: int,
    service: LedgerService = Depends(get_ledger_service)
):
    """
    Renders the product tracking URL as a PNG and stores its hosted location.
    """
    product = service.get_product(product_id)
    qr_code_url = generate_and_save_qr(product.tracking_url, product.product_code)
    product = service.set_qr_code_url(product_id, qr_code_url)
    return QRCodeRead(
        product_id=product.id,
        product_code=product.product_code,
        tracking_url=product.tracking_url,
        qr_code_url=qr_code_url
    )


# ==========================================
# Journey
# ==========================================

@router.get(
    "/{product_id}/journey",
    response_model=List[CheckpointRead],
    summary="Get Product Journey",
    tags=["Journey"]
)
def get_product_journey(
    product_id: int,
    service: LedgerService = Depends(get_ledger_service)
):
    return service.get_product_journey(product_id)


@router.post(
    "/{product_id}/checkpoints",
    response_model=CheckpointRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add Checkpoint",
    tags=["Journey"]
)
def add_checkpoint(
    product_id: int,
    payload: CheckpointCreate,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    """
    Any active participant. The stage must be strictly later than the
    product's current stage; intermediate stages may be skipped.
    """
    return service.add_checkpoint(caller, product_id, payload)


@router.get(
    "/{product_id}/checkpoints/count",
    response_model=CountRead,
    summary="Count Checkpoints",
    tags=["Journey"]
)
def get_checkpoint_count(
    product_id: int,
    service: LedgerService = Depends(get_ledger_service)
):
    return CountRead(count=service.get_checkpoint_count(product_id))


@router.get(
    "/{product_id}/checkpoints/{index}",
    response_model=CheckpointRead,
    summary="Get Checkpoint",
    tags=["Journey"]
)
def get_checkpoint(
    product_id: int,
    index: int,
    service: LedgerService = Depends(get_ledger_service)
):
    return service.get_checkpoint(product_id, index)


@router.post(
    "/{product_id}/deliver",
    response_model=CheckpointRead,
    status_code=status.HTTP_201_CREATED,
    summary="Mark Delivered",
    tags=["Journey"]
)
def mark_delivered(
    product_id: int,
    payload: DeliveryCreate,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    return service.mark_delivered(caller, product_id, payload.customer_ref)


# ==========================================
# Certifications & Quality
# ==========================================

@router.get(
    "/{product_id}/certifications",
    response_model=List[CertificationRead],
    summary="List Product Certifications",
    tags=["Certifications"]
)
def get_product_certifications(
    product_id: int,
    service: LedgerService = Depends(get_ledger_service)
):
    return [
        service.certification_view(c)
        for c in service.get_product_certifications(product_id)
    ]


@router.post(
    "/{product_id}/certifications",
    response_model=CertificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add Certification",
    tags=["Certifications"]
)
def add_certification(
    product_id: int,
    payload: CertificationCreate,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    certification = service.add_certification(caller, product_id, payload)
    return service.certification_view(certification)


@router.put(
    "/{product_id}/quality-score",
    response_model=ProductRead,
    summary="Update Quality Score",
    tags=["Certifications"]
)
def update_quality_score(
    product_id: int,
    payload: QualityScoreUpdate,
    caller: str = Depends(get_caller),
    service: LedgerService = Depends(get_ledger_service)
):
    product = service.update_quality_score(caller, product_id, payload.score)
    return service.product_view(product)
