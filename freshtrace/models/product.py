from typing import List, Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from freshtrace.db.schema import Stage
from freshtrace.models.checkpoint import CheckpointRead
from freshtrace.models.certification import CertificationRead


class ProductCreate(SQLModel):
    name: str = Field(min_length=1, max_length=150)
    product_type: str = Field(min_length=1, max_length=100)
    origin: str = Field(min_length=1, max_length=255)
    is_organic: bool = False


class ProductRead(SQLModel):
    """Basic Product View"""
    id: int
    name: str
    product_type: str
    origin: str
    farmer_address: str
    current_stage: Stage
    stage_ordinal: int
    is_organic: bool
    is_certified: bool
    quality_score: int
    last_temperature: float
    harvested_at: datetime
    product_code: str
    tracking_url: str
    verification_hash: str
    qr_code_url: Optional[str] = None
    checkpoint_count: int


class ProductTraceRead(ProductRead):
    """
    The public trace view behind a product QR code.
    """
    journey: List[CheckpointRead] = []
    certifications: List[CertificationRead] = []


class QualityScoreUpdate(SQLModel):
    # Upper bound is a ledger rule (OutOfRange), not a payload rule
    score: int = Field(ge=0)


class DeliveryCreate(SQLModel):
    customer_ref: str = Field(min_length=1, max_length=128)


class VerificationRead(SQLModel):
    product_id: int
    verified: bool


class CountRead(SQLModel):
    count: int


class AccessRead(SQLModel):
    product_id: int
    address: str
    has_access: bool


class QRCodeRead(SQLModel):
    product_id: int
    product_code: str
    tracking_url: str
    qr_code_url: str
