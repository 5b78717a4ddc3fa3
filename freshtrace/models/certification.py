from datetime import datetime
from sqlmodel import SQLModel, Field


class CertificationCreate(SQLModel):
    """
    Payload for attaching a certification to a product.
    """
    name: str = Field(min_length=2, max_length=150,
                      description="Certification Name")
    authority: str = Field(min_length=2, max_length=150,
                           description="Issuer / Governing Body")
    expires_at: datetime = Field(description="Expiry timestamp (not checked against now)")
    evidence_hash: str = Field(default="", max_length=255)


class CertificationRead(SQLModel):
    """
    Response model.
    """
    position: int
    name: str
    authority: str
    issued_at: datetime
    expires_at: datetime
    evidence_hash: str
    is_valid: bool
    is_expired: bool = Field(
        description="Computed on read: expiry timestamp has passed.")
    recorded_by: str
