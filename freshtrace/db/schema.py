from typing import Optional, Dict, Any
from datetime import datetime, timezone
import uuid
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, JSON
from enum import Enum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Timezone-aware UTC copy of ``value``; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Stage(str, Enum):
    """Supply chain stages in their fixed total order."""
    HARVEST = "harvest"
    QUALITY_CHECK = "quality_check"
    PROCESSING = "processing"
    PACKAGING = "packaging"
    STORAGE = "storage"
    TRANSPORT = "transport"
    WAREHOUSE = "warehouse"
    DELIVERY = "delivery"
    DELIVERED = "delivered"

    @property
    def ordinal(self) -> int:
        return list(Stage).index(self)


class ParticipantRole(str, Enum):
    ADMIN = "admin"
    FARMER = "farmer"
    QUALITY_INSPECTOR = "quality_inspector"
    PROCESSOR = "processor"
    PACKAGER = "packager"
    TRANSPORTER = "transporter"
    WAREHOUSE_MANAGER = "warehouse_manager"
    RETAILER = "retailer"
    DELIVERY_PARTNER = "delivery_partner"


class EventKind(str, Enum):
    PARTICIPANT_REGISTERED = "participant_registered"
    PARTICIPANT_DEACTIVATED = "participant_deactivated"
    PRODUCT_REGISTERED = "product_registered"
    CHECKPOINT_ADDED = "checkpoint_added"
    TEMPERATURE_RECORDED = "temperature_recorded"
    CERTIFICATION_ADDED = "certification_added"
    QUALITY_SCORE_UPDATED = "quality_score_updated"
    PRODUCT_DELIVERED = "product_delivered"


class LedgerMeta(SQLModel, table=True):
    """
    Singleton row holding ledger-wide state.
    The owner is fixed when the ledger is first initialized; the product
    counter only ever grows and is the source of product IDs.
    """
    id: int = Field(
        default=1,
        primary_key=True,
        description="Always 1."
    )
    owner_address: str = Field(
        description="Identity allowed to register and deactivate participants. Example: '0xAdmin'"
    )
    product_counter: int = Field(
        default=0,
        description="Number of products ever registered. The next product gets counter + 1."
    )
    initialized_at: datetime = Field(default_factory=utcnow)


class Participant(SQLModel, table=True):
    """
    An actor authorized to act on products (farm, lab, carrier, shop...).
    Created by the owner, only ever mutated by deactivation, never deleted.
    """
    address: str = Field(
        primary_key=True,
        description="Opaque unique identity handle of the participant. Example: '0xF4rm3r'"
    )
    name: str = Field(
        description="Display name captured on every checkpoint this participant writes. Example: 'Green Valley Farm'"
    )
    contact_info: str = Field(
        default="",
        description="Free-text contact. Example: 'farmer@greenvalley.com'"
    )
    role: ParticipantRole = Field(
        description="The single role that gates which operations this participant may perform."
    )
    is_active: bool = Field(
        default=True,
        description="Inactive participants can read but not mutate."
    )
    registered_at: datetime = Field(default_factory=utcnow)


class ProductAccess(SQLModel, table=True):
    """Identities granted access to a product (its farmer, its customer)."""
    product_id: int = Field(foreign_key="product.id", primary_key=True)
    address: str = Field(primary_key=True)
    granted_at: datetime = Field(default_factory=utcnow)


class Product(SQLModel, table=True):
    """
    A unit of goods tracked through the chain.
    Stage and temperature change only through checkpoints; the quality
    score only through a quality inspector.
    """
    id: int = Field(
        primary_key=True,
        description="Sequential 1-based ID assigned from the ledger counter. Never reused."
    )
    name: str = Field(index=True, description="Example: 'Organic Apples'")
    product_type: str = Field(description="Example: 'Fruit'")
    origin: str = Field(description="Where the product was harvested. Example: 'Shimla, HP'")
    farmer_address: str = Field(
        foreign_key="participant.address",
        index=True,
        description="The farmer who registered the product."
    )
    current_stage: Stage = Field(
        default=Stage.HARVEST,
        description="Always equal to the stage of the last checkpoint."
    )
    is_organic: bool = Field(default=False)
    is_certified: bool = Field(
        default=False,
        description="Becomes true once at least one certification is recorded."
    )
    quality_score: int = Field(default=0, description="0-100, last write wins.")
    last_temperature: float = Field(
        default=0,
        description="Temperature of the most recent checkpoint, in degrees Celsius."
    )
    harvested_at: datetime = Field(default_factory=utcnow)

    product_code: str = Field(
        unique=True,
        index=True,
        description="Human readable tracking code printed on labels. Example: 'FRUIT_LXK2J9A0_A7B9C2'"
    )
    tracking_url: str = Field(description="Public URL encoded in the product QR code.")
    verification_hash: str = Field(description="SHA-256 fingerprint taken at registration.")
    qr_code_url: Optional[str] = Field(default=None)


class Checkpoint(SQLModel, table=True):
    """
    One immutable journey entry describing a stage transition.
    Position is the append index; append order is chronological order.
    """
    __table_args__ = (UniqueConstraint("product_id", "position"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    position: int = Field(description="0-based index within the product journey.")
    stage: Stage
    location: str = Field(default="", description="Free text. Example: 'Cold Store 4, Nashik'")
    timestamp: datetime = Field(default_factory=utcnow)
    verifier_address: str = Field(foreign_key="participant.address")
    verifier_name: str = Field(description="Name of the verifier at write time.")
    verifier_role: ParticipantRole = Field(description="Role of the verifier at write time.")
    temperature: float = Field(default=0)
    notes: str = Field(default="")
    evidence_hash: str = Field(
        default="",
        description="Opaque content pointer for attached documents or images. Example: 'ipfs://Qm...'"
    )


class ProductCertification(SQLModel, table=True):
    """An attestation attached to a product. Append only."""
    __table_args__ = (UniqueConstraint("product_id", "position"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    position: int
    name: str = Field(description="Example: 'USDA Organic'")
    authority: str = Field(description="Issuing body. Example: 'USDA'")
    issued_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime
    evidence_hash: str = Field(default="")
    is_valid: bool = Field(
        default=True,
        description="Set at creation and never rewritten; expiry is computed on read."
    )
    recorded_by: str = Field(foreign_key="participant.address")


class LedgerEvent(SQLModel, table=True):
    """
    Durable outbox of ledger notifications.
    Written in the same transaction as the mutation it describes, so the
    sequence order is the commit order.
    """
    sequence: Optional[int] = Field(default=None, primary_key=True)
    kind: EventKind = Field(index=True)
    product_id: Optional[int] = Field(default=None, index=True)
    address: Optional[str] = Field(
        default=None,
        description="The participant the event concerns (registrant, verifier, farmer...)."
    )
    payload: Dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    created_at: datetime = Field(default_factory=utcnow)
