from datetime import datetime
from threading import RLock
from typing import List, Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select, func

from freshtrace.core.events import EventBus
from freshtrace.core.exceptions import (
    LedgerError, Unauthorized, NotActive, AlreadyRegistered, NotFound,
    ProductNotFound, ParticipantNotFound, IndexOutOfRange,
    InvalidTransition, OutOfRange
)
from freshtrace.db.schema import (
    LedgerMeta, Participant, ParticipantRole, Product, ProductAccess,
    Checkpoint, ProductCertification, LedgerEvent, EventKind, Stage, as_utc, utcnow
)
from freshtrace.models.participant import ParticipantCreate
from freshtrace.models.product import ProductCreate, ProductRead, ProductTraceRead
from freshtrace.models.checkpoint import CheckpointCreate, CheckpointRead
from freshtrace.models.certification import CertificationCreate, CertificationRead
from freshtrace.models.event import LedgerEventRead
from freshtrace.services import codes


MAX_QUALITY_SCORE = 100
HARVEST_NOTES = "Product harvested"
DELIVERY_LOCATION = "Customer Location"


def _reject(error: LedgerError) -> LedgerError:
    logger.warning(f"Ledger rejected call: {error.name}: {error.message}")
    return error


class LedgerService:
    """
    Product traceability ledger.

    Owns participants, products, their checkpoint journeys and
    certifications, and enforces every role and stage rule. All calls take
    the shared ``lock`` so mutations are serialized and reads never see a
    half-applied write; each mutation is a single transaction whose events
    are persisted with it and published only after commit.
    """

    def __init__(self, session: Session, events: EventBus, lock: RLock):
        self.session = session
        self.events = events
        self.lock = lock
        self._pending: List[LedgerEvent] = []

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _meta(self) -> LedgerMeta:
        meta = self.session.get(LedgerMeta, 1)
        if meta is None:
            raise RuntimeError("Ledger has not been initialized.")
        return meta

    def _require_owner(self, caller: str) -> None:
        if caller != self._meta().owner_address:
            raise _reject(Unauthorized("Only owner can perform this action."))

    def _require_active(self, caller: str) -> Participant:
        participant = self.session.get(Participant, caller)
        if participant is None:
            raise _reject(Unauthorized(
                f"{caller} is not a registered participant."))
        if not participant.is_active:
            raise _reject(NotActive("Not an active participant."))
        return participant

    def _require_role(self, caller: str, role: ParticipantRole) -> Participant:
        participant = self._require_active(caller)
        if participant.role != role:
            raise _reject(Unauthorized(
                f"Unauthorized role: '{role.value}' required, caller is '{participant.role.value}'."))
        return participant

    def _get_product(self, product_id: int) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise _reject(ProductNotFound(product_id))
        return product

    def _checkpoint_count(self, product_id: int) -> int:
        return self.session.exec(
            select(func.count(Checkpoint.id)).where(
                Checkpoint.product_id == product_id)
        ).one()

    def _certification_count(self, product_id: int) -> int:
        return self.session.exec(
            select(func.count(ProductCertification.id)).where(
                ProductCertification.product_id == product_id)
        ).one()

    def _unique_identity(self, data: ProductCreate) -> dict:
        # Codes embed random bytes; retry on the rare collision
        for _ in range(10):
            identity = codes.product_identity(
                data.product_type, data.name, data.origin)
            existing = self.session.exec(
                select(Product).where(
                    Product.product_code == identity["product_code"])
            ).first()
            if not existing:
                return identity
        raise ValueError(
            f"Could not generate a unique product code for '{data.product_type}'.")

    def _grant_access(self, product_id: int, address: str) -> None:
        if self.session.get(ProductAccess, (product_id, address)) is None:
            self.session.add(ProductAccess(
                product_id=product_id, address=address))

    def _emit(self, kind: EventKind, product_id: Optional[int] = None,
              address: Optional[str] = None, **payload) -> None:
        event = LedgerEvent(kind=kind, product_id=product_id,
                            address=address, payload=payload)
        self.session.add(event)
        self._pending.append(event)

    def _flush(self) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            self._pending.clear()
            logger.error(f"Ledger transaction failed: {e}")
            raise

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            self._pending.clear()
            logger.error(f"Ledger transaction failed: {e}")
            raise

        committed = [LedgerEventRead.model_validate(e) for e in self._pending]
        self._pending.clear()
        self.events.publish(committed)

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def initialize(self, owner_address: str, owner_name: str = "System Admin",
                   owner_contact: str = "") -> LedgerMeta:
        """
        Creates the ledger on first start and registers the owner as Admin.
        An existing ledger keeps its original owner.
        """
        with self.lock:
            meta = self.session.get(LedgerMeta, 1)
            if meta is not None:
                if meta.owner_address != owner_address:
                    logger.warning(
                        f"Ledger already owned by {meta.owner_address}; ignoring configured owner {owner_address}.")
                return meta

            meta = LedgerMeta(owner_address=owner_address)
            admin = Participant(
                address=owner_address,
                name=owner_name,
                contact_info=owner_contact,
                role=ParticipantRole.ADMIN,
            )
            self.session.add(meta)
            self.session.add(admin)
            self._emit(EventKind.PARTICIPANT_REGISTERED, address=owner_address,
                       name=owner_name, role=ParticipantRole.ADMIN.value)
            self._commit()
            self.session.refresh(meta)

            logger.info(f"Ledger initialized, owner {owner_address}")
            return meta

    # ------------------------------------------------------------------
    # Participants
    # ------------------------------------------------------------------

    def register_participant(self, caller: str, data: ParticipantCreate) -> Participant:
        with self.lock:
            self._require_owner(caller)

            participant = self.session.get(Participant, data.address)
            if participant is not None and participant.is_active:
                raise _reject(AlreadyRegistered(
                    f"Participant {data.address} is already registered."))

            if participant is None:
                participant = Participant(
                    address=data.address,
                    name=data.name,
                    contact_info=data.contact_info,
                    role=data.role,
                )
            else:
                # A deactivated address may be registered again by the owner
                participant.name = data.name
                participant.contact_info = data.contact_info
                participant.role = data.role
                participant.is_active = True
                participant.registered_at = utcnow()

            self.session.add(participant)
            self._emit(EventKind.PARTICIPANT_REGISTERED, address=data.address,
                       name=data.name, role=data.role.value)
            self._commit()
            self.session.refresh(participant)

            logger.info(
                f"Registered participant {participant.address} ({participant.role.value})")
            return participant

    def deactivate_participant(self, caller: str, address: str) -> Participant:
        with self.lock:
            self._require_owner(caller)

            participant = self.session.get(Participant, address)
            if participant is None:
                raise _reject(ParticipantNotFound(address))
            if not participant.is_active:
                raise _reject(NotActive(
                    f"Participant {address} is already inactive."))

            participant.is_active = False
            self.session.add(participant)
            self._emit(EventKind.PARTICIPANT_DEACTIVATED, address=address)
            self._commit()
            self.session.refresh(participant)

            logger.info(f"Deactivated participant {address}")
            return participant

    def get_participant(self, address: str) -> Participant:
        with self.lock:
            participant = self.session.get(Participant, address)
            if participant is None:
                raise ParticipantNotFound(address)
            return participant

    def list_participants(self, role: Optional[ParticipantRole] = None) -> List[Participant]:
        with self.lock:
            statement = select(Participant)
            if role is not None:
                statement = statement.where(Participant.role == role)
            statement = statement.order_by(Participant.registered_at.asc())
            return list(self.session.exec(statement).all())

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def register_product(self, caller: str, data: ProductCreate) -> Product:
        with self.lock:
            farmer = self._require_role(caller, ParticipantRole.FARMER)

            identity = self._unique_identity(data)
            meta = self._meta()
            meta.product_counter += 1
            product_id = meta.product_counter

            product = Product(
                id=product_id,
                name=data.name,
                product_type=data.product_type,
                origin=data.origin,
                farmer_address=caller,
                current_stage=Stage.HARVEST,
                is_organic=data.is_organic,
                **identity,
            )
            self.session.add(meta)
            self.session.add(product)
            # Product row must exist before rows referencing it
            self._flush()

            self.session.add(Checkpoint(
                product_id=product_id,
                position=0,
                stage=Stage.HARVEST,
                location=data.origin,
                timestamp=product.harvested_at,
                verifier_address=caller,
                verifier_name=farmer.name,
                verifier_role=farmer.role,
                temperature=0,
                notes=HARVEST_NOTES,
            ))
            self._grant_access(product_id, caller)

            self._emit(EventKind.PRODUCT_REGISTERED, product_id=product_id,
                       address=caller, name=data.name,
                       product_code=identity["product_code"])
            self._emit(EventKind.CHECKPOINT_ADDED, product_id=product_id,
                       address=caller, stage=Stage.HARVEST.value)
            self._commit()
            self.session.refresh(product)

            logger.info(
                f"Registered product #{product.id} '{product.name}' ({product.product_code}) by {caller}")
            return product

    def get_product(self, product_id: int) -> Product:
        with self.lock:
            return self._get_product(product_id)

    def get_product_by_code(self, product_code: str) -> Product:
        with self.lock:
            product = self.session.exec(
                select(Product).where(Product.product_code == product_code)
            ).first()
            if product is None:
                raise NotFound(f"No product with code '{product_code}'.")
            return product

    def list_products(self, offset: int = 0, limit: int = 50,
                      stage: Optional[Stage] = None) -> List[Product]:
        with self.lock:
            statement = select(Product)
            if stage is not None:
                statement = statement.where(Product.current_stage == stage)
            statement = statement.order_by(
                Product.id.asc()).offset(offset).limit(limit)
            return list(self.session.exec(statement).all())

    def get_total_products(self) -> int:
        with self.lock:
            return self._meta().product_counter

    def verify_product(self, product_id: int) -> bool:
        with self.lock:
            self._get_product(product_id)
            return self._checkpoint_count(product_id) > 0

    def has_product_access(self, product_id: int, address: str) -> bool:
        with self.lock:
            self._get_product(product_id)
            return self.session.get(ProductAccess, (product_id, address)) is not None

    def set_qr_code_url(self, product_id: int, qr_code_url: str) -> Product:
        """Stores the hosted QR image location; not a ledger transition."""
        with self.lock:
            product = self._get_product(product_id)
            product.qr_code_url = qr_code_url
            self.session.add(product)
            self._commit()
            self.session.refresh(product)
            return product

    # ------------------------------------------------------------------
    # Journey
    # ------------------------------------------------------------------

    def add_checkpoint(self, caller: str, product_id: int, data: CheckpointCreate) -> Checkpoint:
        with self.lock:
            verifier = self._require_active(caller)
            product = self._get_product(product_id)

            # Skipping stages is allowed; standing still or going back is not
            if data.stage.ordinal <= product.current_stage.ordinal:
                raise _reject(InvalidTransition(
                    f"Invalid stage progression: {product.current_stage.value} -> {data.stage.value}."))

            checkpoint = Checkpoint(
                product_id=product_id,
                position=self._checkpoint_count(product_id),
                stage=data.stage,
                location=data.location,
                verifier_address=caller,
                verifier_name=verifier.name,
                verifier_role=verifier.role,
                temperature=data.temperature,
                notes=data.notes,
                evidence_hash=data.evidence_hash,
            )
            product.current_stage = data.stage
            product.last_temperature = data.temperature

            self.session.add(checkpoint)
            self.session.add(product)
            self._emit(EventKind.CHECKPOINT_ADDED, product_id=product_id,
                       address=caller, stage=data.stage.value)
            self._emit(EventKind.TEMPERATURE_RECORDED, product_id=product_id,
                       address=caller, temperature=data.temperature,
                       location=data.location)
            self._commit()
            self.session.refresh(checkpoint)

            logger.info(
                f"Product #{product_id} moved to {data.stage.value} by {caller}")
            return checkpoint

    def mark_delivered(self, caller: str, product_id: int, customer_ref: str) -> Checkpoint:
        with self.lock:
            courier = self._require_role(
                caller, ParticipantRole.DELIVERY_PARTNER)
            product = self._get_product(product_id)

            # Appends even when the product is already delivered
            checkpoint = Checkpoint(
                product_id=product_id,
                position=self._checkpoint_count(product_id),
                stage=Stage.DELIVERED,
                location=DELIVERY_LOCATION,
                verifier_address=caller,
                verifier_name=courier.name,
                verifier_role=courier.role,
                temperature=product.last_temperature,
                notes=f"Delivered to {customer_ref}",
            )
            product.current_stage = Stage.DELIVERED

            self.session.add(checkpoint)
            self.session.add(product)
            self._grant_access(product_id, customer_ref)
            self._emit(EventKind.PRODUCT_DELIVERED, product_id=product_id,
                       address=caller, delivered_to=customer_ref)
            self._commit()
            self.session.refresh(checkpoint)

            logger.info(
                f"Product #{product_id} delivered to {customer_ref} by {caller}")
            return checkpoint

    def get_product_journey(self, product_id: int) -> List[Checkpoint]:
        with self.lock:
            self._get_product(product_id)
            return list(self.session.exec(
                select(Checkpoint)
                .where(Checkpoint.product_id == product_id)
                .order_by(Checkpoint.position.asc())
            ).all())

    def get_checkpoint_count(self, product_id: int) -> int:
        with self.lock:
            self._get_product(product_id)
            return self._checkpoint_count(product_id)

    def get_checkpoint(self, product_id: int, index: int) -> Checkpoint:
        with self.lock:
            self._get_product(product_id)
            count = self._checkpoint_count(product_id)
            if index < 0 or index >= count:
                raise IndexOutOfRange(product_id, index, count)
            return self.session.exec(
                select(Checkpoint).where(
                    Checkpoint.product_id == product_id,
                    Checkpoint.position == index
                )
            ).one()

    # ------------------------------------------------------------------
    # Certifications & quality
    # ------------------------------------------------------------------

    def add_certification(self, caller: str, product_id: int,
                          data: CertificationCreate) -> ProductCertification:
        with self.lock:
            self._require_active(caller)
            product = self._get_product(product_id)

            certification = ProductCertification(
                product_id=product_id,
                position=self._certification_count(product_id),
                name=data.name,
                authority=data.authority,
                expires_at=as_utc(data.expires_at),
                evidence_hash=data.evidence_hash,
                is_valid=True,
                recorded_by=caller,
            )
            product.is_certified = True

            self.session.add(certification)
            self.session.add(product)
            self._emit(EventKind.CERTIFICATION_ADDED, product_id=product_id,
                       address=caller, name=data.name)
            self._commit()
            self.session.refresh(certification)

            logger.info(
                f"Certification '{data.name}' added to product #{product_id} by {caller}")
            return certification

    def get_product_certifications(self, product_id: int) -> List[ProductCertification]:
        with self.lock:
            self._get_product(product_id)
            return list(self.session.exec(
                select(ProductCertification)
                .where(ProductCertification.product_id == product_id)
                .order_by(ProductCertification.position.asc())
            ).all())

    def update_quality_score(self, caller: str, product_id: int, score: int) -> Product:
        with self.lock:
            self._require_role(caller, ParticipantRole.QUALITY_INSPECTOR)
            product = self._get_product(product_id)

            if score < 0 or score > MAX_QUALITY_SCORE:
                raise _reject(OutOfRange(
                    f"Score must be between 0 and {MAX_QUALITY_SCORE}, got {score}."))

            product.quality_score = score
            self.session.add(product)
            self._emit(EventKind.QUALITY_SCORE_UPDATED, product_id=product_id,
                       address=caller, score=score)
            self._commit()
            self.session.refresh(product)

            logger.info(
                f"Quality score of product #{product_id} set to {score} by {caller}")
            return product

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def list_events(self, after: int = 0, limit: int = 100,
                    product_id: Optional[int] = None) -> List[LedgerEvent]:
        with self.lock:
            statement = select(LedgerEvent).where(LedgerEvent.sequence > after)
            if product_id is not None:
                statement = statement.where(
                    LedgerEvent.product_id == product_id)
            statement = statement.order_by(
                LedgerEvent.sequence.asc()).limit(limit)
            return list(self.session.exec(statement).all())

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def product_view(self, product: Product) -> ProductRead:
        with self.lock:
            return ProductRead(
                **product.model_dump(),
                stage_ordinal=product.current_stage.ordinal,
                checkpoint_count=self._checkpoint_count(product.id),
            )

    @staticmethod
    def certification_view(certification: ProductCertification,
                           now: Optional[datetime] = None) -> CertificationRead:
        now = as_utc(now or utcnow())
        return CertificationRead(
            **certification.model_dump(),
            is_expired=as_utc(certification.expires_at) <= now,
        )

    def trace_view(self, product: Product) -> ProductTraceRead:
        """
        The full public trace: product, journey and certifications.
        """
        with self.lock:
            base = self.product_view(product)
            journey = [
                CheckpointRead.model_validate(c)
                for c in self.get_product_journey(product.id)
            ]
            certifications = [
                self.certification_view(c)
                for c in self.get_product_certifications(product.id)
            ]
            return ProductTraceRead(
                **base.model_dump(),
                journey=journey,
                certifications=certifications,
            )
