from datetime import timedelta
from threading import RLock

from loguru import logger
from sqlmodel import Session

from freshtrace.core.config import settings
from freshtrace.core.events import EventBus
from freshtrace.core.exceptions import AlreadyRegistered
from freshtrace.db.core import engine, init_db
from freshtrace.db.schema import ParticipantRole, Stage, utcnow
from freshtrace.models.participant import ParticipantCreate
from freshtrace.models.product import ProductCreate
from freshtrace.models.checkpoint import CheckpointCreate
from freshtrace.models.certification import CertificationCreate
from freshtrace.services.ledger import LedgerService


# 1. Demo supply chain, one participant per role
DEMO_PARTICIPANTS = [
    ("0xF4rm3r", "Green Valley Farm", "farmer@greenvalley.com", ParticipantRole.FARMER),
    ("0x1nsp3ct", "Quality Inspector", "inspector@fssai.gov", ParticipantRole.QUALITY_INSPECTOR),
    ("0xPr0c3ss", "Hill Fresh Processing", "ops@hillfresh.in", ParticipantRole.PROCESSOR),
    ("0xP4ck", "PackRight", "line@packright.in", ParticipantRole.PACKAGER),
    ("0xTr4nsp0rt", "Cold Chain Logistics", "logistics@coldchain.com", ParticipantRole.TRANSPORTER),
    ("0xW4r3h0use", "Metro Warehouse", "dock@metrowh.in", ParticipantRole.WAREHOUSE_MANAGER),
    ("0xR3ta1l", "Corner Grocer", "store@cornergrocer.in", ParticipantRole.RETAILER),
    ("0xD3l1v3r", "QuickDrop", "riders@quickdrop.in", ParticipantRole.DELIVERY_PARTNER),
]

# 2. Journey of the demo product: (actor, stage, location, temperature, notes)
DEMO_JOURNEY = [
    ("0x1nsp3ct", Stage.QUALITY_CHECK, "FSSAI Lab, Shimla", 15, "Passed residue screening"),
    ("0xPr0c3ss", Stage.PROCESSING, "Hill Fresh Unit 2", 12, "Washed and graded"),
    ("0xP4ck", Stage.PACKAGING, "PackRight Line 4", 10, "Packed in 1kg crates"),
    ("0xTr4nsp0rt", Stage.TRANSPORT, "NH5, en route to Delhi", 4, "Cold chain maintained"),
    ("0xW4r3h0use", Stage.WAREHOUSE, "Metro Warehouse, Delhi", 3, "Bay 12"),
]


def seed_participants(service: LedgerService) -> None:
    logger.info("--- Seeding Participants ---")
    owner = settings.owner_address

    for address, name, contact, role in DEMO_PARTICIPANTS:
        try:
            service.register_participant(owner, ParticipantCreate(
                address=address, name=name, contact_info=contact, role=role))
        except AlreadyRegistered:
            logger.info(f"Participant {address} already present, skipping.")


def seed_product(service: LedgerService) -> None:
    logger.info("--- Seeding Demo Product ---")
    if service.get_total_products() > 0:
        logger.info("Products already present, skipping.")
        return

    product = service.register_product("0xF4rm3r", ProductCreate(
        name="Organic Apples", product_type="Fruit",
        origin="Shimla, HP", is_organic=True))

    for actor, stage, location, temperature, notes in DEMO_JOURNEY:
        service.add_checkpoint(actor, product.id, CheckpointCreate(
            stage=stage, location=location, temperature=temperature, notes=notes))

    service.update_quality_score("0x1nsp3ct", product.id, 96)
    service.add_certification("0x1nsp3ct", product.id, CertificationCreate(
        name="India Organic", authority="APEDA",
        expires_at=utcnow() + timedelta(days=365),
        evidence_hash="ipfs://demo-india-organic"))

    logger.info(
        f"Demo product #{product.id} ready: {product.tracking_url}")


def main():
    init_db(engine)
    with Session(engine) as session:
        service = LedgerService(session, events=EventBus(), lock=RLock())
        service.initialize(settings.owner_address,
                           settings.owner_name, settings.owner_contact)
        seed_participants(service)
        seed_product(service)
    logger.success("Seeding complete.")


if __name__ == "__main__":
    main()
