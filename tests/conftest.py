from threading import RLock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from freshtrace.core.config import settings
from freshtrace.core.events import EventBus
from freshtrace.db.core import init_db
from freshtrace.db.schema import ParticipantRole
from freshtrace.main import create_app
from freshtrace.models.participant import ParticipantCreate
from freshtrace.models.product import ProductCreate
from freshtrace.services.ledger import LedgerService


OWNER = settings.owner_address
FARMER = "0xF4rm3r"
INSPECTOR = "0x1nsp3ct"
TRANSPORTER = "0xTr4nsp0rt"
COURIER = "0xD3l1v3r"
STRANGER = "0xNobody"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def ledger(engine, bus):
    with Session(engine) as session:
        service = LedgerService(session, events=bus, lock=RLock())
        service.initialize(OWNER)
        yield service


@pytest.fixture
def chain(ledger):
    """Registers one farmer, inspector, transporter and delivery partner."""
    for address, name, role in [
        (FARMER, "Green Valley Farm", ParticipantRole.FARMER),
        (INSPECTOR, "Quality Inspector", ParticipantRole.QUALITY_INSPECTOR),
        (TRANSPORTER, "Cold Chain Logistics", ParticipantRole.TRANSPORTER),
        (COURIER, "QuickDrop", ParticipantRole.DELIVERY_PARTNER),
    ]:
        ledger.register_participant(OWNER, ParticipantCreate(
            address=address, name=name, contact_info=f"{name}@example.com", role=role))
    return ledger


@pytest.fixture
def apples(chain):
    return chain.register_product(FARMER, ProductCreate(
        name="Apples", product_type="Fruit", origin="Shimla", is_organic=True))


@pytest.fixture
def client(engine):
    app = create_app(engine)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def qr_dir(tmp_path, monkeypatch):
    directory = tmp_path / "qrcodes"
    monkeypatch.setattr("freshtrace.utils.qr.QR_CODE_DIR", directory)
    return directory
