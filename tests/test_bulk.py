import csv
import json

import pytest

from freshtrace.core.exceptions import Unauthorized
from freshtrace.db.schema import ParticipantRole
from freshtrace.models.participant import ParticipantCreate
from freshtrace.models.product import ProductCreate
from freshtrace.services.bulk import bulk_register, METADATA_FILE, REGISTRATION_CSV
from freshtrace.services.codes import is_valid_product_code
from freshtrace.utils.qr import generate_and_save_qr

from tests.conftest import OWNER, FARMER, INSPECTOR


TEMPLATE = ProductCreate(name="Tomatoes", product_type="Vegetable",
                         origin="Nashik", is_organic=True)


class TestBulkRegistration:
    def test_registers_and_writes_kit(self, chain, tmp_path):
        batch = bulk_register(chain, FARMER, TEMPLATE, 3, tmp_path)

        assert batch.batch_code.startswith("BATCH_")
        assert "_GREENVALLE_3_" in batch.batch_code
        assert [i.product_id for i in batch.items] == [1, 2, 3]
        assert chain.get_total_products() == 3
        assert all(is_valid_product_code(i.product_code) for i in batch.items)

        batch_dir = tmp_path / batch.batch_code
        for item in batch.items:
            assert (batch_dir / f"{item.product_code}.png").exists()

        metadata = json.loads((batch_dir / METADATA_FILE).read_text())
        assert metadata["quantity"] == 3
        assert [i["sequence_number"] for i in metadata["items"]] == [1, 2, 3]

        with open(batch_dir / REGISTRATION_CSV, newline="") as fh:
            rows = list(csv.DictReader(fh))
        assert [r["Product Code"] for r in rows] == [i.product_code for i in batch.items]
        assert rows[0]["Organic"] == "yes"

    def test_every_product_has_harvest_checkpoint(self, chain, tmp_path):
        batch = bulk_register(chain, FARMER, TEMPLATE, 2, tmp_path)
        for item in batch.items:
            assert chain.get_checkpoint_count(item.product_id) == 1

    def test_non_farmer_registers_nothing(self, chain, tmp_path):
        with pytest.raises(Unauthorized):
            bulk_register(chain, INSPECTOR, TEMPLATE, 2, tmp_path)
        assert chain.get_total_products() == 0

    def test_farmer_name_without_alphanumerics(self, ledger, tmp_path):
        ledger.register_participant(OWNER, ParticipantCreate(
            address=FARMER, name="田中農園", role=ParticipantRole.FARMER))
        batch = bulk_register(ledger, FARMER, TEMPLATE, 1, tmp_path)
        assert "_FARM_1_" in batch.batch_code
        assert (tmp_path / batch.batch_code / METADATA_FILE).exists()

    def test_quantity_must_be_positive(self, chain, tmp_path):
        with pytest.raises(ValueError):
            bulk_register(chain, FARMER, TEMPLATE, 0, tmp_path)


class TestQrCodes:
    def test_generate_and_save(self, qr_dir):
        url = generate_and_save_qr("http://localhost:8000/track/X", "APPLE_LXK2J9A0_A7B9C2")
        assert url.endswith("/static/qrcodes/APPLE_LXK2J9A0_A7B9C2.png")
        png = qr_dir / "APPLE_LXK2J9A0_A7B9C2.png"
        assert png.read_bytes()[:8] == b"\x89PNG\r\n\x1a\n"
