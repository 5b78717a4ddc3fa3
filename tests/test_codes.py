import re

import pytest

from freshtrace.core.config import settings
from freshtrace.services import codes


class TestProductCodes:
    def test_format(self):
        code = codes.generate_product_code("Organic Apples")
        assert code.startswith("ORGANICAPP_")
        assert codes.is_valid_product_code(code)

    def test_timestamp_is_base36_millis(self):
        code = codes.generate_product_code("Milk", epoch_ms=36 ** 5)
        assert code.split("_")[1] == "100000"

    @pytest.mark.parametrize("product_type", ["***", "--", "茶"])
    def test_type_without_alphanumerics_uses_default_prefix(self, product_type):
        code = codes.generate_product_code(product_type)
        assert code.startswith("PRD_")
        assert codes.is_valid_product_code(code)

    def test_short_type_is_padded(self):
        code = codes.generate_product_code("Eg")
        assert code.startswith("EGX_")
        assert codes.is_valid_product_code(code)

    @pytest.mark.parametrize("code", [
        "AB_LXK2J9A0_A7B9C2",        # prefix too short
        "APPLE_LXK2J9A0_A7B9",       # random part too short
        "APPLE_LXK2J9A0_A7B9CZ",     # random part not hex
        "apple_LXK2J9A0_A7B9C2",
    ])
    def test_invalid_codes(self, code):
        assert not codes.is_valid_product_code(code)

    def test_codes_differ(self):
        assert len({codes.generate_product_code("Fruit") for _ in range(50)}) == 50


class TestBatchCodes:
    def test_format(self):
        batch = codes.generate_batch_code("Farm 01", 100)
        assert re.match(r"^BATCH_\d{8}_FARM01_100_[A-F0-9]{4}$", batch)

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_quantity_must_be_positive(self, quantity):
        with pytest.raises(ValueError):
            codes.generate_batch_code("FARM01", quantity)

    def test_supplier_without_alphanumerics(self):
        batch = codes.generate_batch_code("田中", 5)
        assert re.match(r"^BATCH_\d{8}_FARM_5_[A-F0-9]{4}$", batch)


class TestIdentity:
    def test_tracking_url(self):
        assert codes.tracking_url("APPLE_LXK2J9A0_A7B9C2") == \
            f"{settings.public_url}/api/v1/products/track/APPLE_LXK2J9A0_A7B9C2"

    def test_verification_hash_is_deterministic_for_fixed_time(self):
        a = codes.verification_hash("APPLE_LXK2J9A0_A7B9C2", "Apples", "Shimla", epoch_ms=1)
        b = codes.verification_hash("APPLE_LXK2J9A0_A7B9C2", "Apples", "Shimla", epoch_ms=1)
        c = codes.verification_hash("APPLE_LXK2J9A0_A7B9C2", "Apples", "Kullu", epoch_ms=1)
        assert a == b
        assert a != c
        assert len(a) == 64

    def test_product_identity(self):
        identity = codes.product_identity("Fruit", "Apples", "Shimla")
        assert codes.is_valid_product_code(identity["product_code"])
        assert identity["tracking_url"].endswith(identity["product_code"])
