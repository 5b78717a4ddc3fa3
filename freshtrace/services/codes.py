"""
Product code generation for labels and QR tracking.

Codes have the shape ``PREFIX_TIMESTAMP_RANDOM``, e.g. ``APPLE_LXK2J9A0_A7B9C2``:
the upper-cased product type (``PRD`` when it has no letters or digits),
the epoch milliseconds in base 36 and three random bytes in hex.
"""
import hashlib
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Dict, Optional

from freshtrace.core.config import settings


PRODUCT_CODE_PATTERN = re.compile(r"^[A-Z0-9]{3,10}_[A-Z0-9]{5,10}_[A-F0-9]{6}$")
_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"

DEFAULT_PRODUCT_PREFIX = "PRD"
DEFAULT_SUPPLIER_PREFIX = "FARM"
TRACK_PATH = "/api/v1/products/track"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def _code_prefix(text: str, fallback: str) -> str:
    prefix = re.sub(r"[^A-Z0-9]", "", text.upper())[:10]
    if not prefix:
        return fallback
    # Short types are padded so the code still matches PRODUCT_CODE_PATTERN
    return prefix.ljust(3, "X")


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def generate_product_code(product_type: str, epoch_ms: Optional[int] = None) -> str:
    prefix = _code_prefix(product_type, DEFAULT_PRODUCT_PREFIX)
    stamp = _to_base36(epoch_ms if epoch_ms is not None else _epoch_ms())
    return f"{prefix}_{stamp}_{secrets.token_hex(3).upper()}"


def is_valid_product_code(code: str) -> bool:
    return bool(PRODUCT_CODE_PATTERN.match(code))


def generate_batch_code(supplier_code: str, quantity: int) -> str:
    """
    Example: BATCH_20251106_FARM01_100_A7B9
    """
    if quantity <= 0:
        raise ValueError("Quantity must be a positive number.")
    supplier = _code_prefix(supplier_code, DEFAULT_SUPPLIER_PREFIX)
    day = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"BATCH_{day}_{supplier}_{quantity}_{secrets.token_hex(2).upper()}"


def tracking_url(product_code: str) -> str:
    return f"{settings.public_url}{TRACK_PATH}/{product_code}"


def verification_hash(product_code: str, name: str, origin: str, epoch_ms: Optional[int] = None) -> str:
    stamp = epoch_ms if epoch_ms is not None else _epoch_ms()
    data = f"{product_code}|{name}|{origin}|{stamp}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def product_identity(product_type: str, name: str, origin: str) -> Dict[str, str]:
    """Code, tracking URL and fingerprint for a product about to be registered."""
    stamp = _epoch_ms()
    code = generate_product_code(product_type, epoch_ms=stamp)
    return {
        "product_code": code,
        "tracking_url": tracking_url(code),
        "verification_hash": verification_hash(code, name, origin, epoch_ms=stamp),
    }
