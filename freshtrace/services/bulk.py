import csv
import json
from pathlib import Path

from loguru import logger

from freshtrace.db.schema import utcnow
from freshtrace.models.batch import BatchItemRead, BatchRead
from freshtrace.models.product import ProductCreate
from freshtrace.services import codes
from freshtrace.services.ledger import LedgerService
from freshtrace.utils.qr import render_qr


METADATA_FILE = "batch_metadata.json"
REGISTRATION_CSV = "ledger_registration.csv"
CSV_HEADERS = ["Product ID", "Product Code", "Name", "Type",
               "Origin", "Organic", "Tracking URL"]


def bulk_register(service: LedgerService, farmer: str, template: ProductCreate,
                  quantity: int, output_root: Path) -> BatchRead:
    """
    Registers ``quantity`` identical products for ``farmer`` and writes a
    labelling kit into ``output_root/<batch code>``: one QR PNG per
    product, the batch metadata as JSON, and a CSV manifest.

    Each product is its own ledger transaction; a failure part way leaves
    the products already registered in place.
    """
    if quantity <= 0:
        raise ValueError("Quantity must be a positive number.")

    participant = service.get_participant(farmer)
    batch_code = codes.generate_batch_code(participant.name, quantity)
    batch_dir = Path(output_root) / batch_code
    batch_dir.mkdir(parents=True, exist_ok=True)

    logger.info(
        f"Bulk registering {quantity} x '{template.name}' for {farmer} as {batch_code}")

    items = []
    for sequence in range(1, quantity + 1):
        product = service.register_product(farmer, template)
        qr_path = render_qr(product.tracking_url,
                            batch_dir / f"{product.product_code}.png")
        items.append(BatchItemRead(
            sequence_number=sequence,
            product_id=product.id,
            product_code=product.product_code,
            tracking_url=product.tracking_url,
            qr_path=str(qr_path),
        ))

    batch = BatchRead(
        batch_code=batch_code,
        product_name=template.name,
        farmer_address=farmer,
        quantity=quantity,
        output_dir=str(batch_dir),
        generated_at=utcnow(),
        items=items,
    )

    (batch_dir / METADATA_FILE).write_text(
        json.dumps(batch.model_dump(mode="json"), indent=2), encoding="utf-8")

    with open(batch_dir / REGISTRATION_CSV, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(CSV_HEADERS)
        for item in items:
            writer.writerow([
                item.product_id, item.product_code, template.name,
                template.product_type, template.origin,
                "yes" if template.is_organic else "no", item.tracking_url,
            ])

    logger.info(f"Batch {batch_code} written to {batch_dir}")
    return batch
