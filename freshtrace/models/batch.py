from typing import List
from datetime import datetime
from sqlmodel import SQLModel


class BatchItemRead(SQLModel):
    sequence_number: int
    product_id: int
    product_code: str
    tracking_url: str
    qr_path: str


class BatchRead(SQLModel):
    """Result of a bulk registration run."""
    batch_code: str
    product_name: str
    farmer_address: str
    quantity: int
    output_dir: str
    generated_at: datetime
    items: List[BatchItemRead] = []
