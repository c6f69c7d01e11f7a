from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from pdfstore.utils.clock import timestamp_type, utcnow


class Item(SQLModel, table=True):
    """A sellable PDF. Managed by the catalog; read-only for checkout."""

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    price: float

    # storage key of the PDF in the bucket, never sent to clients
    file_key: str
    status: str = Field(default="published")  # draft | published

    created_at: datetime = Field(default_factory=utcnow, sa_type=timestamp_type())
