from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator


class Listing(BaseModel):
    id: str = ""
    title: str = ""
    category: str = ""
    price: float = 0
    description: str = ""
    imageUrl: Optional[str] = ""
    sellerId: str = ""
    timestamp: Optional[Any] = None

    @field_validator("id", "sellerId", mode="before")
    @classmethod
    def _stringify(cls, value):
        return "" if value is None else str(value)

    @classmethod
    def from_record(cls, record: Dict[str, Any], doc_id: Optional[str] = None) -> "Listing":
        data = dict(record)
        if doc_id is not None:
            data["id"] = doc_id
        return cls(**data)


class ImageFile(BaseModel):
    filename: str
    content_type: str = "application/octet-stream"
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)


class ListingDraft(BaseModel):
    title: str = ""
    category: str = ""
    price: float = float("nan")
    description: str = ""
    image_url: str = ""
    image: Optional[ImageFile] = None

    def to_record(self, image_url: str, seller_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        return {
            "title": self.title,
            "category": self.category,
            "price": self.price,
            "description": self.description,
            "imageUrl": image_url,
            "sellerId": seller_id,
            "timestamp": now.isoformat(),
        }

    def form_values(self) -> Dict[str, str]:
        price = "" if self.price != self.price else f"{self.price:f}".rstrip("0").rstrip(".")
        return {
            "title": self.title,
            "category": self.category,
            "price": price,
            "description": self.description,
            "imageUrl": self.image_url,
        }
