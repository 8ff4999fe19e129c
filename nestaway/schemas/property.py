from pydantic import Field
from typing import Optional, List
from uuid import UUID
from datetime import datetime
from nestaway.models.property import RoomType
from nestaway.schemas.user import CamelModel, UserSummary


# ─── Embedded documents ───────────────────────────────────────────────────────

class Address(CamelModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip_code: Optional[str] = None


class PropertyImage(CamelModel):
    url: str
    storage_id: str


class Review(CamelModel):
    # None when the reviewer's account no longer exists
    user: Optional[UserSummary] = None
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


# ─── Create Schema (built by the listing service after coercing form fields) ──

class PropertyCreate(CamelModel):
    title: str
    description: str
    price: float = Field(..., gt=0)
    location: str
    address: Address = Address()
    category: str
    room_type: RoomType
    beds: int = Field(..., ge=1)
    bedrooms: int = Field(..., ge=1)
    bathrooms: float = Field(..., ge=0.5)
    max_guests: int = Field(..., ge=1)
    amenities: List[str] = []


# ─── Response Schemas ─────────────────────────────────────────────────────────

class PropertyResponse(PropertyCreate):
    id: UUID
    images: List[PropertyImage] = []
    host: Optional[UserSummary] = None
    rating: float = 0
    reviews: List[Review] = []
    is_available: bool = True
    created_at: datetime
    updated_at: Optional[datetime] = None


class PropertyCreatedResponse(CamelModel):
    msg: str
    property: PropertyResponse


class PropertyListResponse(CamelModel):
    properties: List[PropertyResponse]
    total: int
    total_pages: int
    current_page: int
