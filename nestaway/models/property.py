from sqlalchemy import Column, String, Integer, Float, Boolean, Text, ForeignKey, JSON, Uuid
from sqlalchemy.orm import relationship
from nestaway.models.base import BaseModel
import enum


class RoomType(str, enum.Enum):
    ENTIRE_HOME = "entire-home"
    PRIVATE_ROOM = "private-room"
    SHARED_ROOM = "shared-room"


class Property(BaseModel):
    __tablename__ = "properties"

    # Basic Info
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    # Validated against settings.property_categories, a configurable closed set
    category = Column(String(50), nullable=False, index=True)
    room_type = Column(String(20), nullable=False)

    # Location
    location = Column(String(255), nullable=False, index=True)
    address = Column(JSON, default=dict)  # {street, city, state, country, zipCode}

    # Pricing
    price = Column(Float, nullable=False, index=True)

    # Capacity
    beds = Column(Integer, nullable=False)
    bedrooms = Column(Integer, nullable=False)
    bathrooms = Column(Float, nullable=False)
    max_guests = Column(Integer, nullable=False)

    amenities = Column(JSON, default=list)

    # Embedded documents
    images = Column(JSON, default=list)   # [{url, storageId}], 1..10 entries
    reviews = Column(JSON, default=list)  # [{user, rating, comment, createdAt}]

    rating = Column(Float, default=0, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False, index=True)

    # Relationships
    host_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    host = relationship(
        "User",
        back_populates="properties",
        foreign_keys=[host_id],
    )
