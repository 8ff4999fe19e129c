"""
Property listings: create, browse, fetch one, list mine.

Create validates everything (fields, image count, image type and size, host
verification) before the first upload, so a rejected request never leaves
orphaned images in storage.
"""

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from fastapi import UploadFile
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from nestaway.core.config import Settings
from nestaway.core.exceptions import NotFound, Unverified, ValidationFailed
from nestaway.models.property import Property, RoomType
from nestaway.models.user import User
from nestaway.schemas.property import PropertyCreate, PropertyResponse
from nestaway.schemas.user import UserSummary
from nestaway.utils.file_storage import ObjectStorage, StoredImage, read_image

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("title", "description", "price", "location", "category", "roomType")

SORT_ORDERS = {
    "newest": (Property.created_at.desc(),),
    "price_low": (Property.price.asc(), Property.created_at.desc()),
    "price_high": (Property.price.desc(), Property.created_at.desc()),
    "rating": (Property.rating.desc(), Property.created_at.desc()),
}


@dataclass
class PropertyFilters:
    search: Optional[str] = None
    category: Optional[str] = None
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    beds: Optional[int] = None
    room_type: Optional[str] = None
    guests: Optional[int] = None


@dataclass
class PropertyPage:
    properties: List[PropertyResponse]
    total: int
    total_pages: int
    current_page: int


# ─── Form coercion helpers ────────────────────────────────────────────────────

def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_address(raw: Optional[str]) -> Dict[str, Any]:
    """Parse the 'address' JSON object string. Returns {} on failure."""
    if not raw:
        return {}
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return result if isinstance(result, dict) else {}


def _parse_amenities(raw: Optional[str]) -> List[str]:
    """Parse the 'amenities' JSON array string. Returns [] on failure."""
    if not raw:
        return []
    try:
        result = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    if not isinstance(result, list):
        return []
    # Amenities are a set of free-form tags
    tags: List[str] = []
    for item in result:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


def _to_number(value: Any, cast, field: str, errors: List[str]):
    try:
        return cast(str(value).strip())
    except (TypeError, ValueError):
        errors.append(f"{field} must be a number")
        return None


def _escape_like(text: str) -> str:
    """Make LIKE metacharacters match themselves."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _summary(user: Optional[User]) -> Optional[UserSummary]:
    return UserSummary.model_validate(user) if user is not None else None


def _validation_messages(exc: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]


class ListingService:
    def __init__(self, db: Session, storage: ObjectStorage, settings: Settings):
        self.db = db
        self.storage = storage
        self.settings = settings

    # ─── Validation ───────────────────────────────────────────────────────────

    def validate_fields(self, fields: Dict[str, Any]) -> PropertyCreate:
        """
        Coerce raw multipart values into a PropertyCreate.

        Raises ValidationFailed with `missing` (field -> True) for absent
        required text fields and `errors` for everything else.
        """
        missing = {name: True for name in REQUIRED_TEXT_FIELDS if _blank(fields.get(name))}
        if missing:
            raise ValidationFailed("Please fill in all required fields", missing=missing)

        errors: List[str] = []
        price = _to_number(fields["price"], float, "price", errors)
        if price is not None and not price > 0:
            errors.append("price must be greater than 0")

        category = str(fields["category"]).strip().lower()
        if category not in self.settings.property_categories:
            errors.append(f"category must be one of: {', '.join(self.settings.property_categories)}")

        room_type = str(fields["roomType"]).strip().lower()
        if room_type not in {r.value for r in RoomType}:
            errors.append(f"roomType must be one of: {', '.join(r.value for r in RoomType)}")

        counts: Dict[str, Any] = {}
        for name in ("beds", "bedrooms", "maxGuests"):
            raw = fields.get(name)
            if _blank(raw):
                errors.append(f"{name} is required")
                continue
            value = _to_number(raw, float, name, errors)
            if value is None:
                continue
            if not value.is_integer():
                errors.append(f"{name} must be a whole number")
            elif value < 1:
                errors.append(f"{name} must be at least 1")
            else:
                counts[name] = int(value)

        bathrooms = None
        if _blank(fields.get("bathrooms")):
            errors.append("bathrooms is required")
        else:
            bathrooms = _to_number(fields["bathrooms"], float, "bathrooms", errors)
            if bathrooms is not None:
                if bathrooms < 0.5:
                    errors.append("bathrooms must be at least 0.5")
                elif not (bathrooms * 2).is_integer():
                    errors.append("bathrooms must be in steps of 0.5")

        if errors:
            raise ValidationFailed("Validation error", errors=errors)

        try:
            return PropertyCreate(
                title=str(fields["title"]).strip(),
                description=str(fields["description"]).strip(),
                price=price,
                location=str(fields["location"]).strip(),
                address=_parse_address(fields.get("address")),
                category=category,
                room_type=room_type,
                beds=counts["beds"],
                bedrooms=counts["bedrooms"],
                bathrooms=bathrooms,
                max_guests=counts["maxGuests"],
                amenities=_parse_amenities(fields.get("amenities")),
            )
        except ValidationError as e:
            raise ValidationFailed("Validation error", errors=_validation_messages(e)) from e

    def _check_image_count(self, image_files: List[UploadFile]) -> None:
        limit = self.settings.MAX_IMAGES_PER_PROPERTY
        if not image_files:
            raise ValidationFailed("At least one image is required", missing={"images": True})
        if len(image_files) > limit:
            raise ValidationFailed(f"Too many files. Maximum is {limit} images", errors=[f"images: at most {limit} allowed"])

    # ─── Operations ───────────────────────────────────────────────────────────

    async def create(self, host_id: UUID, fields: Dict[str, Any], image_files: List[UploadFile]) -> PropertyResponse:
        data = self.validate_fields(fields)
        real_files = [f for f in (image_files or []) if f is not None and f.filename]
        self._check_image_count(real_files)

        host = self.db.get(User, host_id)
        if host is None:
            raise NotFound("User not found")
        if not host.verified:
            raise Unverified("Please verify your email to list a property")

        payloads = [await read_image(f, self.settings.MAX_IMAGE_SIZE_MB) for f in real_files]

        stored: List[StoredImage] = []
        try:
            for payload in payloads:
                stored.append(await self.storage.upload(payload))
        except Exception:
            logger.exception("Image upload failed for host %s after %d of %d files", host_id, len(stored), len(payloads))
            await self._discard(stored)
            raise

        prop = Property(
            title=data.title,
            description=data.description,
            price=data.price,
            location=data.location,
            address=data.address.model_dump(by_alias=True, exclude_none=True),
            category=data.category,
            room_type=data.room_type.value,
            beds=data.beds,
            bedrooms=data.bedrooms,
            bathrooms=data.bathrooms,
            max_guests=data.max_guests,
            amenities=data.amenities,
            images=[image.to_document() for image in stored],
            reviews=[],
            host_id=host.id,
        )
        self.db.add(prop)
        self.db.commit()
        self.db.refresh(prop)

        logger.info("Property %s created by host %s with %d images", prop.id, host_id, len(stored))
        return self._present([prop])[0]

    async def _discard(self, stored: Iterable[StoredImage]) -> None:
        for image in stored:
            try:
                await self.storage.delete(image.storage_id)
            except Exception:
                logger.exception("Could not remove orphaned image %s", image.storage_id)

    def list(self, filters: PropertyFilters, page: int = 1, page_size: int = 12, sort: str = "newest") -> PropertyPage:
        query = self.db.query(Property).filter(Property.is_available.is_(True))

        if filters.search:
            term = "%" + _escape_like(filters.search.strip()) + "%"
            query = query.filter(
                or_(
                    Property.title.ilike(term, escape="\\"),
                    Property.description.ilike(term, escape="\\"),
                    Property.location.ilike(term, escape="\\"),
                )
            )
        if filters.category:
            query = query.filter(Property.category == filters.category.strip().lower())
        if filters.price_min is not None:
            query = query.filter(Property.price >= filters.price_min)
        if filters.price_max is not None:
            query = query.filter(Property.price <= filters.price_max)
        if filters.beds is not None:
            query = query.filter(Property.beds >= filters.beds)
        if filters.room_type:
            query = query.filter(Property.room_type == filters.room_type.strip().lower())
        if filters.guests is not None:
            query = query.filter(Property.max_guests >= filters.guests)

        total = query.count()
        rows = (
            query.options(selectinload(Property.host))
            .order_by(*SORT_ORDERS.get(sort, SORT_ORDERS["newest"]))
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return PropertyPage(
            properties=self._present(rows),
            total=total,
            total_pages=math.ceil(total / page_size),
            current_page=page,
        )

    def get_by_id(self, property_id) -> PropertyResponse:
        try:
            key = property_id if isinstance(property_id, UUID) else UUID(str(property_id))
        except ValueError:
            raise NotFound("Property not found")
        prop = self.db.get(Property, key)
        if prop is None:
            raise NotFound("Property not found")
        return self._present([prop])[0]

    def list_by_host(self, host_id: UUID) -> List[PropertyResponse]:
        rows = (
            self.db.query(Property)
            .options(selectinload(Property.host))
            .filter(Property.host_id == host_id)
            .order_by(Property.created_at.desc())
            .all()
        )
        return self._present(rows)

    # ─── Presentation ─────────────────────────────────────────────────────────

    def _present(self, rows: List[Property]) -> List[PropertyResponse]:
        """Join host and reviewer identities onto the stored documents."""
        reviewer_ids = set()
        for prop in rows:
            for review in prop.reviews or []:
                try:
                    reviewer_ids.add(UUID(str(review.get("user"))))
                except ValueError:
                    continue

        reviewers: Dict[str, User] = {}
        if reviewer_ids:
            for user in self.db.query(User).filter(User.id.in_(reviewer_ids)).all():
                reviewers[str(user.id)] = user

        result = []
        for prop in rows:
            reviews = [
                {
                    "user": _summary(reviewers.get(str(review.get("user")))),
                    "rating": review.get("rating"),
                    "comment": review.get("comment"),
                    "createdAt": review.get("createdAt"),
                }
                for review in prop.reviews or []
            ]
            result.append(
                PropertyResponse(
                    id=prop.id,
                    title=prop.title,
                    description=prop.description,
                    price=prop.price,
                    location=prop.location,
                    address=prop.address or {},
                    category=prop.category,
                    room_type=prop.room_type,
                    beds=prop.beds,
                    bedrooms=prop.bedrooms,
                    bathrooms=prop.bathrooms,
                    max_guests=prop.max_guests,
                    amenities=prop.amenities or [],
                    images=prop.images or [],
                    host=UserSummary.model_validate(prop.host) if prop.host else None,
                    rating=prop.rating or 0,
                    reviews=reviews,
                    is_available=prop.is_available,
                    created_at=prop.created_at,
                    updated_at=prop.updated_at,
                )
            )
        return result
