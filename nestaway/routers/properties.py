from fastapi import APIRouter, Depends, status, Query, Form, UploadFile, File
from nestaway.api.deps import get_current_user_id, get_listing_service
from nestaway.schemas.property import PropertyCreatedResponse, PropertyListResponse, PropertyResponse
from nestaway.services.listing_service import ListingService, PropertyFilters
from typing import List, Optional
from uuid import UUID

router = APIRouter(prefix="/properties", tags=["Properties"])


# ─── LIST (public) ────────────────────────────────────────────────────────────

@router.get("", response_model=PropertyListResponse)
def list_properties(
    listings: ListingService = Depends(get_listing_service),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    price_min: Optional[float] = Query(None, alias="priceMin"),
    price_max: Optional[float] = Query(None, alias="priceMax"),
    beds: Optional[int] = Query(None, ge=0),
    room_type: Optional[str] = Query(None, alias="roomType"),
    guests: Optional[int] = Query(None, ge=0),
    sort: str = Query("newest", pattern="^(newest|price_low|price_high|rating)$"),
):
    """List available properties, newest first, with conjunctive filters."""
    filters = PropertyFilters(
        search=search or None,
        category=category or None,
        price_min=price_min,
        price_max=price_max,
        beds=beds or None,
        room_type=room_type or None,
        guests=guests or None,
    )
    result = listings.list(filters, page=page, page_size=limit, sort=sort)
    return PropertyListResponse(
        properties=result.properties,
        total=result.total,
        total_pages=result.total_pages,
        current_page=result.current_page,
    )


# ─── CREATE: multipart form + image uploads ───────────────────────────────────

@router.post("", response_model=PropertyCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_property(
    # Text fields arrive as strings; the listing service coerces and validates them
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    address: Optional[str] = Form(None),    # JSON object
    category: Optional[str] = Form(None),
    room_type: Optional[str] = Form(None, alias="roomType"),
    beds: Optional[str] = Form(None),
    bedrooms: Optional[str] = Form(None),
    bathrooms: Optional[str] = Form(None),
    amenities: Optional[str] = Form(None),  # JSON array of strings
    max_guests: Optional[str] = Form(None, alias="maxGuests"),
    images: List[UploadFile] = File(default=[]),
    user_id: UUID = Depends(get_current_user_id),
    listings: ListingService = Depends(get_listing_service),
):
    """
    Create a new listing for the signed-in (and verified) user.
    Accepts multipart/form-data with 1-10 image files under `images`.
    """
    fields = {
        "title": title,
        "description": description,
        "price": price,
        "location": location,
        "address": address,
        "category": category,
        "roomType": room_type,
        "beds": beds,
        "bedrooms": bedrooms,
        "bathrooms": bathrooms,
        "amenities": amenities,
        "maxGuests": max_guests,
    }
    prop = await listings.create(user_id, fields, images)
    return PropertyCreatedResponse(msg="Property created successfully", property=prop)


# ─── MY LISTINGS (session) ────────────────────────────────────────────────────

@router.get("/user/my-properties", response_model=List[PropertyResponse])
def my_properties(
    user_id: UUID = Depends(get_current_user_id),
    listings: ListingService = Depends(get_listing_service),
):
    return listings.list_by_host(user_id)


# ─── GET single property (public) ────────────────────────────────────────────

@router.get("/{property_id}", response_model=PropertyResponse)
def get_property(property_id: str, listings: ListingService = Depends(get_listing_service)):
    return listings.get_by_id(property_id)
