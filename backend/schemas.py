from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

Role = Literal["teacher", "school", "admin"]
SpaceType = Literal["Classroom", "Laboratory", "Auditorium", "Sports Hall", "Library", "Conference Room"]
Availability = Literal["Weekdays", "Weekends", "Both"]
ListingStatus = Literal["active", "inactive", "pending"]
TimeSlot = Literal["Full Day", "Half Day (Morning)", "Half Day (Evening)"]
BookingStatus = Literal["pending", "confirmed", "rejected", "cancelled", "completed"]
PaymentStatus = Literal["pending", "paid", "refunded"]
PaymentMethod = Literal["cash", "upi", "card", "bank_transfer"]

# Fields never sent back to a client
SENSITIVE_USER_FIELDS = ("password", "reset_password_token", "reset_password_expire", "google_id")


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


# Stored documents

class User(BaseModel):
    id: Optional[str] = None
    name: str
    email: EmailStr
    password: Optional[str] = None  # hashed
    google_id: Optional[str] = None
    role: Role
    phone: str = ""
    school_name: str = ""
    address: str = ""
    subject: str = ""
    experience: int = 0
    avatar: str = ""
    verified: bool = False
    favorites: List[str] = []


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class Listing(BaseModel):
    name: str
    description: str
    space_type: SpaceType
    capacity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    location: str
    coordinates: Optional[Coordinates] = None
    amenities: List[str] = []
    images: List[str] = []
    availability: Availability = "Both"
    status: ListingStatus = "active"
    rating: float = Field(0, ge=0, le=5)
    review_count: int = Field(0, ge=0)

    @field_validator("name", "description", "location")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class ListingUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    space_type: Optional[SpaceType] = None
    capacity: Optional[int] = None
    price: Optional[float] = None
    location: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    amenities: Optional[List[str]] = None
    images: Optional[List[str]] = None
    availability: Optional[Availability] = None
    status: Optional[ListingStatus] = None


class Booking(BaseModel):
    listing: str
    teacher: str
    school: str
    booking_date: date
    time_slot: TimeSlot
    total_price: float = Field(..., ge=0)
    status: BookingStatus = "pending"
    purpose: str
    number_of_students: int = Field(..., ge=1)
    special_requirements: str = ""
    payment_status: PaymentStatus = "pending"
    payment_method: PaymentMethod = "cash"


# Requests

class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str = Field(..., min_length=8)
    role: Role
    phone: str
    school_name: str = ""
    address: str = ""
    subject: str = ""
    experience: int = Field(0, ge=0)

    @field_validator("name", "phone")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8)


class ProfileUpdate(BaseModel):
    """The only user fields a profile update may touch."""
    name: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    school_name: Optional[str] = None
    address: Optional[str] = None
    subject: Optional[str] = None
    experience: Optional[int] = Field(None, ge=0)

    @field_validator("name", "phone")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _strip_required(v)


class BookingCreate(BaseModel):
    listing_id: str
    booking_date: date
    time_slot: TimeSlot
    purpose: str
    number_of_students: int = Field(..., ge=1)
    special_requirements: str = ""
    payment_method: PaymentMethod = "cash"

    @field_validator("purpose")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _strip_required(v)


class StatusUpdate(BaseModel):
    status: BookingStatus
