"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from rideshare.domain.enums import AuthMethod, BookingStatus, RideStatus


# ── Requests ──────────────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    phone: str = Field(..., description="Albanian number in local or +355 form.")
    name: str = Field(..., min_length=2, max_length=100)
    city: str = Field(..., min_length=3, max_length=8, description="City code, e.g. TIA")


class LoginRequest(BaseModel):
    phone: str


class VerifyRequest(BaseModel):
    phone: str
    otp: str = Field(..., min_length=4, max_length=10)


class EmailLoginRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    city: Optional[str] = Field(None, max_length=8)


class RideCreateRequest(BaseModel):
    origin_city: str = Field(..., max_length=8)
    destination_city: str = Field(..., max_length=8)
    departure_time: datetime
    pickup_point: str = Field(..., min_length=1, max_length=255)
    stops: list[str] = []
    seats_total: int = Field(..., ge=1, le=8)
    price_per_seat: float = Field(..., gt=0, le=100_000)
    luggage_space: bool = False
    smoking_allowed: bool = False
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = Field(None, max_length=100)


class RideUpdateRequest(BaseModel):
    departure_time: Optional[datetime] = None
    pickup_point: Optional[str] = Field(None, min_length=1, max_length=255)
    seats_total: Optional[int] = Field(None, ge=1, le=8)
    price_per_seat: Optional[float] = Field(None, gt=0, le=100_000)
    stops: Optional[list[str]] = None
    luggage_space: Optional[bool] = None
    smoking_allowed: Optional[bool] = None


class BookingCreateRequest(BaseModel):
    ride_id: int
    seats_count: int = Field(1, ge=1, le=4)
    message: Optional[str] = Field(
        None,
        max_length=1000,
        description="Optional first chat message to the driver.",
    )


class MessageCreateRequest(BaseModel):
    booking_id: int
    content: str = Field(..., max_length=1000)


class RatingCreateRequest(BaseModel):
    ride_id: int
    rated_user_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    city: Optional[str] = Field(None, max_length=8)
    bio: Optional[str] = Field(None, max_length=500)
    photo_url: Optional[str] = Field(None, max_length=500)
    is_driver: Optional[bool] = None
    car_model: Optional[str] = Field(None, max_length=100)
    car_color: Optional[str] = Field(None, max_length=50)
    driving_years: Optional[int] = Field(None, ge=0)


# ── Responses ─────────────────────────────────────────────────────────


class UserPublic(BaseModel):
    id: int
    name: str
    city: str
    bio: Optional[str] = None
    photo_url: Optional[str] = None
    is_driver: bool
    car_model: Optional[str] = None
    car_color: Optional[str] = None
    driving_years: Optional[int] = None
    rating: float
    total_rides: int
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserProfile(UserPublic):
    email: Optional[str] = None
    auth_method: AuthMethod
    verified_at: Optional[datetime] = None


class RideSummary(BaseModel):
    id: int
    origin_city: str
    destination_city: str
    departure_time: datetime
    status: RideStatus

    model_config = {"from_attributes": True}


class RideResponse(RideSummary):
    driver_id: int
    driver: Optional[UserPublic] = None
    pickup_point: str
    stops: Optional[list[str]] = None
    seats_total: int
    seats_available: int
    price_per_seat: float
    luggage_space: bool
    smoking_allowed: bool
    is_recurring: bool
    recurrence_pattern: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class SearchResponse(BaseModel):
    rides: list[RideResponse] = []
    total: int
    page: int
    pages: int


class BookingResponse(BaseModel):
    id: int
    ride_id: int
    passenger_id: int
    seats_count: int
    total_price: float
    status: BookingStatus
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    ride: Optional[RideResponse] = None
    passenger: Optional[UserPublic] = None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: int
    booking_id: int
    sender_id: int
    receiver_id: int
    content: str
    created_at: Optional[datetime] = None
    sender: Optional[UserPublic] = None

    model_config = {"from_attributes": True}


class RatingResponse(BaseModel):
    id: int
    ride_id: int
    rater_id: int
    rated_user_id: int
    rating: int
    comment: Optional[str] = None
    is_visible: bool
    created_at: Optional[datetime] = None
    rater: Optional[UserPublic] = None
    ride: Optional[RideSummary] = None

    model_config = {"from_attributes": True}


class PublicProfileResponse(BaseModel):
    user: UserPublic
    ratings: list[RatingResponse] = []
    rides: list[RideResponse] = []


class AuthTokenResponse(BaseModel):
    token: str
    user: UserProfile


class OtpSentResponse(BaseModel):
    message: str
    phone: str


class EmailLoginResponse(BaseModel):
    message: str
    email: str


class MessageOnlyResponse(BaseModel):
    message: str


class CityResponse(BaseModel):
    code: str
    name: str
    name_sq: str
    lat: float
    lng: float

    model_config = {"from_attributes": True}


class RouteResponse(BaseModel):
    origin: str
    destination: str
    distance_km: int
    duration_min: int
    typical_price: int

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"
    database: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    reason: str
