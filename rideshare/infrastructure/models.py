"""
SQLAlchemy ORM models.

Tables
------
* ``users``     -- passengers and drivers
* ``rides``     -- trips advertised by drivers
* ``bookings``  -- seat reservations on a ride
* ``messages``  -- per-booking chat between passenger and driver
* ``ratings``   -- mutual post-ride ratings

Constraints
-----------
* CHECK on ``rides`` keeps ``0 <= seats_available <= seats_total``.
* Partial UNIQUE on ``bookings (ride_id, passenger_id)`` for confirmed rows:
  one live booking per passenger per ride.
* UNIQUE on ``ratings (ride_id, rater_id, rated_user_id)``.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base
from rideshare.domain.entities import utc_now
from rideshare.domain.enums import AuthMethod, BookingStatus, RideStatus


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    city = Column(String(8), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    phone_hash = Column(String(64), unique=True, nullable=True)
    phone_number_encrypted = Column(String(255), nullable=True)
    auth_method = Column(Enum(AuthMethod), default=AuthMethod.PHONE, nullable=False)

    bio = Column(String(500), nullable=True)
    photo_url = Column(String(500), nullable=True)
    is_driver = Column(Boolean, default=False, nullable=False)
    car_model = Column(String(100), nullable=True)
    car_color = Column(String(50), nullable=True)
    driving_years = Column(Integer, nullable=True)

    rating = Column(Float, default=5.0, nullable=False)
    total_rides = Column(Integer, default=0, nullable=False)

    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now()
    )
    verified_at = Column(DateTime(timezone=True), nullable=True)
    suspended_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("idx_users_phone_hash", "phone_hash"),)


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    origin_city = Column(String(8), nullable=False)
    destination_city = Column(String(8), nullable=False)
    departure_time = Column(DateTime(timezone=True), nullable=False)
    pickup_point = Column(String(255), nullable=False)
    stops = Column(JSON, nullable=True)

    seats_total = Column(Integer, nullable=False)
    seats_available = Column(Integer, nullable=False)
    price_per_seat = Column(Float, nullable=False)
    luggage_space = Column(Boolean, default=False, nullable=False)
    smoking_allowed = Column(Boolean, default=False, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_pattern = Column(String(100), nullable=True)

    status = Column(Enum(RideStatus), default=RideStatus.ACTIVE, nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now()
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        server_default=func.now(),
    )

    driver = relationship("UserModel", lazy="selectin")

    __table_args__ = (
        CheckConstraint(
            "seats_available >= 0 AND seats_available <= seats_total",
            name="ck_rides_seat_inventory",
        ),
        Index("idx_rides_search", "origin_city", "destination_city", "departure_time"),
        Index("idx_rides_status", "status"),
        Index("idx_rides_driver", "driver_id"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    passenger_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    seats_count = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.CONFIRMED, nullable=False
    )

    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now()
    )
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    ride = relationship("RideModel", lazy="selectin")
    passenger = relationship(
        "UserModel", foreign_keys=[passenger_id], lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("seats_count BETWEEN 1 AND 4", name="ck_bookings_seats"),
        Index(
            "uq_bookings_confirmed_passenger",
            "ride_id",
            "passenger_id",
            unique=True,
            postgresql_where=text("status = 'CONFIRMED'"),
            sqlite_where=text("status = 'CONFIRMED'"),
        ),
        Index("idx_bookings_ride", "ride_id"),
        Index("idx_bookings_passenger", "passenger_id"),
    )


class MessageModel(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now()
    )

    sender = relationship("UserModel", foreign_keys=[sender_id], lazy="selectin")

    __table_args__ = (Index("idx_messages_booking", "booking_id", "created_at"),)


class RatingModel(Base):
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    rater_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rated_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)
    is_visible = Column(Boolean, default=False, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now()
    )

    rater = relationship("UserModel", foreign_keys=[rater_id], lazy="selectin")
    ride = relationship("RideModel", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "ride_id", "rater_id", "rated_user_id", name="uq_ratings_triple"
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_score"),
        Index("idx_ratings_rated_visible", "rated_user_id", "is_visible"),
    )
