"""Initial schema: users, rides, bookings, messages, ratings.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member NAMES, matching ``sa.Enum(PyEnum)`` on the models
ride_status = sa.Enum("ACTIVE", "CANCELLED", "COMPLETED", name="ridestatus")
booking_status = sa.Enum("CONFIRMED", "CANCELLED", "COMPLETED", name="bookingstatus")
auth_method = sa.Enum("PHONE", "EMAIL", name="authmethod")


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("city", sa.String(8), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        sa.Column("phone_hash", sa.String(64), unique=True, nullable=True),
        sa.Column("phone_number_encrypted", sa.String(255), nullable=True),
        sa.Column("auth_method", auth_method, nullable=False, server_default="PHONE"),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("photo_url", sa.String(500), nullable=True),
        sa.Column("is_driver", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("car_model", sa.String(100), nullable=True),
        sa.Column("car_color", sa.String(50), nullable=True),
        sa.Column("driving_years", sa.Integer, nullable=True),
        sa.Column("rating", sa.Float, nullable=False, server_default="5.0"),
        sa.Column("total_rides", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("idx_users_phone_hash", "users", ["phone_hash"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("origin_city", sa.String(8), nullable=False),
        sa.Column("destination_city", sa.String(8), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("pickup_point", sa.String(255), nullable=False),
        sa.Column("stops", sa.JSON, nullable=True),
        sa.Column("seats_total", sa.Integer, nullable=False),
        sa.Column("seats_available", sa.Integer, nullable=False),
        sa.Column("price_per_seat", sa.Float, nullable=False),
        sa.Column("luggage_space", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("smoking_allowed", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("is_recurring", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("recurrence_pattern", sa.String(100), nullable=True),
        sa.Column("status", ride_status, nullable=False, server_default="ACTIVE"),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "seats_available >= 0 AND seats_available <= seats_total",
            name="ck_rides_seat_inventory",
        ),
    )
    op.create_index(
        "idx_rides_search",
        "rides",
        ["origin_city", "destination_city", "departure_time"],
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column(
            "passenger_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("seats_count", sa.Integer, nullable=False),
        sa.Column("total_price", sa.Float, nullable=False),
        sa.Column("status", booking_status, nullable=False, server_default="CONFIRMED"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "cancelled_by", sa.Integer, sa.ForeignKey("users.id"), nullable=True
        ),
        sa.CheckConstraint("seats_count BETWEEN 1 AND 4", name="ck_bookings_seats"),
    )
    # One live booking per passenger per ride
    op.create_index(
        "uq_bookings_confirmed_passenger",
        "bookings",
        ["ride_id", "passenger_id"],
        unique=True,
        postgresql_where=sa.text("status = 'CONFIRMED'"),
    )
    op.create_index("idx_bookings_ride", "bookings", ["ride_id"])
    op.create_index("idx_bookings_passenger", "bookings", ["passenger_id"])

    # ── messages ──────────────────────────────────────────────────────
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False
        ),
        sa.Column("sender_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "receiver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_messages_booking", "messages", ["booking_id", "created_at"])

    # ── ratings ───────────────────────────────────────────────────────
    op.create_table(
        "ratings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False),
        sa.Column("rater_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "rated_user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("comment", sa.String(500), nullable=True),
        sa.Column("is_visible", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "ride_id", "rater_id", "rated_user_id", name="uq_ratings_triple"
        ),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_ratings_score"),
    )
    op.create_index(
        "idx_ratings_rated_visible", "ratings", ["rated_user_id", "is_visible"]
    )


def downgrade() -> None:
    op.drop_table("ratings")
    op.drop_table("messages")
    op.drop_table("bookings")
    op.drop_table("rides")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS authmethod")
