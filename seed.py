"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 8 sample users (4 drivers, 4 passengers) with Albanian phone numbers
  - 8 sample rides on popular routes (upcoming, completed and cancelled)
  - bookings on those rides, with seat inventory kept consistent
  - a short message thread and mutual ratings on the completed ride

Every seeded account can log in with the test OTP while Twilio is not
configured.
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from rideshare.domain.entities import booking_total, utc_now
from rideshare.domain.enums import AuthMethod, BookingStatus, RideStatus
from rideshare.infrastructure.database import async_session_factory, engine
from rideshare.infrastructure.models import (
    BookingModel,
    MessageModel,
    RatingModel,
    RideModel,
    UserModel,
)
from rideshare.security.crypto import encrypt_phone, hash_phone
from rideshare.infrastructure.repositories import UserRepository
from rideshare.services.ratings import RatingAggregator


USERS = [
    # Drivers
    {"name": "Arben Hoxha", "phone": "+355691234501", "city": "TIA", "driver": ("Volkswagen Golf", "Gray", 12)},
    {"name": "Elira Dervishi", "phone": "+355691234502", "city": "DUR", "driver": ("Toyota Corolla", "White", 6)},
    {"name": "Gentian Shehu", "phone": "+355691234503", "city": "VLO", "driver": ("Mercedes C200", "Black", 15)},
    {"name": "Besa Kola", "phone": "+355691234504", "city": "SHK", "driver": ("Fiat Punto", "Red", 4)},
    # Passengers
    {"name": "Dritan Leka", "phone": "+355681234505", "city": "TIA", "driver": None},
    {"name": "Anisa Marku", "phone": "+355681234506", "city": "ELB", "driver": None},
    {"name": "Klajdi Berisha", "phone": "+355671234507", "city": "KOR", "driver": None},
    {"name": "Jonida Prifti", "phone": "+355671234508", "city": "TIA", "driver": None},
]

# (driver index, origin, destination, days from now, hour, seats, price, pickup, status)
RIDES = [
    (0, "TIA", "DUR", 1, 8, 3, 400, "Sheshi Skënderbej", RideStatus.ACTIVE),
    (0, "TIA", "VLO", 2, 17, 4, 1000, "Pallati me Shigjeta", RideStatus.ACTIVE),
    (1, "DUR", "TIA", 1, 7, 3, 400, "Sheshi Liria", RideStatus.ACTIVE),
    (2, "VLO", "SAR", 3, 10, 4, 1000, "Lungomare", RideStatus.ACTIVE),
    (2, "TIA", "SAR", 4, 6, 3, 1800, "Zogu i Zi", RideStatus.ACTIVE),
    (3, "SHK", "TIA", 1, 14, 4, 600, "Sheshi Demokracia", RideStatus.ACTIVE),
    (1, "TIA", "DUR", -3, 9, 3, 400, "Sheshi Skënderbej", RideStatus.COMPLETED),
    (3, "SHK", "TIA", 2, 19, 2, 600, "Rruga Kolë Idromeno", RideStatus.CANCELLED),
]

# (ride index, passenger index, seats)
BOOKINGS = [
    (0, 4, 1),
    (0, 5, 2),
    (2, 7, 1),
    (3, 6, 2),
    (6, 4, 1),
    (6, 7, 2),
    (7, 5, 1),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        now = utc_now().replace(minute=0, second=0, microsecond=0)

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            car = u["driver"]
            m = UserModel(
                name=u["name"],
                city=u["city"],
                phone_hash=hash_phone(u["phone"]),
                phone_number_encrypted=encrypt_phone(u["phone"]),
                auth_method=AuthMethod.PHONE,
                is_driver=car is not None,
                car_model=car[0] if car else None,
                car_color=car[1] if car else None,
                driving_years=car[2] if car else None,
                verified_at=now,
            )
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Rides ─────────────────────────────────────────────────────
        ride_models = []
        for driver, origin, dest, days, hour, seats, price, pickup, status in RIDES:
            departure = (now + timedelta(days=days)).replace(hour=hour)
            m = RideModel(
                driver_id=user_models[driver].id,
                origin_city=origin,
                destination_city=dest,
                departure_time=departure,
                pickup_point=pickup,
                stops=[],
                seats_total=seats,
                seats_available=seats,
                price_per_seat=price,
                luggage_space=seats >= 3,
                status=status,
                completed_at=departure + timedelta(hours=2)
                if status == RideStatus.COMPLETED
                else None,
                cancelled_at=now if status == RideStatus.CANCELLED else None,
            )
            session.add(m)
            ride_models.append(m)
        await session.flush()
        print(f"  Created {len(ride_models)} rides")

        # ── Bookings ──────────────────────────────────────────────────
        booking_models = []
        for ride_idx, passenger_idx, seats in BOOKINGS:
            ride = ride_models[ride_idx]
            if ride.status == RideStatus.ACTIVE:
                status = BookingStatus.CONFIRMED
                ride.seats_available -= seats
            elif ride.status == RideStatus.COMPLETED:
                status = BookingStatus.COMPLETED
            else:
                status = BookingStatus.CANCELLED
            m = BookingModel(
                ride_id=ride.id,
                passenger_id=user_models[passenger_idx].id,
                seats_count=seats,
                total_price=booking_total(seats, ride.price_per_seat),
                status=status,
                cancelled_at=now if status == BookingStatus.CANCELLED else None,
                cancelled_by=ride.driver_id if status == BookingStatus.CANCELLED else None,
            )
            session.add(m)
            booking_models.append(m)
        await session.flush()
        print(f"  Created {len(booking_models)} bookings")

        # ── Messages ──────────────────────────────────────────────────
        first = booking_models[0]
        driver_id = ride_models[0].driver_id
        thread = [
            (first.passenger_id, driver_id, "Përshëndetje! A mund të më marrësh te Piramida?"),
            (driver_id, first.passenger_id, "Po, pa problem. Shihemi në 8:00."),
            (first.passenger_id, driver_id, "I'm ready"),
        ]
        for i, (sender, receiver, content) in enumerate(thread):
            session.add(
                MessageModel(
                    booking_id=first.id,
                    sender_id=sender,
                    receiver_id=receiver,
                    content=content,
                    created_at=now - timedelta(minutes=30 - i * 5),
                )
            )
        print(f"  Created {len(thread)} messages")

        # ── Ratings (mutual, so already visible) ──────────────────────
        completed = ride_models[6]
        ratings = [
            (user_models[4].id, completed.driver_id, 5, "Shofer shumë i sjellshëm"),
            (completed.driver_id, user_models[4].id, 5, None),
            (user_models[7].id, completed.driver_id, 4, "Good ride, a bit late"),
            (completed.driver_id, user_models[7].id, 5, None),
        ]
        for rater, rated, score, comment in ratings:
            session.add(
                RatingModel(
                    ride_id=completed.id,
                    rater_id=rater,
                    rated_user_id=rated,
                    rating=score,
                    comment=comment,
                    is_visible=True,
                )
            )
        await session.flush()
        await RatingAggregator(session).recompute({r[1] for r in ratings})
        await UserRepository(session).increment_total_rides(
            [completed.driver_id, user_models[4].id, user_models[7].id]
        )
        print(f"  Created {len(ratings)} ratings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
