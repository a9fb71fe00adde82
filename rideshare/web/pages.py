"""
Server-rendered pages
=====================

A thin HTML front end over the same services the JSON API uses.  The
session token lives in the ``access_token`` cookie set by the verify and
magic-link endpoints.

GET  /                 -- search form and popular routes
GET  /search           -- search results
GET  /rides/{id}       -- ride details and booking form
POST /rides/{id}/book  -- book seats
GET  /trips            -- my bookings and published rides
GET  /profile          -- my profile
GET  /login, /verify   -- phone OTP sign-in
GET  /logout
GET  /faq, /safety     -- static help pages
"""

from __future__ import annotations

import html
import logging
from datetime import date
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Query
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from rideshare.api.dependencies import ACCESS_COOKIE, get_db, get_notifier, get_optional_user
from rideshare.api.routes.auth import set_session_cookie
from rideshare.domain.cities import ALBANIAN_CITIES, POPULAR_ROUTES, TIME_PERIODS, city_name
from rideshare.domain.entities import as_utc
from rideshare.domain.errors import RideshareError
from rideshare.domain.validation import format_currency
from rideshare.infrastructure.models import RideModel, UserModel
from rideshare.services.auth import AuthService
from rideshare.services.bookings import BookingCoordinator
from rideshare.services.notifications import Notifier
from rideshare.services.rides import RideService

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)

FAQ = [
    (
        "How does payment work?",
        "You pay the driver in cash when you meet. AlbaniaRides only connects "
        "drivers and passengers and never handles money.",
    ),
    (
        "Is my phone number safe?",
        "Phone numbers are stored encrypted and only shared with the other "
        "party once a booking is confirmed.",
    ),
    (
        "Can I cancel my booking?",
        "Yes, up to 2 hours before departure. After that, contact the driver "
        "directly.",
    ),
    (
        "What if the driver cancels?",
        "You get an SMS straight away and your seats are released, so you can "
        "book another ride.",
    ),
    ("Can I book multiple seats?", "Yes, up to 4 seats per booking."),
    (
        "How do ratings work?",
        "After the trip, driver and passengers rate each other. A rating "
        "becomes visible once both sides have rated, or after 7 days.",
    ),
]

SAFETY_TIPS = [
    "Check the driver's rating and reviews before booking.",
    "Meet at the public pickup point shown on the ride.",
    "Share your trip details with a friend or family member.",
    "Keep in-app messages as your record of what was agreed.",
    "Never pay in advance; payment is cash at pickup.",
    "Rate your trip honestly so others can travel safely.",
]


# ── Rendering helpers ─────────────────────────────────────────────────


def esc(value) -> str:
    return html.escape("" if value is None else str(value))


def layout(title: str, body: str, user: Optional[UserModel] = None) -> str:
    if user:
        nav = (
            f'<a href="/trips">My trips</a> <a href="/profile">{esc(user.name)}</a> '
            '<a href="/logout">Log out</a>'
        )
    else:
        nav = '<a href="/login">Log in</a>'
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{esc(title)} | AlbaniaRides</title>
</head>
<body>
<header><a href="/"><strong>AlbaniaRides</strong></a> <nav>{nav}</nav></header>
<main>
<h1>{esc(title)}</h1>
{body}
</main>
<footer><a href="/faq">FAQ</a> <a href="/safety">Safety</a></footer>
</body>
</html>"""


def page(title: str, body: str, user: Optional[UserModel] = None, status_code: int = 200):
    return HTMLResponse(layout(title, body, user), status_code=status_code)


def error_box(message: Optional[str]) -> str:
    return f'<p class="error">{esc(message)}</p>' if message else ""


def city_options(selected: str = "") -> str:
    return "".join(
        f'<option value="{c.code}"{" selected" if c.code == selected else ""}>'
        f"{esc(c.name)}</option>"
        for c in ALBANIAN_CITIES
    )


def ride_summary(ride: RideModel) -> str:
    departure = as_utc(ride.departure_time).strftime("%a %d %b, %H:%M")
    driver = ride.driver
    return (
        f'<a href="/rides/{ride.id}">{esc(city_name(ride.origin_city))} &rarr; '
        f"{esc(city_name(ride.destination_city))}</a> {esc(departure)} | "
        f"{esc(format_currency(ride.price_per_seat))} per seat | "
        f"{ride.seats_available} seat(s) left | "
        f"{esc(driver.name if driver else '')} ({driver.rating if driver else '-'})"
    )


def ride_card(ride: RideModel) -> str:
    return f"<li>{ride_summary(ride)}</li>"


def login_redirect() -> RedirectResponse:
    return RedirectResponse("/login", status_code=303)


# ── Public pages ──────────────────────────────────────────────────────


@router.get("/", response_class=HTMLResponse)
async def home(user: Optional[UserModel] = Depends(get_optional_user)):
    periods = "".join(
        f'<option value="{p["value"]}">{esc(p["label"])} ({esc(p["hours"])})</option>'
        for p in TIME_PERIODS
    )
    routes = "".join(
        f'<li><a href="/search?{urlencode({"origin": r.origin, "destination": r.destination})}">'
        f"{esc(city_name(r.origin))} &rarr; {esc(city_name(r.destination))}</a> "
        f"{r.distance_km} km, ~{esc(format_currency(r.typical_price))}</li>"
        for r in POPULAR_ROUTES
    )
    body = f"""
<form action="/search" method="get">
  <select name="origin">{city_options("TIA")}</select>
  <select name="destination">{city_options("DUR")}</select>
  <input type="date" name="date">
  <select name="time_period"><option value="">Any time</option>{periods}</select>
  <button type="submit">Search</button>
</form>
<h2>Popular routes</h2>
<ul>{routes}</ul>"""
    return page("Find a ride across Albania", body, user)


@router.get("/search", response_class=HTMLResponse)
async def search(
    origin: str = Query(...),
    destination: str = Query(...),
    on_date: Optional[date] = Query(None, alias="date"),
    time_period: Optional[str] = Query(None),
    sort: str = Query("departure"),
    page_no: int = Query(1, alias="page", ge=1),
    user: Optional[UserModel] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    title = f"{city_name(origin.upper())} to {city_name(destination.upper())}"
    try:
        result = await RideService(db).search(
            origin,
            destination,
            on_date=on_date,
            time_period=time_period or None,
            sort=sort,
            page=page_no,
        )
    except RideshareError as exc:
        return page(title, error_box(exc.message), user, status_code=exc.status_code)

    if not result["rides"]:
        return page(title, "<p>No rides found. Try another date.</p>", user)
    cards = "".join(ride_card(r) for r in result["rides"])
    body = (
        f"<p>{result['total']} ride(s), page {result['page']} of {result['pages']}</p>"
        f"<ul>{cards}</ul>"
    )
    return page(title, body, user)


@router.get("/rides/{ride_id}", response_class=HTMLResponse)
async def ride_detail(
    ride_id: int,
    error: Optional[str] = Query(None),
    user: Optional[UserModel] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    try:
        ride = await RideService(db).get(ride_id)
    except RideshareError as exc:
        return page("Ride", error_box(exc.message), user, status_code=exc.status_code)

    driver = ride.driver
    stops = ", ".join(esc(city_name(s)) for s in ride.stops or []) or "none"
    details = f"""
<dl>
  <dt>Departure</dt><dd>{esc(as_utc(ride.departure_time).strftime("%A %d %B %Y, %H:%M"))}</dd>
  <dt>Pickup</dt><dd>{esc(ride.pickup_point)}</dd>
  <dt>Stops</dt><dd>{stops}</dd>
  <dt>Price</dt><dd>{esc(format_currency(ride.price_per_seat))} per seat, cash</dd>
  <dt>Seats left</dt><dd>{ride.seats_available} of {ride.seats_total}</dd>
  <dt>Luggage</dt><dd>{"yes" if ride.luggage_space else "no"}</dd>
  <dt>Smoking</dt><dd>{"allowed" if ride.smoking_allowed else "no"}</dd>
  <dt>Driver</dt><dd>{esc(driver.name)}, rated {driver.rating} over {driver.total_rides} ride(s)
    {esc(" ".join(filter(None, [driver.car_color, driver.car_model])))}</dd>
  <dt>Status</dt><dd>{esc(ride.status.value)}</dd>
</dl>"""

    if user is None:
        action = '<p><a href="/login">Log in</a> to book this ride.</p>'
    elif user.id == ride.driver_id:
        action = "<p>This is your ride.</p>"
    elif ride.seats_available > 0:
        seats = "".join(
            f'<option value="{n}">{n}</option>'
            for n in range(1, min(4, ride.seats_available) + 1)
        )
        action = f"""
<form action="/rides/{ride.id}/book" method="post">
  <label>Seats <select name="seats_count">{seats}</select></label>
  <label>Message to driver <input name="message" maxlength="1000"></label>
  <button type="submit">Book</button>
</form>"""
    else:
        action = "<p>This ride is full.</p>"

    title = f"{city_name(ride.origin_city)} to {city_name(ride.destination_city)}"
    return page(title, error_box(error) + details + action, user)


@router.post("/rides/{ride_id}/book")
async def book_ride(
    ride_id: int,
    background_tasks: BackgroundTasks,
    seats_count: int = Form(1),
    message: Optional[str] = Form(None),
    user: Optional[UserModel] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    if user is None:
        return login_redirect()
    try:
        await BookingCoordinator(db, notifier).create_booking(
            user.id, ride_id, seats_count, message or None
        )
    except RideshareError as exc:
        await db.rollback()
        query = urlencode({"error": exc.message})
        return RedirectResponse(f"/rides/{ride_id}?{query}", status_code=303)
    await db.commit()
    background_tasks.add_task(notifier.flush)
    return RedirectResponse("/trips", status_code=303)


@router.get("/faq", response_class=HTMLResponse)
async def faq(user: Optional[UserModel] = Depends(get_optional_user)):
    body = "".join(f"<h2>{esc(q)}</h2><p>{esc(a)}</p>" for q, a in FAQ)
    return page("Frequently asked questions", body, user)


@router.get("/safety", response_class=HTMLResponse)
async def safety(user: Optional[UserModel] = Depends(get_optional_user)):
    tips = "".join(f"<li>{esc(t)}</li>" for t in SAFETY_TIPS)
    return page("Travel safely", f"<ul>{tips}</ul>", user)


# ── Signed-in pages ───────────────────────────────────────────────────


@router.get("/trips", response_class=HTMLResponse)
async def trips(
    user: Optional[UserModel] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    if user is None:
        return login_redirect()
    bookings = await BookingCoordinator(db).list_bookings(user.id, role="passenger")
    rows = "".join(
        f"<li>{ride_summary(b.ride)} | {b.seats_count} seat(s), "
        f"{esc(format_currency(b.total_price))} | {esc(b.status.value)}</li>"
        for b in bookings
    )
    body = f"<h2>My bookings</h2><ul>{rows or '<li>No bookings yet.</li>'}</ul>"
    if user.is_driver:
        rides = await RideService(db).list_for_driver(user.id)
        published = "".join(ride_card(r) for r in rides)
        body += f"<h2>Rides I drive</h2><ul>{published or '<li>No rides published.</li>'}</ul>"
    return page("My trips", body, user)


@router.get("/profile", response_class=HTMLResponse)
async def profile(user: Optional[UserModel] = Depends(get_optional_user)):
    if user is None:
        return login_redirect()
    car = " ".join(filter(None, [user.car_color, user.car_model])) or "-"
    body = f"""
<dl>
  <dt>Name</dt><dd>{esc(user.name)}</dd>
  <dt>City</dt><dd>{esc(city_name(user.city))}</dd>
  <dt>Rating</dt><dd>{user.rating} ({user.total_rides} ride(s))</dd>
  <dt>Driver</dt><dd>{"yes" if user.is_driver else "no"}</dd>
  <dt>Car</dt><dd>{esc(car)}</dd>
  <dt>About</dt><dd>{esc(user.bio or "-")}</dd>
</dl>"""
    return page("My profile", body, user)


# ── Sign-in ───────────────────────────────────────────────────────────


@router.get("/login", response_class=HTMLResponse)
async def login_form(
    error: Optional[str] = Query(None),
    user: Optional[UserModel] = Depends(get_optional_user),
):
    if user is not None:
        return RedirectResponse("/trips", status_code=303)
    body = f"""{error_box(error)}
<form action="/login" method="post">
  <label>Phone <input name="phone" placeholder="069 123 4567" required></label>
  <button type="submit">Send code</button>
</form>"""
    return page("Log in", body)


@router.post("/login")
async def login_submit(phone: str = Form(...), db: AsyncSession = Depends(get_db)):
    try:
        await AuthService(db).login(phone)
    except RideshareError as exc:
        return RedirectResponse(f"/login?{urlencode({'error': exc.message})}", status_code=303)
    return RedirectResponse(f"/verify?{urlencode({'phone': phone})}", status_code=303)


@router.get("/verify", response_class=HTMLResponse)
async def verify_form(phone: str = Query(""), error: Optional[str] = Query(None)):
    body = f"""{error_box(error)}
<form action="/verify" method="post">
  <input type="hidden" name="phone" value="{esc(phone)}">
  <label>Code <input name="otp" inputmode="numeric" maxlength="10" required></label>
  <button type="submit">Verify</button>
</form>"""
    return page("Enter your code", body)


@router.post("/verify")
async def verify_submit(
    phone: str = Form(...),
    otp: str = Form(...),
    db: AsyncSession = Depends(get_db),
):
    try:
        token, _ = await AuthService(db).verify(phone, otp)
    except RideshareError as exc:
        await db.rollback()
        query = urlencode({"phone": phone, "error": exc.message})
        return RedirectResponse(f"/verify?{query}", status_code=303)
    response = RedirectResponse("/trips", status_code=303)
    set_session_cookie(response, token)
    return response


@router.get("/logout")
async def logout():
    response = RedirectResponse("/", status_code=303)
    response.delete_cookie(ACCESS_COOKIE)
    return response
