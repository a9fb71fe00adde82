"""Albanian cities, popular routes and other static reference data."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class City:
    code: str
    name: str
    name_sq: str
    lat: float
    lng: float


@dataclass(frozen=True)
class Route:
    origin: str
    destination: str
    distance_km: int
    duration_min: int
    typical_price: int  # ALL per seat


ALBANIAN_CITIES: list[City] = [
    City("TIA", "Tirana", "Tiranë", 41.3275, 19.8189),
    City("DUR", "Durrës", "Durrës", 41.3246, 19.4565),
    City("VLO", "Vlorë", "Vlorë", 40.4660, 19.4914),
    City("SHK", "Shkodër", "Shkodër", 42.0683, 19.5126),
    City("ELB", "Elbasan", "Elbasan", 41.1125, 20.0822),
    City("FIE", "Fier", "Fier", 40.7239, 19.5569),
    City("KOR", "Korçë", "Korçë", 40.6186, 20.7808),
    City("BER", "Berat", "Berat", 40.7058, 19.9522),
    City("LUS", "Lushnjë", "Lushnjë", 40.9419, 19.7050),
    City("KAV", "Kavajë", "Kavajë", 41.1855, 19.5569),
    City("POG", "Pogradec", "Pogradec", 40.9025, 20.6497),
    City("GJI", "Gjirokastër", "Gjirokastër", 40.0758, 20.1389),
    City("SAR", "Sarandë", "Sarandë", 39.8756, 20.0047),
    City("LAC", "Laç", "Laç", 41.6356, 19.7131),
    City("KUK", "Kukës", "Kukës", 42.0769, 20.4219),
]

CITIES_BY_CODE: dict[str, City] = {c.code: c for c in ALBANIAN_CITIES}

POPULAR_ROUTES: list[Route] = [
    Route("TIA", "DUR", 39, 40, 500),
    Route("TIA", "VLO", 147, 150, 1500),
    Route("TIA", "SHK", 116, 120, 1200),
    Route("TIA", "ELB", 45, 50, 600),
    Route("TIA", "KOR", 180, 180, 1800),
    Route("DUR", "VLO", 118, 120, 1200),
    Route("DUR", "SHK", 100, 100, 1000),
    Route("VLO", "SAR", 125, 90, 1000),
    Route("SHK", "KUK", 110, 80, 800),
    Route("ELB", "KOR", 130, 120, 1200),
]

TIME_PERIODS = [
    {"label": "Morning", "value": "morning", "hours": "5:00 - 12:00"},
    {"label": "Afternoon", "value": "afternoon", "hours": "12:00 - 18:00"},
    {"label": "Evening", "value": "evening", "hours": "18:00 - 24:00"},
]

def get_city(code: str) -> Optional[City]:
    return CITIES_BY_CODE.get(code.upper()) if code else None


def is_known_city(code: str) -> bool:
    return get_city(code) is not None


def city_name(code: str) -> str:
    """Display name for *code*, falling back to the code itself."""
    city = get_city(code)
    return city.name if city else code
