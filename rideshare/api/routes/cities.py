"""
Reference data
==============

GET /api/v1/cities         -- supported cities
GET /api/v1/cities/routes  -- popular intercity routes with typical prices
"""

from fastapi import APIRouter

from rideshare.api.schemas import CityResponse, RouteResponse
from rideshare.domain.cities import ALBANIAN_CITIES, POPULAR_ROUTES

router = APIRouter(prefix="/cities", tags=["cities"])


@router.get("", response_model=list[CityResponse], summary="List cities")
async def list_cities():
    return ALBANIAN_CITIES


@router.get("/routes", response_model=list[RouteResponse], summary="Popular routes")
async def list_routes():
    return POPULAR_ROUTES
