"""
SubDesk Backend — Location Route
==================================

GET /get-location tells the storefront which country the visitor is in so
it can show local pricing. Lookup failures surface as 503 through the
global exception handlers.
"""

from fastapi import APIRouter, Request

from subdesk.schemas.common import ErrorResponse, LocationResponse
from subdesk.services.location_service import client_ip_from, location_service

router = APIRouter(tags=["Location"])


@router.get(
    "/get-location",
    response_model=LocationResponse,
    responses={503: {"description": "Lookup unavailable", "model": ErrorResponse}},
    summary="Country of the calling client",
)
async def get_location(request: Request) -> LocationResponse:
    country = await location_service.country_for(client_ip_from(request))
    return LocationResponse(country=country)
