"""Postal code and place autocomplete."""

import logging
from fastapi import APIRouter, Query, Request
from campaign_site.services import LocationIndex

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["locations"])


@router.get("/search-location")
async def search_location(
    request: Request,
    q: str = Query(""),
    limit: int = Query(10),
):
    """Search postal codes, municipalities and places by prefix."""
    index: LocationIndex = request.app.state.location_index
    results = index.search(q, limit)
    return {"results": [result.model_dump(by_alias=True, exclude_none=True) for result in results]}
