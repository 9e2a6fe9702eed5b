"""
Match API Endpoints.

Run a match search for a trip, list its stored matches and accept or
reject a proposed match.
"""

from fastapi import APIRouter, Depends
from typing import List

from backend.app.core.dependencies import get_matching_engine
from backend.app.domain.matching.engine import MatchingEngine
from backend.app.schemas.match import ExistingMatch, MatchResult, MatchStatusResponse, MatchStatusUpdate

router = APIRouter(prefix="/matches", tags=["Matches"])


@router.get("/existing/{trip_id}", response_model=List[ExistingMatch])
async def list_existing_matches(trip_id: str, engine: MatchingEngine = Depends(get_matching_engine)):
    """Proposed and accepted matches of a trip, best first."""
    return await engine.list_existing_matches(trip_id)


@router.get("/{trip_id}", response_model=List[MatchResult])
async def find_matches(trip_id: str, engine: MatchingEngine = Depends(get_matching_engine)):
    """
    Search for matches for a trip.

    Resolves routes on demand, stores every qualifying pair as a proposed
    match and returns them ranked by match percentage.
    """
    return await engine.find_matches(trip_id)


@router.put("/{match_id}/status", response_model=MatchStatusResponse)
async def update_match_status(
    match_id: str,
    data: MatchStatusUpdate,
    engine: MatchingEngine = Depends(get_matching_engine)
):
    """Accept or reject a match. Any other status is rejected with 400."""
    return await engine.set_match_status(match_id, data.status)
