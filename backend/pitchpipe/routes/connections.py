"""
Connection request routes
"""
from fastapi import APIRouter, Depends, HTTPException

from ..auth import get_current_user_id
from ..db import AsyncSessionLocal
from ..schemas import ConnectionRequestIn, ConnectionRequestOut
from ..services.matcher import Matcher

router = APIRouter(tags=["Connections"])

def get_matcher() -> Matcher:
    return Matcher(AsyncSessionLocal)

@router.post("/connections", response_model=ConnectionRequestOut, status_code=201)
async def create_connection(
    request: ConnectionRequestIn,
    user_id: str = Depends(get_current_user_id),
    matcher: Matcher = Depends(get_matcher),
):
    """Ask another user to connect. One request per pair of users, in either direction."""
    if request.requester_id != user_id:
        raise HTTPException(status_code=403, detail="requester_id must be the authenticated user")

    connection = await matcher.request_connection(
        request.requester_id,
        request.target_id,
        video_id=request.video_id,
        analysis_data=request.analysis_data,
    )
    return ConnectionRequestOut(
        id=connection.id,
        requester_id=connection.requester_id,
        target_id=connection.target_id,
        video_id=connection.video_id,
        status=connection.status,
        analysis_data=connection.analysis_data,
        match_score=connection.match_score,
        created_at=connection.created_at,
    )
