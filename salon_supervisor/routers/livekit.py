
from fastapi import APIRouter, HTTPException, Depends
import logging

from salon_supervisor.models.schemas import TokenRequest
from salon_supervisor.core.errors import InternalError
from salon_supervisor.services import LiveKitService
from salon_supervisor.core.dependencies import get_livekit_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/livekit",
    tags=["Livekit agent"]
)


@router.post("/token")
async def generate_livekit_token(
    request: TokenRequest,
    service: LiveKitService = Depends(get_livekit_service)
):
    """
    Generate LiveKit access token for phone simulator
    This allows web clients to join rooms and "call" the agent
    """
    try:
        jwt_token = service.issue_access_token(
            request.roomName,
            request.participantName,
            request.participantIdentity,
        )
    except InternalError as e:
        logger.error(f"Error generating token: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        logger.error(f"Error generating token: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    return {
        "success": True,
        "token": jwt_token,
        "url": service.livekit_url,
        "roomName": request.roomName
    }


@router.get("/room/{session_id}")
async def get_room_info(session_id: str, service: LiveKitService = Depends(get_livekit_service)):
    """Room a call session talks in"""
    return service.get_room_info(session_id)
