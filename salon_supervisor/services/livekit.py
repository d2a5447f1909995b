import json
from typing import Optional

from livekit import api

from salon_supervisor.core.config import Settings
from salon_supervisor.core.errors import InternalError
from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.models.schemas import utc_now

logger = get_plain_logger(__name__)

ESCALATION_MESSAGE = "Let me check with my supervisor and get back to you."
FOLLOW_UP_PREFIX = "Thank you for your patience."
TIMEOUT_FALLBACK_MESSAGE = (
    "I apologize, but I wasn't able to get an answer for you right now. "
    "Please try calling back later or visit our website for more information."
)


def room_name_for(session_id: str) -> str:
    return f"call-{session_id}"


def follow_up_message(answer: str) -> str:
    return f"{FOLLOW_UP_PREFIX} {answer}"


class LiveKitService:
    """
    Voice collaborator: talks to the caller's LiveKit room

    Without LiveKit credentials, messages are only logged (simulated TTS)
    so the engine can run locally.
    """

    def __init__(self, settings: Settings):
        self.livekit_url = settings.livekit_url
        self.api_key = settings.livekit_api_key
        self.api_secret = settings.livekit_api_secret
        self.configured = settings.livekit_configured

    async def deliver_message(self, session_id: str, text: str) -> None:
        """
        Speak text to the caller of session_id

        The message is published as a data packet on the "tts" topic of the
        session's room, where the voice agent turns it into speech.
        """
        room = room_name_for(session_id)
        logger.info(f"📢 TTS to customer {session_id} in room {room}: {text}")
        if not self.configured:
            return

        payload = json.dumps({
            "type": "tts",
            "sessionId": session_id,
            "message": text,
            "timestamp": utc_now().isoformat(),
        }).encode("utf-8")

        lkapi = api.LiveKitAPI(self.livekit_url, self.api_key, self.api_secret)
        try:
            await lkapi.room.send_data(api.SendDataRequest(room=room, data=payload, topic="tts"))
        finally:
            await lkapi.aclose()

    def issue_access_token(
        self,
        room_name: str,
        participant_name: str,
        participant_identity: Optional[str] = None,
    ) -> str:
        """Generate a LiveKit access token that lets a client join room_name"""
        if not self.configured:
            raise InternalError("LiveKit credentials not configured. Check .env file.")

        token = api.AccessToken(self.api_key, self.api_secret)
        token.with_identity(participant_identity or participant_name)
        token.with_name(participant_name)
        token.with_grants(api.VideoGrants(
            room_join=True,
            room=room_name,
            can_publish=True,
            can_subscribe=True,
        ))
        return token.to_jwt()

    def get_room_info(self, session_id: str) -> dict:
        return {
            "roomName": room_name_for(session_id),
            "livekitUrl": self.livekit_url,
        }
