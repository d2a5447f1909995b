from typing import Optional

from salon_supervisor.core.errors import InternalError, InvalidInputError, SupervisorError
from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.models.schemas import AnswerSource, CallOutcome, CustomerInfo
from .help_request import HelpRequestService
from .knowledge_base import KnowledgeBaseService
from .livekit import ESCALATION_MESSAGE, LiveKitService
from .notifications import NotificationService

logger = get_plain_logger(__name__)


class EscalationService:
    """
    Decides how an incoming call question gets answered

    A knowledge base hit is spoken straight back to the caller. A miss
    tells the caller we are checking, opens a help request and alerts
    connected supervisors.
    """

    def __init__(
        self,
        knowledge_base: KnowledgeBaseService,
        help_requests: HelpRequestService,
        voice: LiveKitService,
        notifications: NotificationService,
    ):
        self.knowledge_base = knowledge_base
        self.help_requests = help_requests
        self.voice = voice
        self.notifications = notifications

    async def handle_incoming_call(
        self,
        session_id: str,
        question: str,
        customer_info: Optional[CustomerInfo] = None,
    ) -> CallOutcome:
        if not question or not question.strip():
            raise InvalidInputError("Question is required")

        logger.info(f"📞 Call received for session {session_id}: {question}")
        try:
            match = await self.knowledge_base.find_match(question)
            if match:
                await self.voice.deliver_message(session_id, match.answer_text)
                return CallOutcome(answer_text=match.answer_text, source=AnswerSource.KNOWLEDGE_BASE)

            await self.voice.deliver_message(session_id, ESCALATION_MESSAGE)
            help_request = await self.help_requests.create(
                question=question,
                customer_info=customer_info,
                agent_session_id=session_id,
            )
        except SupervisorError:
            raise
        except Exception as e:
            logger.error(f"Error processing call for session {session_id}: {e}", exc_info=True)
            raise InternalError("Failed to process incoming call") from e

        # Supervisors also see the request by polling, so a failed alert is not fatal
        try:
            await self.notifications.notify_help_request_created(help_request)
        except Exception as e:
            logger.error(f"Failed to broadcast help request #{help_request.id}: {e}", exc_info=True)

        logger.info(f"🔄 Escalated question to supervisor as request #{help_request.id}")
        return CallOutcome(
            answer_text=ESCALATION_MESSAGE,
            source=AnswerSource.ESCALATED,
            help_request_id=help_request.id,
        )
