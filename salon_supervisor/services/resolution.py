from typing import Optional

from salon_supervisor.core.errors import (
    InternalError,
    InvalidInputError,
    InvalidStateTransitionError,
    NotFoundError,
    SupervisorError,
)
from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.models.schemas import KnowledgeEntryCreate, RequestStatus, Resolution
from .help_request import HelpRequestService
from .knowledge_base import KnowledgeBaseService, normalize_question
from .livekit import LiveKitService, follow_up_message
from .notifications import NotificationService

logger = get_plain_logger(__name__)


class ResolutionService:
    """
    Applies a supervisor's answer to a pending help request

    Steps run in order without an enclosing transaction:
    1. mark the request resolved
    2. learn the answer as a knowledge entry
    3. follow up with the caller, if the call session is known
    4. broadcast the updated request
    5. broadcast the new knowledge entry
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

    async def resolve(self, help_request_id: str, supervisor_response: Optional[str]) -> Resolution:
        if not supervisor_response or not supervisor_response.strip():
            raise InvalidInputError("Supervisor response is required")

        try:
            help_request = await self.help_requests.get(help_request_id)
            if help_request is None:
                raise NotFoundError(f"Help request {help_request_id} not found")
            if help_request.status != RequestStatus.PENDING:
                raise InvalidStateTransitionError(
                    help_request_id, help_request.status.value, RequestStatus.RESOLVED.value
                )

            logger.info(f"📱 Resolving request #{help_request_id}: {help_request.question[:50]}")
            await self.help_requests.mark_resolved(help_request_id, supervisor_response)
        except SupervisorError:
            raise
        except Exception as e:
            logger.error(f"Error resolving request {help_request_id}: {e}", exc_info=True)
            raise InternalError("Failed to resolve help request") from e

        try:
            knowledge_entry = await self.knowledge_base.add_entry(KnowledgeEntryCreate(
                question_key=normalize_question(help_request.question),
                question_text=help_request.question,
                answer_text=supervisor_response,
                source_help_request_id=help_request_id,
                confidence=1.0,
                source="supervisor",
            ))
        except Exception as e:
            # Not retried: the request stays RESOLVED without a learned answer
            logger.error(
                f"Request #{help_request_id} resolved but knowledge entry was not written: {e}",
                exc_info=True,
            )
            raise InternalError("Help request resolved but answer was not saved") from e

        if help_request.agent_session_id:
            message = follow_up_message(supervisor_response)
            try:
                await self.voice.deliver_message(help_request.agent_session_id, message)
                logger.info(f"✅ Sent TTS follow-up to customer {help_request.agent_session_id}")
            except Exception as e:
                logger.error(
                    f"Follow-up delivery failed for request #{help_request_id}: {e}",
                    exc_info=True,
                )
            await self.notifications.notify_customer_followup(help_request.agent_session_id, message)

        try:
            updated = await self.help_requests.get(help_request_id)
        except Exception as e:
            logger.error(f"Error re-fetching request {help_request_id}: {e}", exc_info=True)
            raise InternalError("Failed to load resolved help request") from e

        await self.notifications.notify_help_request_updated(updated)
        await self.notifications.notify_knowledge_updated(knowledge_entry)

        return Resolution(help_request=updated, knowledge_entry=knowledge_entry)
