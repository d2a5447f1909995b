"""
Agent Router
Entry point for the voice agent when a caller asks a question
"""

from fastapi import APIRouter, Depends
import logging

from salon_supervisor.models.schemas import CallReceived
from salon_supervisor.core.errors import SupervisorError, to_http_exception
from salon_supervisor.services import EscalationService
from salon_supervisor.core.dependencies import get_escalation_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/agent",
    tags=["Agent"]
)


@router.post("/call-received", response_model=dict)
async def call_received(
    call: CallReceived,
    service: EscalationService = Depends(get_escalation_service)
):
    """Answer from the knowledge base, or escalate to a supervisor"""
    try:
        outcome = await service.handle_incoming_call(
            session_id=call.session_id,
            question=call.question,
            customer_info=call.customer_info,
        )
    except SupervisorError as e:
        raise to_http_exception(e)

    response = {
        "success": True,
        "response": outcome.answer_text,
        "source": outcome.source.value,
    }
    if outcome.help_request_id:
        response["helpRequestId"] = outcome.help_request_id
    return response
