"""
Help Request Router
Handles all help request endpoints
"""

from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
import logging

from salon_supervisor.models.schemas import ResolveRequestBody
from salon_supervisor.core.errors import SupervisorError, to_http_exception
from salon_supervisor.services import HelpRequestService, ResolutionService, TimeoutSweeper
from salon_supervisor.core.dependencies import (
    get_help_request_service,
    get_resolution_service,
    get_sweeper,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/help-requests",
    tags=["Help Requests"]
)


@router.get("/stats", response_model=dict)
async def get_stats(
    service: HelpRequestService = Depends(get_help_request_service)
):
    """Get statistics about help requests"""
    try:
        stats = await service.get_stats()
        return {
            "success": True,
            "stats": stats
        }
    except Exception as e:
        logger.error(f"Error fetching stats: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/maintenance/check-timeouts", response_model=dict)
async def check_timeouts(
    sweeper: TimeoutSweeper = Depends(get_sweeper)
):
    """Run one timeout sweep now instead of waiting for the scheduler"""
    count = await sweeper.run_once()
    return {
        "success": True,
        "timed_out_count": count,
        "message": f"Marked {count} requests as unresolved due to timeout"
    }


@router.get("", response_model=dict)
async def list_requests(
    status: Optional[str] = None,
    service: HelpRequestService = Depends(get_help_request_service)
):
    """Get all help requests, newest first, or only pending ones (oldest first)"""
    try:
        if status and status.lower() == "pending":
            requests = await service.list_pending()
        else:
            requests = await service.list_all()
        return {
            "success": True,
            "count": len(requests),
            "requests": requests
        }
    except Exception as e:
        logger.error(f"Error fetching requests: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/{request_id}", response_model=dict)
async def get_request_details(
    request_id: str,
    service: HelpRequestService = Depends(get_help_request_service)
):
    """Get details of specific help request"""
    try:
        request = await service.get(request_id)
    except Exception as e:
        logger.error(f"Error fetching request {request_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    if not request:
        raise HTTPException(status_code=404, detail="Help request not found")

    return {
        "success": True,
        "request": request
    }


@router.post("/{request_id}/respond", response_model=dict)
async def respond_to_request(
    request_id: str,
    body: ResolveRequestBody,
    service: ResolutionService = Depends(get_resolution_service)
):
    """
    Supervisor resolves a help request
    This triggers:
    1. Update request status to resolved
    2. Add answer to knowledge base
    3. Follow up with customer
    4. Push updates to connected dashboards
    """
    try:
        result = await service.resolve(request_id, body.supervisor_response)
    except SupervisorError as e:
        raise to_http_exception(e)

    return {
        "success": True,
        "message": "Request resolved and customer notified",
        "helpRequest": result.help_request,
        "knowledgeEntry": result.knowledge_entry,
    }
