
from fastapi import APIRouter, HTTPException, Depends
import logging

from salon_supervisor.models.schemas import KBEntry, KBSearch, KnowledgeEntryCreate
from salon_supervisor.core.errors import NotFoundError
from salon_supervisor.services import KnowledgeBaseService, normalize_question
from salon_supervisor.core.dependencies import get_knowledge_base_service, get_notification_service
from salon_supervisor.services.notifications import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/knowledge-base",
    tags=["Knowledge Base"]
)


@router.get("/")
async def get_knowledge_base(service: KnowledgeBaseService = Depends(get_knowledge_base_service)):
    """Get all learned answers, newest first"""
    try:
        answers = await service.get_all_entries()
        return {
            "success": True,
            "count": len(answers),
            "answers": answers
        }
    except Exception as e:
        logger.error(f"Error fetching knowledge base: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/")
async def add_to_knowledge_base(
    entry: KBEntry,
    service: KnowledgeBaseService = Depends(get_knowledge_base_service),
    notifications: NotificationService = Depends(get_notification_service),
):
    """Manually add entry to knowledge base"""
    try:
        created = await service.add_entry(KnowledgeEntryCreate(
            question_key=normalize_question(entry.question),
            question_text=entry.question,
            answer_text=entry.answer,
            confidence=entry.confidence,
            source="manual",
        ))
    except Exception as e:
        logger.error(f"Error adding to knowledge base: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")

    await notifications.notify_knowledge_updated(created)
    return {
        "success": True,
        "message": "Entry added to knowledge base",
        "entry": created
    }


@router.post("/search")
async def search_knowledge_base(query: KBSearch, service: KnowledgeBaseService = Depends(get_knowledge_base_service)):
    """Search knowledge base for answer"""
    try:
        answer = await service.find_match(query.question)
        return {
            "success": True,
            "found": answer is not None,
            "answer": answer
        }
    except Exception as e:
        logger.error(f"Error searching knowledge base: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/{kb_id}")
async def delete_from_knowledge_base(kb_id: str, service: KnowledgeBaseService = Depends(get_knowledge_base_service)):
    """Delete entry from knowledge base"""
    try:
        await service.delete_entry(kb_id)
        return {
            "success": True,
            "message": "Entry deleted"
        }
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Knowledge entry not found")
    except Exception as e:
        logger.error(f"Error deleting from knowledge base: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal server error")
