
from .knowledge_base import KnowledgeBaseService, normalize_question, similarity
from .help_request import HelpRequestService
from .livekit import LiveKitService
from .notifications import NotificationService
from .escalation import EscalationService
from .resolution import ResolutionService
from .sweeper import TimeoutSweeper

__all__ = [
    "KnowledgeBaseService",
    "normalize_question",
    "similarity",
    "HelpRequestService",
    "LiveKitService",
    "NotificationService",
    "EscalationService",
    "ResolutionService",
    "TimeoutSweeper",
]
