from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from fastapi import Depends, Request

from salon_supervisor.database import SQLiteCollection
from salon_supervisor.models.schemas import utc_now
from salon_supervisor.services import (
    EscalationService,
    HelpRequestService,
    KnowledgeBaseService,
    LiveKitService,
    NotificationService,
    ResolutionService,
    TimeoutSweeper,
)
from .config import Settings


@dataclass
class ServiceContainer:
    """All services of one running application, built once at startup"""
    settings: Settings
    knowledge_base: KnowledgeBaseService
    help_requests: HelpRequestService
    voice: LiveKitService
    notifications: NotificationService
    escalation: EscalationService
    resolution: ResolutionService
    sweeper: TimeoutSweeper


def build_container(
    settings: Settings,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceContainer:
    knowledge_base = KnowledgeBaseService(
        SQLiteCollection(settings.database_path, "knowledge_base"),
        clock=clock,
    )
    help_requests = HelpRequestService(
        SQLiteCollection(settings.database_path, "help_requests"),
        timeout_ms=settings.help_request_timeout_ms,
        clock=clock,
    )
    voice = LiveKitService(settings)
    notifications = NotificationService(send_timeout=settings.notification_send_timeout_ms / 1000)

    return ServiceContainer(
        settings=settings,
        knowledge_base=knowledge_base,
        help_requests=help_requests,
        voice=voice,
        notifications=notifications,
        escalation=EscalationService(knowledge_base, help_requests, voice, notifications),
        resolution=ResolutionService(knowledge_base, help_requests, voice, notifications),
        sweeper=TimeoutSweeper(
            help_requests, voice, notifications, interval_ms=settings.sweeper_interval_ms
        ),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_knowledge_base_service(
    container: ServiceContainer = Depends(get_container),
) -> KnowledgeBaseService:
    return container.knowledge_base


def get_help_request_service(
    container: ServiceContainer = Depends(get_container),
) -> HelpRequestService:
    return container.help_requests


def get_escalation_service(
    container: ServiceContainer = Depends(get_container),
) -> EscalationService:
    return container.escalation


def get_resolution_service(
    container: ServiceContainer = Depends(get_container),
) -> ResolutionService:
    return container.resolution


def get_sweeper(container: ServiceContainer = Depends(get_container)) -> TimeoutSweeper:
    return container.sweeper


def get_livekit_service(container: ServiceContainer = Depends(get_container)) -> LiveKitService:
    return container.voice


def get_notification_service(
    container: ServiceContainer = Depends(get_container),
) -> NotificationService:
    return container.notifications
