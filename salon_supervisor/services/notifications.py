import asyncio
from typing import Protocol, Set

from pydantic import ValidationError

from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.models.events import (
    ClientMessage,
    CustomerFollowUp,
    CustomerFollowUpEvent,
    HelpRequestCreatedEvent,
    HelpRequestUpdatedEvent,
    KnowledgeUpdatedEvent,
    NotificationEvent,
    SubscribedEvent,
)
from salon_supervisor.models.schemas import HelpRequest, KnowledgeEntry

logger = get_plain_logger(__name__)


class Observer(Protocol):
    """Anything that accepts text frames, e.g. a starlette WebSocket"""

    async def send_text(self, data: str) -> None: ...


class NotificationService:
    """
    Fan-out of dashboard events to connected observers

    Delivery is fire-and-forget: an observer that fails to receive an event
    is dropped, and late subscribers get no replay. Each send is bounded by
    `send_timeout` seconds so a stalled observer cannot hold up the caller.
    """

    def __init__(self, send_timeout: float = 5.0):
        self.send_timeout = send_timeout
        self._clients: Set[Observer] = set()

    def connect(self, client: Observer) -> None:
        self._clients.add(client)
        logger.info(f"New supervisor client connected ({len(self._clients)} active)")

    def disconnect(self, client: Observer) -> None:
        if client in self._clients:
            self._clients.discard(client)
            logger.info(f"Supervisor client disconnected ({len(self._clients)} active)")

    def get_connected_clients_count(self) -> int:
        return len(self._clients)

    async def handle_message(self, client: Observer, raw: str) -> None:
        try:
            message = ClientMessage.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Error parsing WebSocket message: {e}")
            return

        if message.type == "subscribe":
            logger.info("Client subscribed to notifications")
            await self._send(client, SubscribedEvent())
        else:
            logger.info(f"Unknown message type: {message.type}")

    async def broadcast(self, event: NotificationEvent) -> None:
        # Snapshot: observers may disconnect while we are sending
        for client in list(self._clients):
            await self._send(client, event)

    async def _send(self, client: Observer, event: NotificationEvent) -> None:
        try:
            await asyncio.wait_for(client.send_text(event.model_dump_json()), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Dropping supervisor client after send timed out ({self.send_timeout}s)")
            self.disconnect(client)
        except Exception as e:
            logger.warning(f"Dropping supervisor client after failed send: {e}")
            self.disconnect(client)

    async def notify_help_request_created(self, help_request: HelpRequest) -> None:
        await self.broadcast(HelpRequestCreatedEvent(data=help_request))
        logger.info(f"📞 New help request created: {help_request.question}")

    async def notify_help_request_updated(self, help_request: HelpRequest) -> None:
        await self.broadcast(HelpRequestUpdatedEvent(data=help_request))
        logger.info(f"📝 Help request updated: {help_request.id} ({help_request.status.value})")

    async def notify_knowledge_updated(self, entry: KnowledgeEntry) -> None:
        await self.broadcast(KnowledgeUpdatedEvent(data=entry))
        logger.info(f"🧠 Knowledge base updated: {entry.question_text}")

    async def notify_customer_followup(self, session_id: str, message: str) -> None:
        await self.broadcast(CustomerFollowUpEvent(
            data=CustomerFollowUp(session_id=session_id, message=message)
        ))
        logger.info(f"📢 Customer follow-up sent: {message}")
