from typing import Callable, Optional, List
from datetime import datetime, timedelta

from salon_supervisor.core.errors import InvalidStateTransitionError, NotFoundError
from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.database import SQLiteCollection
from salon_supervisor.models.schemas import CustomerInfo, HelpRequest, RequestStatus, utc_now

logger = get_plain_logger(__name__)


class HelpRequestService:
    """
    Manages help requests from AI to human supervisor

    Requests start PENDING and leave it exactly once, either RESOLVED by a
    supervisor or UNRESOLVED by the timeout sweeper.
    """

    def __init__(
        self,
        collection: SQLiteCollection,
        timeout_ms: int = 600_000,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.collection = collection
        self.timeout = timedelta(milliseconds=timeout_ms)
        self.clock = clock

    async def create(
        self,
        question: str,
        customer_info: Optional[CustomerInfo] = None,
        agent_session_id: Optional[str] = None,
    ) -> HelpRequest:
        now = self.clock()
        doc = {
            "question": question,
            "customer_info": (customer_info or CustomerInfo()).model_dump(),
            "status": RequestStatus.PENDING,
            "created_at": now,
            "timeout_at": now + self.timeout,
            "resolved_at": None,
            "supervisor_response": None,
            "agent_session_id": agent_session_id,
        }
        request_id = self.collection.insert(doc)
        logger.info(f"📝 Created help request #{request_id}: {question[:50]}")
        return HelpRequest(id=request_id, **doc)

    async def get(self, request_id: str) -> Optional[HelpRequest]:
        doc = self.collection.get_by_id(request_id)
        return HelpRequest.model_validate(doc) if doc else None

    async def list_pending(self) -> List[HelpRequest]:
        """Pending requests, longest waiting first"""
        docs = self.collection.query(
            filters=[("status", "==", RequestStatus.PENDING)],
            order_by="created_at",
        )
        return [HelpRequest.model_validate(d) for d in docs]

    async def list_all(self) -> List[HelpRequest]:
        docs = self.collection.query(order_by="created_at", descending=True)
        return [HelpRequest.model_validate(d) for d in docs]

    async def list_expired(self) -> List[HelpRequest]:
        docs = self.collection.query(
            filters=[
                ("status", "==", RequestStatus.PENDING),
                ("timeout_at", "<=", self.clock()),
            ],
            order_by="created_at",
        )
        return [HelpRequest.model_validate(d) for d in docs]

    async def mark_resolved(self, request_id: str, supervisor_response: str) -> None:
        self._transition(
            request_id,
            RequestStatus.RESOLVED,
            {"supervisor_response": supervisor_response},
        )
        logger.info(f"✅ Resolved request #{request_id}")

    async def mark_unresolved(self, request_id: str) -> None:
        self._transition(request_id, RequestStatus.UNRESOLVED, {})
        logger.warning(f"⏰ Marked request #{request_id} as unresolved (timeout)")

    def _transition(self, request_id: str, target: RequestStatus, fields: dict) -> None:
        """
        Move a PENDING request to a terminal state

        The status check and write happen in one store update, so of two
        concurrent transitions on the same id only the first succeeds.
        """
        patch = {"status": target, "resolved_at": self.clock(), **fields}
        try:
            applied = self.collection.update_by_id(
                request_id, patch, where=[("status", "==", RequestStatus.PENDING)]
            )
        except NotFoundError:
            raise NotFoundError(f"Help request {request_id} not found") from None

        if not applied:
            current = self.collection.get_by_id(request_id) or {}
            raise InvalidStateTransitionError(request_id, current.get("status", "unknown"), target.value)

    async def get_stats(self) -> dict:
        """Get statistics for dashboard"""
        requests = await self.list_all()
        counts = {status: 0 for status in RequestStatus}
        resolution_seconds = []
        for r in requests:
            counts[r.status] += 1
            if r.status == RequestStatus.RESOLVED and r.resolved_at:
                resolution_seconds.append((r.resolved_at - r.created_at).total_seconds())

        return {
            "pending": counts[RequestStatus.PENDING],
            "resolved": counts[RequestStatus.RESOLVED],
            "unresolved": counts[RequestStatus.UNRESOLVED],
            "total": len(requests),
            "avg_resolution_seconds": (
                round(sum(resolution_seconds) / len(resolution_seconds), 2)
                if resolution_seconds else 0
            ),
        }
