from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from salon_supervisor.core.errors import InvalidStateTransitionError
from salon_supervisor.core.logging import get_plain_logger
from salon_supervisor.models.schemas import HelpRequest
from .help_request import HelpRequestService
from .livekit import TIMEOUT_FALLBACK_MESSAGE, LiveKitService
from .notifications import NotificationService

logger = get_plain_logger(__name__)

SWEEPER_JOB_ID = "help_request_timeout_sweeper"


class TimeoutSweeper:
    """
    Periodically marks expired pending requests as unresolved

    run_once never raises: a failure on one request is logged and the rest
    of the batch still runs, and the scheduled job keeps firing.
    """

    def __init__(
        self,
        help_requests: HelpRequestService,
        voice: LiveKitService,
        notifications: NotificationService,
        interval_ms: int = 30_000,
    ):
        self.help_requests = help_requests
        self.voice = voice
        self.notifications = notifications
        self.interval_ms = interval_ms
        self._scheduler: Optional[AsyncIOScheduler] = None

    async def run_once(self) -> int:
        """Process one batch of expired requests; returns how many were expired"""
        try:
            expired = await self.help_requests.list_expired()
        except Exception as e:
            logger.error(f"Error listing expired help requests: {e}", exc_info=True)
            return 0

        count = 0
        for request in expired:
            try:
                if await self._expire(request):
                    count += 1
            except Exception as e:
                logger.error(f"Error expiring help request {request.id}: {e}", exc_info=True)

        if count:
            logger.warning(f"⏰ Marked {count} requests as unresolved (timeout)")
        return count

    async def _expire(self, request: HelpRequest) -> bool:
        logger.info(f"⏰ Help request {request.id} timed out")
        try:
            await self.help_requests.mark_unresolved(request.id)
        except InvalidStateTransitionError as e:
            # Resolved by a supervisor after we listed it
            logger.info(f"Skipping help request {request.id}: {e}")
            return False

        if request.agent_session_id:
            # One attempt only
            try:
                await self.voice.deliver_message(request.agent_session_id, TIMEOUT_FALLBACK_MESSAGE)
            except Exception as e:
                logger.error(
                    f"Fallback message to {request.agent_session_id} failed: {e}",
                    exc_info=True,
                )

        updated = await self.help_requests.get(request.id)
        await self.notifications.notify_help_request_updated(updated)
        return True

    def start(self) -> None:
        """Schedule run_once on the running event loop"""
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_ms / 1000,
            id=SWEEPER_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Timeout sweeper started (every {self.interval_ms} ms)")

    def shutdown(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Timeout sweeper stopped")

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running
