"""In-process consumer for quiz submission events.

Submissions are published after they are stored. The consumer currently only
records that it received them; it is the hook for post-processing such as
analytics or notifications.
"""
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class SubmissionConsumer:
    def __init__(self, maxsize: int = 1000):
        self.maxsize = maxsize
        self.queue: Optional[asyncio.Queue] = None
        self.processed_count = 0
        self._task: Optional[asyncio.Task] = None
    
    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
    
    def start(self):
        if self.running:
            return
        self.queue = asyncio.Queue(maxsize=self.maxsize)
        self._task = asyncio.create_task(self._run())
        logger.info("Quiz submission consumer started")
    
    async def stop(self):
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info(f"Quiz submission consumer stopped after {self.processed_count} events")
    
    def publish(self, event: dict) -> bool:
        """Enqueue without blocking. Returns False when the event was dropped"""
        if not self.running:
            logger.debug(f"Submission consumer not running, dropping event for assignment {event.get('assignment_id')}")
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Submission queue full, dropping event for assignment {event.get('assignment_id')}")
            return False
        return True
    
    async def drain(self):
        """Wait until every queued event has been handled"""
        if self.queue is not None:
            await self.queue.join()
    
    async def _run(self):
        while True:
            event = await self.queue.get()
            try:
                await self.handle(event)
            except Exception as e:
                logger.error(f"Failed to handle submission event: {str(e)}")
            finally:
                self.queue.task_done()
    
    async def handle(self, event: dict):
        self.processed_count += 1
        logger.info(
            f"Received quiz submission: assignment {event.get('assignment_id')} "
            f"candidate {event.get('candidate_id')} score {event.get('score')} "
            f"late: {event.get('is_late_submission')}"
        )


submission_consumer = SubmissionConsumer()


def publish_submission(event: dict) -> bool:
    return submission_consumer.publish(event)
