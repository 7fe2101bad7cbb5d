import asyncio
from typing import Any, Dict, Optional
from storefront.notifications.constants import ORDER_CANCELLED, ORDER_CONFIRMATION, logger
from storefront.notifications.notifier import Notifier

SENTINEL = None  # queue sentinel


class NotificationWorker:
    """Fire-and-forget notification dispatch.

    Workflows call `dispatch()` after their commit. Delivery happens on background
    tasks, each call bounded by `task_timeout`, and failures are only logged.
    """

    def __init__(self, notifier: Notifier, workers_count: int = 2, max_queue_size: int = 1000,
                 task_timeout: float = 5.0):
        self.notifier = notifier
        self.queue: asyncio.Queue[Optional[Dict[str, Any]]] = asyncio.Queue(maxsize=max_queue_size)
        self.worker_loops: Dict[str, asyncio.Task] = {}
        self.workers_count = workers_count
        self.task_timeout = task_timeout
        self._handlers = {
            ORDER_CONFIRMATION: notifier.send_order_confirmation,
            ORDER_CANCELLED: notifier.send_cancellation_notice,
        }

    async def start(self):
        if self.worker_loops:
            return
        for i in range(self.workers_count):
            cur_worker_name = f"notifier-worker:{i+1}"
            self.worker_loops[cur_worker_name] = asyncio.create_task(self._worker_loop(cur_worker_name))
            logger.info("[%s] started", cur_worker_name)

    def dispatch(self, event: str, order: Dict[str, Any]) -> bool:
        """Enqueue without waiting. A full queue drops the event."""
        if event not in self._handlers:
            logger.error("notification.unknown_event", extra={"event": event})
            return False
        try:
            self.queue.put_nowait({"event": event, "data": order})
        except asyncio.QueueFull:
            logger.warning("notification.queue_full", extra={"event": event, "order_number": order.get("order_number")})
            return False
        return True

    async def shutdown(self, *, drain_first: bool = True, drain_timeout: float = 10.0, wait_timeout: float = 10.0):
        """Optionally let queued notifications go out, then stop every worker loop."""
        if not self.worker_loops:
            return
        if drain_first:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning("notification.drain_timeout", extra={"pending": self.queue.qsize()})

        for _ in self.worker_loops:
            await self.queue.put(SENTINEL)

        for name, task in self.worker_loops.items():
            try:
                await asyncio.wait_for(task, timeout=wait_timeout)
            except asyncio.TimeoutError:
                logger.warning("[%s] worker did not finish; cancelled", name)
        self.worker_loops = {}

    async def _worker_loop(self, cur_worker_name: str):
        while True:
            qitem = await self.queue.get()
            try:
                if qitem is SENTINEL:
                    logger.info("[%s] sentinel received; exiting loop", cur_worker_name)
                    break
                await self.task_executor(qitem, cur_worker_name)
            finally:
                self.queue.task_done()

    async def task_executor(self, task: Dict[str, Any], wname: str) -> None:
        handler = self._handlers[task["event"]]
        order = task["data"]
        try:
            await asyncio.wait_for(handler(order), timeout=self.task_timeout)
        except asyncio.TimeoutError:
            logger.warning("notification.timeout", extra={
                "event": task["event"], "order_number": order.get("order_number"), "worker": wname,
            })
        except Exception:
            logger.exception("notification.failed", extra={
                "event": task["event"], "order_number": order.get("order_number"), "worker": wname,
            })
