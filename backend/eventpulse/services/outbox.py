"""Durable outbox and the worker loop that drains it.

Event creation only enqueues work; the worker executes it later. Tasks are
rows in the ``outbox`` collection, so work survives a restart: tasks left
``running`` by a dead worker are put back to ``pending`` by
``requeue_stale``. There is no cross-worker lock. Two workers may pick up
the same task, which is harmless because notification writes are idempotent.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from eventpulse.database import utcnow
from eventpulse.exceptions import EventPulseError
from eventpulse.models.outbox_task import TaskKind, TaskStatus
from eventpulse.schemas.base import parse_record, parse_records
from eventpulse.schemas.outbox import OutboxTaskRecord
from eventpulse.services.document_store import OUTBOX, DocumentStore, Query

logger = logging.getLogger(__name__)

Handler = Callable[[OutboxTaskRecord], Awaitable[None]]


class Outbox:
    def __init__(self, store: DocumentStore, max_attempts: int = 5, retry_backoff: float = 5.0):
        self.store = store
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff

    async def enqueue(
        self, kind: TaskKind, payload: dict[str, Any], run_after: Optional[datetime] = None,
    ) -> OutboxTaskRecord:
        doc = await self.store.create(OUTBOX, {
            "kind": kind.value,
            "payload": payload,
            "status": TaskStatus.pending.value,
            "runAfter": run_after or utcnow(),
        })
        task = parse_record(OutboxTaskRecord, OUTBOX, doc)
        logger.info("Enqueued %s task %s (run after %s)", task.kind, task.id, task.run_after.isoformat())
        return task

    async def claim_due(self, limit: int = 10) -> list[OutboxTaskRecord]:
        query = (
            Query()
            .equal("status", TaskStatus.pending.value)
            .at_most("runAfter", utcnow())
            .order_asc("runAfter")
            .limit(limit)
        )
        claimed = []
        for task in parse_records(OutboxTaskRecord, OUTBOX, await self.store.list(OUTBOX, query)):
            doc = await self.store.update(OUTBOX, task.id, {
                "status": TaskStatus.running.value,
                "claimedAt": utcnow(),
                "attempts": task.attempts + 1,
            })
            claimed.append(parse_record(OutboxTaskRecord, OUTBOX, doc))
        return claimed

    async def complete(self, task: OutboxTaskRecord) -> None:
        await self.store.update(OUTBOX, task.id, {"status": TaskStatus.done.value, "lastError": None})

    async def fail(self, task: OutboxTaskRecord, error: str) -> None:
        """Re-queue with exponential backoff, or give up after max_attempts."""
        if task.attempts >= self.max_attempts:
            logger.error("Task %s (%s) failed permanently after %d attempts: %s", task.id, task.kind, task.attempts, error)
            await self.store.update(OUTBOX, task.id, {"status": TaskStatus.failed.value, "lastError": error})
            return
        delay = self.retry_backoff * (2 ** max(task.attempts - 1, 0))
        await self.store.update(OUTBOX, task.id, {
            "status": TaskStatus.pending.value,
            "runAfter": utcnow() + timedelta(seconds=delay),
            "lastError": error,
        })

    async def requeue_stale(self, older_than: timedelta) -> int:
        query = (
            Query()
            .equal("status", TaskStatus.running.value)
            .less_than("claimedAt", utcnow() - older_than)
        )
        stale = parse_records(OutboxTaskRecord, OUTBOX, await self.store.list(OUTBOX, query))
        for task in stale:
            await self.store.update(OUTBOX, task.id, {"status": TaskStatus.pending.value})
        if stale:
            logger.warning("Re-queued %d stale outbox tasks", len(stale))
        return len(stale)

    async def get(self, task_id: str) -> OutboxTaskRecord:
        return parse_record(OutboxTaskRecord, OUTBOX, await self.store.get(OUTBOX, task_id))

    async def pending(self, kind: Optional[TaskKind] = None) -> list[OutboxTaskRecord]:
        query = Query().equal("status", TaskStatus.pending.value).order_asc("runAfter")
        if kind is not None:
            query = query.equal("kind", kind.value)
        return parse_records(OutboxTaskRecord, OUTBOX, await self.store.list(OUTBOX, query))


class OutboxWorker:
    """Polls the outbox and dispatches due tasks to their handlers."""

    def __init__(
        self,
        outbox: Outbox,
        handlers: dict[str, Handler],
        poll_interval: float = 1.0,
        batch_limit: int = 10,
        stale_after: timedelta = timedelta(minutes=5),
    ):
        self.outbox = outbox
        self.handlers = handlers
        self.poll_interval = poll_interval
        self.batch_limit = batch_limit
        self.stale_after = stale_after

    async def run_once(self) -> int:
        tasks = await self.outbox.claim_due(self.batch_limit)
        for task in tasks:
            handler = self.handlers.get(task.kind)
            if handler is None:
                await self._settle(task, f"no handler for task kind {task.kind!r}")
                continue
            try:
                await handler(task)
            except Exception as exc:
                # A task failure must not stop the loop; the outbox decides on retries
                logger.exception("Outbox task %s (%s) failed", task.id, task.kind)
                await self._settle(task, f"{type(exc).__name__}: {exc}")
                continue
            await self._settle(task)
        return len(tasks)

    async def _settle(self, task: OutboxTaskRecord, error: Optional[str] = None) -> None:
        """Record a task's outcome.

        If the store is down the task stays ``running`` and a later
        ``requeue_stale`` puts it back.
        """
        try:
            if error is None:
                await self.outbox.complete(task)
            else:
                await self.outbox.fail(task, error)
        except EventPulseError:
            logger.exception("Could not record outcome of outbox task %s (%s)", task.id, task.kind)

    async def requeue_stale(self) -> int:
        try:
            return await self.outbox.requeue_stale(self.stale_after)
        except EventPulseError:
            logger.exception("Could not re-queue stale outbox tasks")
            return 0

    async def run_forever(self, stop: asyncio.Event) -> None:
        logger.info("Outbox worker started (poll every %.1fs)", self.poll_interval)
        loop = asyncio.get_running_loop()
        await self.requeue_stale()
        last_requeue = loop.time()
        while not stop.is_set():
            if loop.time() - last_requeue >= self.stale_after.total_seconds():
                await self.requeue_stale()
                last_requeue = loop.time()
            try:
                handled = await self.run_once()
            except Exception:
                logger.exception("Outbox poll failed")
                handled = 0
            if handled:
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Outbox worker stopped")
