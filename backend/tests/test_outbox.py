"""Tests for the durable outbox and the notification jobs it drives.

Covers:
- Claim, complete, retry with backoff, permanent failure
- Re-queueing tasks left running by a dead worker, at start-up and periodically
- The worker loop survives store outages and unexpected errors
- Fan-out then verify, end to end through the worker
- Aborted fan-out is retried
"""
import asyncio
from datetime import timedelta

from eventpulse.database import utcnow
from eventpulse.models.outbox_task import TaskKind
from eventpulse.services.document_store import NOTIFICATIONS, OUTBOX, USERS, Query
from eventpulse.services.outbox import Outbox, OutboxWorker
from tests.conftest import make_draft, run, seed_admin, seed_event, seed_users


class CrashingOnceOutbox(Outbox):
    """Raises a non-domain error on the first poll only."""

    crashed = False

    async def claim_due(self, limit: int = 10):
        if not self.crashed:
            self.crashed = True
            raise RuntimeError("driver bug")
        return await super().claim_due(limit)


async def _run_until(worker, condition, timeout: float = 5.0):
    """Run the worker loop until ``condition()`` is truthy, then stop it."""
    stop = asyncio.Event()
    runner = asyncio.create_task(worker.run_forever(stop))
    try:
        deadline = asyncio.get_running_loop().time() + timeout
        while not condition() and asyncio.get_running_loop().time() < deadline:
            await asyncio.sleep(0.01)
    finally:
        stop.set()
        await asyncio.wait_for(runner, timeout=2)


class TestOutbox:
    def test_claim_and_complete(self, store):
        outbox = Outbox(store)
        task = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        assert task.status == "pending"

        claimed = run(outbox.claim_due())
        assert [t.id for t in claimed] == [task.id]
        assert claimed[0].status == "running"
        assert claimed[0].attempts == 1
        assert run(outbox.claim_due()) == []

        run(outbox.complete(claimed[0]))
        assert run(outbox.get(task.id)).status == "done"

    def test_future_tasks_are_not_due(self, store):
        outbox = Outbox(store)
        run(outbox.enqueue(TaskKind.verify, {"eventId": "e1"}, run_after=utcnow() + timedelta(minutes=5)))
        assert run(outbox.claim_due()) == []
        assert len(run(outbox.pending(TaskKind.verify))) == 1
        assert run(outbox.pending(TaskKind.fanout)) == []

    def test_failure_backs_off(self, store):
        outbox = Outbox(store, max_attempts=3, retry_backoff=5.0)
        task = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        claimed = run(outbox.claim_due())[0]
        run(outbox.fail(claimed, "boom"))

        retried = run(outbox.get(task.id))
        assert retried.status == "pending"
        assert retried.last_error == "boom"
        assert retried.run_after > utcnow() + timedelta(seconds=3)

    def test_gives_up_after_max_attempts(self, store):
        outbox = Outbox(store, max_attempts=1)
        task = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        run(outbox.fail(run(outbox.claim_due())[0], "boom"))
        assert run(outbox.get(task.id)).status == "failed"

    def test_requeue_stale(self, store):
        outbox = Outbox(store)
        task = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        run(outbox.claim_due())
        run(store.update(OUTBOX, task.id, {"claimedAt": utcnow() - timedelta(minutes=10)}))

        assert run(outbox.requeue_stale(timedelta(minutes=5))) == 1
        assert run(outbox.get(task.id)).status == "pending"


class TestWorker:
    def test_unknown_kind_is_failed(self, store):
        outbox = Outbox(store, max_attempts=1)
        task = run(outbox.enqueue(TaskKind.verify, {"eventId": "e1"}))
        worker = OutboxWorker(outbox, handlers={})
        assert run(worker.run_once()) == 1
        assert run(outbox.get(task.id)).status == "failed"

    def test_handler_exception_is_retried(self, store):
        outbox = Outbox(store)
        task = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))

        async def broken(_task):
            raise RuntimeError("handler crashed")

        worker = OutboxWorker(outbox, handlers={TaskKind.fanout.value: broken})
        run(worker.run_once())
        retried = run(outbox.get(task.id))
        assert retried.status == "pending"
        assert "handler crashed" in retried.last_error

    def test_run_forever_stops(self, store):
        outbox = Outbox(store)
        worker = OutboxWorker(outbox, handlers={}, poll_interval=0.01)

        async def scenario():
            stop = asyncio.Event()
            runner = asyncio.create_task(worker.run_forever(stop))
            await asyncio.sleep(0.05)
            stop.set()
            await asyncio.wait_for(runner, timeout=2)

        run(scenario())

    def test_outcome_write_failure_leaves_task_for_requeue(self, flaky):
        outbox = Outbox(flaky)
        first = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        second = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e2"}))
        handled = []

        async def handler(task):
            # The store goes down while the batch is being processed
            flaky.failing.add(("update", OUTBOX))
            handled.append(task.payload["eventId"])

        worker = OutboxWorker(outbox, handlers={TaskKind.fanout.value: handler})
        assert run(worker.run_once()) == 2
        assert sorted(handled) == ["e1", "e2"]

        flaky.failing.clear()
        for task in (first, second):
            assert run(outbox.get(task.id)).status == "running"
            run(flaky.inner.update(OUTBOX, task.id, {"claimedAt": utcnow() - timedelta(minutes=10)}))
        assert run(worker.requeue_stale()) == 2

    def test_run_forever_survives_unexpected_errors(self, store):
        outbox = CrashingOnceOutbox(store)
        run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        handled = []

        async def handler(task):
            handled.append(task.payload["eventId"])

        worker = OutboxWorker(outbox, handlers={TaskKind.fanout.value: handler}, poll_interval=0.01)
        run(_run_until(worker, lambda: handled))
        assert outbox.crashed
        assert handled == ["e1"]

    def test_run_forever_requeues_stale_tasks_periodically(self, store):
        outbox = Outbox(store)
        task = run(outbox.enqueue(TaskKind.fanout, {"eventId": "e1"}))
        # Claimed by a worker that then died
        run(outbox.claim_due())
        handled = []

        async def handler(claimed):
            handled.append(claimed.id)

        worker = OutboxWorker(
            outbox,
            handlers={TaskKind.fanout.value: handler},
            poll_interval=0.01,
            stale_after=timedelta(milliseconds=200),
        )
        run(_run_until(worker, lambda: handled))
        assert handled == [task.id]
        assert run(outbox.get(task.id)).status == "done"


class TestNotificationJobs:
    def test_event_creation_fans_out_then_verifies(self, store, services):
        admin = run(seed_admin(store))
        run(seed_users(store, 3))

        event = run(services.events.create_event_and_notify(make_draft(), admin.id))
        assert run(store.count(NOTIFICATIONS)) == 0

        assert run(services.worker.run_once()) == 1
        assert run(store.count(NOTIFICATIONS, Query().equal("eventId", event.id))) == 4
        assert len(run(services.outbox.pending(TaskKind.verify))) == 1

        assert run(services.worker.run_once()) == 1
        assert run(store.count(OUTBOX, Query().equal("status", "done"))) == 2
        assert run(services.verifier.verify(event.id)).ok

    def test_verify_task_resends_missed_users(self, flaky, flaky_services):
        users = run(seed_users(flaky.inner, 4))
        event = run(seed_event(flaky.inner))
        run(flaky_services.outbox.enqueue(TaskKind.fanout, {"eventId": event.id}))
        flaky.fail_notifications_for = {users[2].id}

        run(flaky_services.worker.run_once())
        assert not run(flaky_services.verifier.verify(event.id)).ok

        flaky.fail_notifications_for = set()
        run(flaky_services.worker.run_once())
        assert run(flaky_services.verifier.verify(event.id)).ok

    def test_aborted_fan_out_is_retried(self, flaky, flaky_services):
        run(seed_users(flaky.inner, 2))
        event = run(seed_event(flaky.inner))
        task = run(flaky_services.outbox.enqueue(TaskKind.fanout, {"eventId": event.id}))
        flaky.failing.add(("list", USERS))

        run(flaky_services.worker.run_once())

        retried = run(flaky_services.outbox.get(task.id))
        assert retried.status == "pending"
        assert retried.attempts == 1
        assert "DirectoryUnavailable" in retried.last_error
        assert run(flaky.inner.count(NOTIFICATIONS)) == 0
