"""Tests for fan-out, delivery verification and resend.

Covers:
- Fan-out report with one injected write failure
- Verification finds exactly the missed user; resend repairs it
- Resend and repeated fan-out are idempotent
- Unreadable directory aborts fan-out and verification
- Push payloads only for delivered users with tokens
"""
import pytest

from eventpulse.exceptions import VerificationIncomplete
from eventpulse.services.document_store import NOTIFICATIONS, USERS, Query
from eventpulse.services.fanout import FanOutOrchestrator
from eventpulse.services.push import build_local_event_alert, build_push_messages
from tests.conftest import run, seed_event, seed_users


class RecordingGateway:
    def __init__(self, fail_tokens=()):
        self.sent = []
        self.fail_tokens = set(fail_tokens)

    async def send(self, token, title, body, data):
        if token in self.fail_tokens:
            raise ConnectionError("push service unreachable")
        self.sent.append((token, title, body, data))


class TestFanOutScenario:
    """Twelve users, the seventh write fails, then verify and resend."""

    def test_missed_user_is_found_and_repaired(self, flaky, flaky_services):
        users = run(seed_users(flaky.inner, 12))
        event = run(seed_event(flaky.inner))
        flaky.fail_notifications_for = {users[6].id}

        report = run(flaky_services.orchestrator.fan_out(event))
        assert (report.total_users, report.created, report.failed) == (12, 11, 1)
        assert not report.aborted
        assert report.failures[0].user_id == users[6].id

        verification = run(flaky_services.verifier.verify(event.id))
        assert not verification.ok
        assert verification.missing_ids == {users[6].id}
        assert verification.total_notified == 11

        flaky.fail_notifications_for = set()
        resend = run(flaky_services.resend.resend_missing(event.id))
        assert (resend.attempted, resend.succeeded, resend.failed) == (1, 1, 0)

        after = run(flaky_services.verifier.verify(event.id))
        assert after.ok
        assert after.total_notified == 12

    def test_second_resend_attempts_nothing(self, store, services):
        run(seed_users(store, 5))
        event = run(seed_event(store))

        first = run(services.resend.resend_missing(event.id))
        assert first.attempted == 5
        second = run(services.resend.resend_missing(event.id))
        assert second.attempted == 0
        assert run(store.count(NOTIFICATIONS)) == 5

    def test_resend_still_failing_is_reported(self, flaky, flaky_services):
        users = run(seed_users(flaky.inner, 3))
        event = run(seed_event(flaky.inner))
        flaky.fail_notifications_for = {users[0].id}
        report = run(flaky_services.resend.resend_missing(event.id))
        assert (report.attempted, report.succeeded, report.failed) == (3, 2, 1)


class TestFanOutEdges:
    def test_double_fan_out_writes_no_duplicates(self, store, services):
        run(seed_users(store, 6))
        event = run(seed_event(store))
        run(services.orchestrator.fan_out(event))
        second = run(services.orchestrator.fan_out(event))
        assert second.created == 6
        assert run(store.count(NOTIFICATIONS, Query().equal("eventId", event.id))) == 6

    def test_no_users(self, store, services):
        event = run(seed_event(store))
        report = run(services.orchestrator.fan_out(event))
        assert report.total_users == 0
        assert report.created == 0
        assert not report.aborted

    def test_directory_failure_aborts_before_any_write(self, flaky, flaky_services):
        run(seed_users(flaky.inner, 4))
        event = run(seed_event(flaky.inner))
        flaky.failing.add(("list", USERS))

        report = run(flaky_services.orchestrator.fan_out(event))
        assert report.aborted
        assert report.error
        assert report.created == 0
        assert ("create", NOTIFICATIONS) not in flaky.calls

    def test_verification_incomplete_when_directory_unreadable(self, flaky, flaky_services):
        event = run(seed_event(flaky.inner))
        flaky.failing.add(("list", USERS))
        with pytest.raises(VerificationIncomplete) as exc_info:
            run(flaky_services.verifier.verify(event.id))
        assert exc_info.value.event_id == event.id

    def test_verification_incomplete_when_notifications_unreadable(self, flaky, flaky_services):
        run(seed_users(flaky.inner, 2))
        event = run(seed_event(flaky.inner))
        flaky.failing.add(("list", NOTIFICATIONS))
        with pytest.raises(VerificationIncomplete):
            run(flaky_services.verifier.verify(event.id))

    def test_verification_incomplete_when_user_records_malformed(self, flaky, flaky_services):
        run(seed_users(flaky.inner, 2))
        event = run(seed_event(flaky.inner))
        flaky.strip_fields[USERS] = {"username"}
        with pytest.raises(VerificationIncomplete) as exc_info:
            run(flaky_services.verifier.verify(event.id))
        assert exc_info.value.event_id == event.id

    def test_verification_incomplete_when_notification_records_malformed(self, flaky, flaky_services):
        users = run(seed_users(flaky.inner, 2))
        event = run(seed_event(flaky.inner))
        run(flaky_services.writer.write_notifications(event, users))
        flaky.strip_fields[NOTIFICATIONS] = {"userId"}
        with pytest.raises(VerificationIncomplete):
            run(flaky_services.verifier.verify(event.id))

    def test_notifications_of_other_events_do_not_count(self, store, services):
        run(seed_users(store, 3))
        first = run(seed_event(store, name="First"))
        second = run(seed_event(store, name="Second"))
        run(services.orchestrator.fan_out(first))
        verification = run(services.verifier.verify(second.id))
        assert not verification.ok
        assert len(verification.missing) == 3


class TestPush:
    def test_push_only_to_delivered_users_with_tokens(self, flaky, flaky_services):
        users = run(seed_users(flaky.inner, 4))
        event = run(seed_event(flaky.inner, name="Jazz Night"))
        for index in (0, 1, 2):
            run(flaky.inner.update(USERS, users[index].id, {"pushToken": f"token-{index}"}))
        flaky.fail_notifications_for = {users[1].id}
        gateway = RecordingGateway()
        orchestrator = FanOutOrchestrator(flaky_services.directory, flaky_services.writer, gateway)

        report = run(orchestrator.fan_out(event))

        assert report.push_prepared == 2
        assert sorted(sent[0] for sent in gateway.sent) == ["token-0", "token-2"]
        token, title, body, data = gateway.sent[0]
        assert title == "New Event: Jazz Night"
        assert body == "Celebrate the release at Main Hall"
        assert data["type"] == "new_event"
        assert data["eventId"] == event.id

    def test_push_failure_does_not_fail_fan_out(self, store, services):
        users = run(seed_users(store, 2))
        event = run(seed_event(store))
        run(store.update(USERS, users[0].id, {"pushToken": "bad-token"}))
        run(store.update(USERS, users[1].id, {"pushToken": "good-token"}))
        gateway = RecordingGateway(fail_tokens={"bad-token"})
        orchestrator = FanOutOrchestrator(services.directory, services.writer, gateway)

        report = run(orchestrator.fan_out(event))
        assert report.created == 2
        assert report.push_prepared == 1

    def test_message_builders(self, store):
        users = run(seed_users(store, 2))
        event = run(seed_event(store, name="Jazz Night"))
        assert build_push_messages(event, users) == []
        alert = build_local_event_alert(event)
        assert alert.title == "New Event: Jazz Night"
        assert alert.body.endswith("at Main Hall")
