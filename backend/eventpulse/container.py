"""Explicit wiring of the notification services around one store handle."""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from eventpulse.config import Settings, settings as default_settings
from eventpulse.services.directory import UserDirectory
from eventpulse.services.document_store import DocumentStore
from eventpulse.services.event_service import EventService
from eventpulse.services.fanout import FanOutOrchestrator
from eventpulse.services.inbox import NotificationInbox
from eventpulse.services.notification_jobs import NotificationJobs
from eventpulse.services.notification_writer import NotificationWriter
from eventpulse.services.outbox import Outbox, OutboxWorker
from eventpulse.services.post_service import PostService
from eventpulse.services.push import LocalNotifier, LoggingLocalNotifier, LoggingPushGateway, PushGateway
from eventpulse.services.references import ReferenceDiagnostician
from eventpulse.services.resend import ResendCoordinator
from eventpulse.services.user_service import UserService
from eventpulse.services.verification import DeliveryVerifier


@dataclass
class Services:
    store: DocumentStore
    directory: UserDirectory
    writer: NotificationWriter
    orchestrator: FanOutOrchestrator
    verifier: DeliveryVerifier
    resend: ResendCoordinator
    diagnostician: ReferenceDiagnostician
    inbox: NotificationInbox
    outbox: Outbox
    jobs: NotificationJobs
    worker: OutboxWorker
    users: UserService
    events: EventService
    posts: PostService


def build_services(
    store: DocumentStore,
    config: Settings = default_settings,
    push_gateway: Optional[PushGateway] = None,
    local_notifier: Optional[LocalNotifier] = None,
) -> Services:
    directory = UserDirectory(store, page_size=config.USER_PAGE_SIZE)
    writer = NotificationWriter(
        store,
        batch_size=config.NOTIFICATION_BATCH_SIZE,
        batch_delay=config.NOTIFICATION_BATCH_DELAY_MS / 1000,
    )
    orchestrator = FanOutOrchestrator(directory, writer, push_gateway or LoggingPushGateway())
    verifier = DeliveryVerifier(store, directory)
    resend = ResendCoordinator(store, verifier, writer)
    outbox = Outbox(store, max_attempts=config.OUTBOX_MAX_ATTEMPTS)
    jobs = NotificationJobs(
        store, outbox, orchestrator, resend, settle_seconds=config.VERIFICATION_SETTLE_SECONDS,
    )
    worker = OutboxWorker(
        outbox,
        jobs.handlers(),
        poll_interval=config.OUTBOX_POLL_INTERVAL_SECONDS,
        stale_after=timedelta(seconds=config.OUTBOX_STALE_AFTER_SECONDS),
    )
    users = UserService(store, directory)
    return Services(
        store=store,
        directory=directory,
        writer=writer,
        orchestrator=orchestrator,
        verifier=verifier,
        resend=resend,
        diagnostician=ReferenceDiagnostician(
            store, directory,
            record_cap=config.DIAGNOSIS_RECORD_CAP,
            user_cap=config.DIAGNOSIS_USER_CAP,
        ),
        inbox=NotificationInbox(store),
        outbox=outbox,
        jobs=jobs,
        worker=worker,
        users=users,
        events=EventService(store, users, outbox, local_notifier or LoggingLocalNotifier()),
        posts=PostService(store, directory),
    )


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the services wired at startup."""
    return request.app.state.services
