"""OutboxTask ORM model: durable queue of fan-out and verification jobs."""
import uuid
import enum
from sqlalchemy import Column, String, Text, Integer, DateTime, JSON, Index, Enum as SAEnum
from eventpulse.database import Base, utcnow


class TaskKind(str, enum.Enum):
    fanout = "fanout"
    verify = "verify"


class TaskStatus(str, enum.Enum):
    pending = "pending"
    running = "running"
    done = "done"
    failed = "failed"


class OutboxTask(Base):
    __tablename__ = "outbox"
    __table_args__ = (Index("ix_outbox_status_run_after", "status", "run_after"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(SAEnum(TaskKind, native_enum=False), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    status = Column(SAEnum(TaskStatus, native_enum=False), nullable=False, default=TaskStatus.pending)
    attempts = Column(Integer, nullable=False, default=0)
    run_after = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
