"""Post ORM model: video posts whose creator is a denormalized user reference."""
import uuid
from sqlalchemy import Column, String, Text, DateTime
from eventpulse.database import Base, utcnow


class Post(Base):
    __tablename__ = "posts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    thumbnail = Column(String(500), nullable=True)
    video = Column(String(500), nullable=True)
    prompt = Column(Text, nullable=True)
    # Either a user id or a user's account id; never enforced as a foreign key
    creator = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
