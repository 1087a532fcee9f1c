"""User ORM model: registered accounts of the mobile app."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Enum as SAEnum
from eventpulse.database import Base, utcnow


class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    account_id = Column(String(64), nullable=False, unique=True, index=True)  # external auth identity
    username = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    avatar = Column(String(500), nullable=True)
    role = Column(SAEnum(UserRole, native_enum=False), nullable=False, default=UserRole.user)
    push_token = Column(String(255), nullable=True)
    last_token_update = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
