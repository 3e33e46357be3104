import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String

from storefront.database import Base


def utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    """A storefront account. The same user can sell and buy."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(50), unique=True, nullable=False)
    name = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_users_username", "username"),
    )
