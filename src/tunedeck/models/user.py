import enum
import uuid

from sqlalchemy import Column, String

from ..database import Base


class Role(str, enum.Enum):
    """Roles a user account can hold."""

    USER = "user"
    ADMIN = "admin"


class User(Base):
    """SQLAlchemy model for application users."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    role = Column(String, default=Role.USER.value, nullable=False)
