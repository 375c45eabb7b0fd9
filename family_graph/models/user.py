import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, Boolean

from family_graph.database import Base


class User(Base):
    """
    An authenticated account. Issued by the auth service; we only keep the
    identity fields the family graph needs (display name + email for smart-link).
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)

    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
