from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from family_graph.database import Base


class FamilyUser(Base):
    """
    An account that can see a family's records.
    Being a family user does NOT mean being linked to a member ("is me");
    that binding lives on FamilyMember.linked_user_id.
    """

    __tablename__ = "family_users"

    family_id = Column(
        String,
        ForeignKey("families.id", ondelete="CASCADE"),
        primary_key=True,
    )

    user_id = Column(
        String,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )

    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    family = relationship("Family", back_populates="users")
