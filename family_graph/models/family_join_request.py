import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from family_graph.database import Base


JOIN_STATUSES = ("pending", "approved", "rejected")

# auto: the member whose email matches the account
# manual: a member the admin picked (name must match closely)
# new: no member is linked; the user joins without an "is me" record
LINK_OPTIONS = ("auto", "manual", "new")


class FamilyJoinRequest(Base):
    __tablename__ = "family_join_requests"
    __table_args__ = (
        UniqueConstraint("family_id", "user_id", name="uq_family_join_request_user"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    family_id = Column(
        String,
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    message = Column(Text, nullable=True)
    status = Column(String, default="pending", nullable=False)  # pending / approved / rejected

    handled_by = Column(String, ForeignKey("users.id"), nullable=True)
    handled_at = Column(DateTime, nullable=True)

    # Filled on approval
    link_option = Column(String, nullable=True)
    linked_member_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", foreign_keys=[user_id])
