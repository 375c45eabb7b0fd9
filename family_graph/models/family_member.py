import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, JSON, Text

from family_graph.database import Base


GENDERS = ("male", "female", "other")


class FamilyMember(Base):
    """
    One person-record in one family's tree.

    father_id / mother_id / spouse_id are plain columns, not foreign keys:
    a purged member leaves dangling references behind and readers treat an
    unresolved id as "relation absent".

    Children are never stored; they are every member whose father_id or
    mother_id points here.
    """

    __tablename__ = "family_members"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))

    family_id = Column(
        String,
        ForeignKey("families.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name = Column(String, nullable=False)
    gender = Column(String, nullable=False)      # male / female / other
    generation = Column(Integer, nullable=False)
    child_order = Column(Integer, nullable=True)

    email = Column(String, nullable=True, index=True)
    birth_date = Column(Date, nullable=True)
    death_date = Column(Date, nullable=True)
    marriage_date = Column(Date, nullable=True)
    bio = Column(Text, nullable=True)

    # ------------------------------------
    # Relationship pointers
    # ------------------------------------
    father_id = Column(String, nullable=True, index=True)
    mother_id = Column(String, nullable=True, index=True)
    spouse_id = Column(String, nullable=True, index=True)

    # "Is me" binding to an external account
    linked_user_id = Column(String, nullable=True, index=True)

    # ------------------------------------
    # Soft delete (tombstone)
    # ------------------------------------
    deleted_at = Column(DateTime, nullable=True, index=True)
    deleted_by = Column(String, nullable=True)

    # {"children_as_father": [...], "children_as_mother": [...]}
    tombstone = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def is_alive(self) -> bool:
        return self.death_date is None
