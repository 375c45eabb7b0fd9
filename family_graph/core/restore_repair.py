"""
Link repair for a member coming back from the recycle bin.

A tombstone keeps the pointers it had when it was deleted. Each one is
re-validated against the current state of the family: links to counterparts
that are still active and still satisfy the relationship rules are
re-established, everything else is cleared so a restore never brings back a
dangling, one-sided or invalid link.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from family_graph.core.member_store import ensure_account_free, find_member
from family_graph.core.errors import AlreadyLinked, KinshipError
from family_graph.core.relationships import check_parent_link, spouse_genders_fit
from family_graph.models.family_member import FamilyMember

logger = logging.getLogger("family_graph.core.restore_repair")


@dataclass
class RepairReport:
    member_id: str
    restored: list[str] = field(default_factory=list)
    cleared: list[str] = field(default_factory=list)


def _active(db: Session, member: FamilyMember, other_id: str):
    return find_member(db, other_id, family_id=member.family_id)


def _parent_link_holds(db: Session, child: FamilyMember, parent: FamilyMember, role: str) -> bool:
    # gender or generation may have changed while one side was in the recycle bin
    try:
        check_parent_link(db, child, parent, role)
    except KinshipError as exc:
        logger.info(
            "Not restoring %s link %s -> %s: %s",
            role,
            child.id,
            parent.id,
            exc.message,
        )
        return False
    return True


def repair_links(db: Session, member: FamilyMember) -> RepairReport:
    """
    Caller holds the locks of the member, its parents, its spouse and its
    recorded children, and commits.
    """
    report = RepairReport(member_id=member.id)

    # Parents: keep the pointer only if the parent is still around and still fits
    for role, attr in (("father", "father_id"), ("mother", "mother_id")):
        pid = getattr(member, attr)
        if not pid:
            continue
        parent = _active(db, member, pid)
        if parent is not None and _parent_link_holds(db, member, parent, role):
            report.restored.append(role)
        else:
            setattr(member, attr, None)
            report.cleared.append(role)

    # Spouse: both sides or nothing
    if member.spouse_id:
        spouse = _active(db, member, member.spouse_id)
        if (
            spouse is not None
            and spouse.spouse_id in (None, member.id)
            and spouse_genders_fit(member.gender, spouse.gender)
        ):
            spouse.spouse_id = member.id
            report.restored.append("spouse")
        else:
            member.spouse_id = None
            report.cleared.append("spouse")

    # Children that pointed here at deletion time, if their slot is still empty
    tomb = member.tombstone or {}
    for role, attr, key in (
        ("father", "father_id", "children_as_father"),
        ("mother", "mother_id", "children_as_mother"),
    ):
        for child_id in tomb.get(key) or []:
            child = _active(db, member, child_id)
            if (
                child is not None
                and getattr(child, attr) is None
                and _parent_link_holds(db, child, member, role)
            ):
                setattr(child, attr, member.id)
                report.restored.append(f"child:{child_id}")
            else:
                report.cleared.append(f"child:{child_id}")

    # "Is me" binding may have been taken by someone else meanwhile
    if member.linked_user_id:
        try:
            ensure_account_free(db, member.family_id, member.linked_user_id, except_member_id=member.id)
        except AlreadyLinked:
            logger.warning(
                "Dropping account link of restored member %s: account already linked elsewhere",
                member.id,
            )
            member.linked_user_id = None
            report.cleared.append("linked_user")

    return report
