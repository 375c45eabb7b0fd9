"""
Relationship synchronizer.

Every write to father_id / mother_id / spouse_id goes through this module.
The public operations (attach_spouse, detach_spouse, attach_parent,
detach_parent) are one unit each: they hold the member locks of every id
they touch, update both records, and commit once. On any failure the session
is rolled back, so callers only ever see "fully applied" or "no effect".

The link_* / unlink_* helpers do the same validation without committing; the
member store uses them to apply relationship fields inside its own unit of
work (create with parents, update with a new spouse, ...).
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from family_graph.config import settings
from family_graph.core.errors import (
    AlreadyMarried,
    CircularAncestry,
    GenderMismatch,
    GenerationConflict,
    InvalidRelationship,
    SelfReference,
)
from family_graph.core.locks import member_locks
from family_graph.core.member_store import find_member, load_active
from family_graph.models.family_member import FamilyMember

logger = logging.getLogger("family_graph.core.relationships")


PARENT_ROLES = ("father", "mother")

ROLE_FIELD = {
    "father": "father_id",
    "mother": "mother_id",
}

ROLE_GENDER = {
    "father": "male",
    "mother": "female",
}


def _other_role(role: str) -> str:
    return "mother" if role == "father" else "father"


def _check_role(role: str) -> None:
    if role not in PARENT_ROLES:
        raise InvalidRelationship(f"Unknown parent role '{role}'", role=role)


# ============================================================
# LOCK SCOPE
# ============================================================

def _peek_spouse_id(db: Session, member_id: str) -> Optional[str]:
    return (
        db.query(FamilyMember.spouse_id)
        .filter(FamilyMember.id == member_id)
        .scalar()
    )


@contextmanager
def partner_scope(db: Session, member_id: str, *extra_ids: Optional[str]) -> Iterator[Optional[str]]:
    """
    Lock a member together with its current spouse (plus any extra ids).

    The spouse id has to be read before we know what to lock, so re-read it
    under the lock and retry if another writer changed it in between.
    Yields the spouse id that is now locked.
    """
    while True:
        partner_id = _peek_spouse_id(db, member_id)
        with member_locks.hold(member_id, partner_id, *extra_ids):
            if _peek_spouse_id(db, member_id) == partner_id:
                yield partner_id
                return


# ============================================================
# SPOUSE LINKS (no commit)
# ============================================================

def spouse_genders_fit(gender_a: str, gender_b: str) -> bool:
    """Spouses differ in gender unless either one is 'other'."""
    return "other" in (gender_a, gender_b) or gender_a != gender_b


def check_spouse_genders(a: FamilyMember, b: FamilyMember) -> None:
    if not spouse_genders_fit(a.gender, b.gender):
        raise GenderMismatch(
            f"{a.name} and {b.name} cannot be spouses: both are {a.gender}",
            member_id=a.id,
            spouse_id=b.id,
        )


def link_spouses(a: FamilyMember, b: FamilyMember) -> bool:
    """
    Point a and b at each other. Returns False when they already were.
    Refuses to replace an existing marriage on either side.
    """
    if a.id == b.id:
        raise SelfReference("A member cannot be their own spouse", member_id=a.id)

    if a.spouse_id and a.spouse_id != b.id:
        raise AlreadyMarried(
            f"{a.name} is already married. Detach the current spouse first.",
            member_id=a.id,
            spouse_id=a.spouse_id,
        )

    if b.spouse_id and b.spouse_id != a.id:
        raise AlreadyMarried(
            f"{b.name} is already married. Detach the current spouse first.",
            member_id=b.id,
            spouse_id=b.spouse_id,
        )

    check_spouse_genders(a, b)

    if a.spouse_id == b.id and b.spouse_id == a.id:
        return False

    a.spouse_id = b.id
    b.spouse_id = a.id
    return True


def unlink_spouse(db: Session, member: FamilyMember) -> Optional[str]:
    """
    Clear member.spouse_id and the partner's back-pointer if it still points here.
    A partner that was purged or already cleared is fine.
    Returns the former spouse id.
    """
    former_id = member.spouse_id
    if not former_id:
        return None

    partner = find_member(db, former_id, include_deleted=True)
    if partner is not None and partner.spouse_id == member.id:
        partner.spouse_id = None

    member.spouse_id = None
    return former_id


# ============================================================
# PARENT LINKS (no commit)
# ============================================================

def _ancestry_contains(db: Session, start: FamilyMember, target_id: str, max_depth: int) -> bool:
    """
    Walk up from start through father/mother pointers (active members only)
    and report whether target_id shows up within max_depth generations.
    """
    frontier = [start]
    seen = {start.id}

    for _ in range(max_depth):
        parent_ids = []
        for node in frontier:
            for pid in (node.father_id, node.mother_id):
                if not pid:
                    continue
                if pid == target_id:
                    return True
                if pid not in seen:
                    seen.add(pid)
                    parent_ids.append(pid)

        if not parent_ids:
            return False

        frontier = (
            db.query(FamilyMember)
            .filter(
                FamilyMember.id.in_(parent_ids),
                FamilyMember.deleted_at.is_(None),
            )
            .all()
        )

    return False


def check_parent_link(db: Session, child: FamilyMember, parent: FamilyMember, role: str) -> None:
    _check_role(role)

    if child.id == parent.id:
        raise SelfReference("A member cannot be their own parent", member_id=child.id)

    expected = ROLE_GENDER[role]
    if parent.gender != "other" and parent.gender != expected:
        raise GenderMismatch(
            f"{parent.name} cannot be a {role}: gender is {parent.gender}",
            parent_id=parent.id,
            role=role,
        )

    if getattr(child, ROLE_FIELD[_other_role(role)]) == parent.id:
        raise InvalidRelationship(
            f"{parent.name} is already the {_other_role(role)} of {child.name}",
            parent_id=parent.id,
            role=role,
        )

    if parent.generation >= child.generation:
        raise GenerationConflict(
            f"A {role}'s generation must be less than the child's generation",
            parent_generation=parent.generation,
            child_generation=child.generation,
        )

    if _ancestry_contains(db, parent, child.id, settings.ANCESTRY_CHECK_DEPTH):
        raise CircularAncestry(
            f"{child.name} is already an ancestor of {parent.name}",
            child_id=child.id,
            parent_id=parent.id,
        )


def link_parent(db: Session, child: FamilyMember, parent: FamilyMember, role: str) -> bool:
    """Returns False when the link was already in place."""
    check_parent_link(db, child, parent, role)

    field = ROLE_FIELD[role]
    if getattr(child, field) == parent.id:
        return False

    setattr(child, field, parent.id)
    return True


def unlink_parent(child: FamilyMember, role: str) -> Optional[str]:
    _check_role(role)
    field = ROLE_FIELD[role]
    former_id = getattr(child, field)
    setattr(child, field, None)
    return former_id


# ============================================================
# PUBLIC OPERATIONS (one transaction each)
# ============================================================

def attach_spouse(db: Session, family_id: str, a_id: str, b_id: str) -> tuple[FamilyMember, FamilyMember]:
    if a_id == b_id:
        raise SelfReference("A member cannot be their own spouse", member_id=a_id)

    with member_locks.hold(a_id, b_id):
        try:
            a = load_active(db, family_id, a_id, lock=True)
            b = load_active(db, family_id, b_id, label="Spouse", lock=True)
            changed = link_spouses(a, b)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(a)
    db.refresh(b)

    if changed:
        logger.info("Attached spouses %s <-> %s in family %s", a.id, b.id, family_id)
    return a, b


def detach_spouse(db: Session, family_id: str, member_id: str) -> tuple[FamilyMember, Optional[str]]:
    with partner_scope(db, member_id):
        try:
            member = load_active(db, family_id, member_id, lock=True)
            former_id = unlink_spouse(db, member)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(member)

    if former_id:
        logger.info("Detached spouses %s <-> %s in family %s", member.id, former_id, family_id)
    return member, former_id


def attach_parent(db: Session, family_id: str, child_id: str, parent_id: str, role: str) -> FamilyMember:
    _check_role(role)
    if child_id == parent_id:
        raise SelfReference("A member cannot be their own parent", member_id=child_id)

    with member_locks.hold(child_id, parent_id):
        try:
            child = load_active(db, family_id, child_id, lock=True)
            parent = load_active(db, family_id, parent_id, label="Parent", lock=True)
            changed = link_parent(db, child, parent, role)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(child)

    if changed:
        logger.info("Set %s of %s to %s in family %s", role, child.id, parent.id, family_id)
    return child


def detach_parent(db: Session, family_id: str, child_id: str, role: str) -> FamilyMember:
    _check_role(role)

    with member_locks.hold(child_id):
        try:
            child = load_active(db, family_id, child_id, lock=True)
            former_id = unlink_parent(child, role)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(child)

    if former_id:
        logger.info("Cleared %s of %s (was %s) in family %s", role, child.id, former_id, family_id)
    return child
