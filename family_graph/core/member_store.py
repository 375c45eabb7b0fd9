"""
Member store: persistence, soft delete, restore and purge of family members.

Relationship fields in a create/update payload are never written raw; they are
handed to the relationship synchronizer inside the same unit of work.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from family_graph.core.errors import (
    AlreadyLinked,
    GenderMismatch,
    GenerationConflict,
    InvalidMember,
    NotFound,
)
from family_graph.core.locks import member_locks
from family_graph.models.family_member import FamilyMember, GENDERS

logger = logging.getLogger("family_graph.core.member_store")


RELATIONSHIP_FIELDS = ("father_id", "mother_id", "spouse_id")

SCALAR_FIELDS = (
    "name",
    "gender",
    "generation",
    "child_order",
    "email",
    "birth_date",
    "death_date",
    "marriage_date",
    "bio",
)


def _now() -> datetime:
    return datetime.utcnow()


# ============================================================
# LOOKUPS
# ============================================================

def find_member(
    db: Session,
    member_id: str,
    family_id: Optional[str] = None,
    include_deleted: bool = False,
) -> Optional[FamilyMember]:
    q = db.query(FamilyMember).filter(FamilyMember.id == member_id)
    if family_id is not None:
        q = q.filter(FamilyMember.family_id == family_id)
    if not include_deleted:
        q = q.filter(FamilyMember.deleted_at.is_(None))
    return q.first()


def load_active(
    db: Session,
    family_id: str,
    member_id: str,
    label: str = "Member",
    lock: bool = False,
) -> FamilyMember:
    """
    Load a non-deleted member of this family or raise NotFound.
    With lock=True the row is re-read (and locked FOR UPDATE where supported).
    """
    q = db.query(FamilyMember).filter(
        FamilyMember.id == member_id,
        FamilyMember.family_id == family_id,
        FamilyMember.deleted_at.is_(None),
    )
    if lock:
        q = q.populate_existing().with_for_update()

    member = q.first()
    if not member:
        raise NotFound(f"{label} not found", member_id=member_id)
    return member


def load_deleted(db: Session, family_id: str, member_id: str, lock: bool = False) -> FamilyMember:
    q = db.query(FamilyMember).filter(
        FamilyMember.id == member_id,
        FamilyMember.family_id == family_id,
        FamilyMember.deleted_at.isnot(None),
    )
    if lock:
        q = q.populate_existing().with_for_update()

    member = q.first()
    if not member:
        raise NotFound("Deleted member not found", member_id=member_id)
    return member


def get_member(db: Session, family_id: str, member_id: str) -> FamilyMember:
    return load_active(db, family_id, member_id)


def active_children(db: Session, member: FamilyMember) -> list[FamilyMember]:
    return (
        db.query(FamilyMember)
        .filter(
            FamilyMember.family_id == member.family_id,
            FamilyMember.deleted_at.is_(None),
            (FamilyMember.father_id == member.id) | (FamilyMember.mother_id == member.id),
        )
        .all()
    )


def _peek_child_ids(db: Session, family_id: str, member_id: str) -> list[str]:
    rows = (
        db.query(FamilyMember.id)
        .filter(
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.is_(None),
            (FamilyMember.father_id == member_id) | (FamilyMember.mother_id == member_id),
        )
        .all()
    )
    return sorted(row[0] for row in rows)


def sibling_sort_key(m: FamilyMember):
    return (
        m.child_order is None,
        m.child_order or 0,
        m.birth_date is None,
        m.birth_date or datetime.min.date(),
        m.id,
    )


# ============================================================
# VALIDATION
# ============================================================

def _check_scalars(fields: dict[str, Any], creating: bool) -> None:
    unknown = set(fields) - set(SCALAR_FIELDS)
    if unknown:
        raise InvalidMember(f"Unknown member fields: {', '.join(sorted(unknown))}")

    if creating or "name" in fields:
        name = (fields.get("name") or "").strip()
        if not name:
            raise InvalidMember("Name required")
        fields["name"] = name

    if creating or "gender" in fields:
        if fields.get("gender") not in GENDERS:
            raise InvalidMember(f"Gender must be one of {', '.join(GENDERS)}")

    if creating or "generation" in fields:
        generation = fields.get("generation")
        if not isinstance(generation, int) or generation < 1:
            raise InvalidMember("Generation must be a positive integer")


def _check_gender_change(
    db: Session,
    member: FamilyMember,
    new_gender: str,
    check_spouse: bool = True,
) -> None:
    """
    A member who is already someone's father cannot become female (and vice
    versa), and cannot end up with the same gender as their spouse.
    """
    from family_graph.core.relationships import spouse_genders_fit

    if new_gender == member.gender or new_gender == "other":
        return

    if check_spouse and member.spouse_id:
        spouse = find_member(db, member.spouse_id, family_id=member.family_id)
        if spouse is not None and not spouse_genders_fit(new_gender, spouse.gender):
            raise GenderMismatch(
                f"{member.name} cannot have the same gender as their spouse {spouse.name}",
                member_id=member.id,
                spouse_id=spouse.id,
            )

    for child in active_children(db, member):
        if new_gender == "female" and child.father_id == member.id:
            raise GenderMismatch(
                f"{member.name} is recorded as the father of {child.name}",
                member_id=member.id,
                child_id=child.id,
            )
        if new_gender == "male" and child.mother_id == member.id:
            raise GenderMismatch(
                f"{member.name} is recorded as the mother of {child.name}",
                member_id=member.id,
                child_id=child.id,
            )


def _check_generation_change(db: Session, member: FamilyMember, generation: int) -> None:
    for pid in (member.father_id, member.mother_id):
        parent = find_member(db, pid, family_id=member.family_id) if pid else None
        if parent is not None and parent.generation >= generation:
            raise GenerationConflict(
                "Generation must be greater than the parents' generation",
                parent_id=parent.id,
                parent_generation=parent.generation,
            )

    for child in active_children(db, member):
        if child.generation <= generation:
            raise GenerationConflict(
                "Generation must be less than the children's generation",
                child_id=child.id,
                child_generation=child.generation,
            )


def ensure_account_free(
    db: Session,
    family_id: str,
    account_id: str,
    except_member_id: Optional[str] = None,
) -> None:
    q = db.query(FamilyMember).filter(
        FamilyMember.family_id == family_id,
        FamilyMember.linked_user_id == account_id,
        FamilyMember.deleted_at.is_(None),
    )
    if except_member_id:
        q = q.filter(FamilyMember.id != except_member_id)

    holder = q.first()
    if holder:
        raise AlreadyLinked(
            "This account is already linked to another member in this family",
            member_id=holder.id,
        )


def _peek_member(db: Session, family_id: str, member_id: Optional[str]):
    """
    Current (gender, generation, spouse_id) of an active member straight from
    the database, bypassing objects already loaded in the session.
    """
    if not member_id:
        return None
    return (
        db.query(
            FamilyMember.id,
            FamilyMember.gender,
            FamilyMember.generation,
            FamilyMember.spouse_id,
        )
        .filter(
            FamilyMember.id == member_id,
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.is_(None),
        )
        .first()
    )


def resolve_parents(
    db: Session,
    family_id: str,
    father_id: Optional[str],
    mother_id: Optional[str],
) -> tuple[Optional[str], Optional[str]]:
    """
    Work out the (father_id, mother_id) a new member will get.

    Both given: they must share a generation, and a pair handed over in the
    wrong slots (female father or male mother) is swapped.

    One given ("add child of X"): when X is married the spouse becomes the
    other parent if their gender fits the empty role. A parent of gender
    'other' married to a male moves to the mother slot, and vice versa.
    """
    if father_id and mother_id:
        first = _peek_member(db, family_id, father_id)
        second = _peek_member(db, family_id, mother_id)
        if first is None:
            raise NotFound("Father not found", member_id=father_id)
        if second is None:
            raise NotFound("Mother not found", member_id=mother_id)

        if first.generation != second.generation:
            raise GenerationConflict(
                "Father and mother must be in the same generation",
                father_generation=first.generation,
                mother_generation=second.generation,
            )

        if first.gender == "female" or second.gender == "male":
            return mother_id, father_id
        return father_id, mother_id

    if not father_id and not mother_id:
        return None, None

    given_id = father_id or mother_id
    given = _peek_member(db, family_id, given_id)
    if given is None:
        raise NotFound("Parent not found", member_id=given_id)

    partner = _peek_member(db, family_id, given.spouse_id)
    if partner is None:
        return father_id, mother_id

    if father_id:
        if partner.gender in ("female", "other"):
            return father_id, partner.id
        if given.gender == "other" and partner.gender == "male":
            return partner.id, given.id
    else:
        if partner.gender in ("male", "other"):
            return partner.id, mother_id
        if given.gender == "other" and partner.gender == "female":
            return given.id, partner.id

    return father_id, mother_id


# ============================================================
# CREATE
# ============================================================

def create_member(
    db: Session,
    family_id: str,
    fields: dict[str, Any],
    linked_user_id: Optional[str] = None,
) -> FamilyMember:
    from family_graph.core.relationships import link_parent, link_spouses

    data = dict(fields)
    given_father = data.pop("father_id", None)
    given_mother = data.pop("mother_id", None)
    spouse_id = data.pop("spouse_id", None)
    linked_user_id = data.pop("linked_user_id", None) or linked_user_id

    _check_scalars(data, creating=True)

    # Parents are resolved before locking so every id is taken in one sorted
    # pass; if the resolution changed by the time we hold the locks, go again.
    while True:
        father_id, mother_id = resolve_parents(db, family_id, given_father, given_mother)

        with member_locks.hold(father_id, mother_id, spouse_id):
            try:
                if resolve_parents(db, family_id, given_father, given_mother) != (father_id, mother_id):
                    db.rollback()
                    continue

                if linked_user_id:
                    ensure_account_free(db, family_id, linked_user_id)

                member = FamilyMember(
                    family_id=family_id,
                    linked_user_id=linked_user_id,
                    **data,
                )
                db.add(member)
                db.flush()

                if father_id:
                    father = load_active(db, family_id, father_id, label="Father", lock=True)
                    link_parent(db, member, father, "father")
                if mother_id:
                    mother = load_active(db, family_id, mother_id, label="Mother", lock=True)
                    link_parent(db, member, mother, "mother")

                if spouse_id:
                    spouse = load_active(db, family_id, spouse_id, label="Spouse", lock=True)
                    link_spouses(member, spouse)

                db.commit()
            except Exception:
                db.rollback()
                raise
        break

    db.refresh(member)
    logger.info("Created member %s (%s) in family %s", member.id, member.name, family_id)
    return member


# ============================================================
# UPDATE
# ============================================================

def update_member(db: Session, family_id: str, member_id: str, patch: dict[str, Any]) -> FamilyMember:
    from family_graph.core.relationships import (
        link_parent,
        link_spouses,
        partner_scope,
        unlink_parent,
        unlink_spouse,
    )

    data = dict(patch)
    relationship_patch = {k: data.pop(k) for k in RELATIONSHIP_FIELDS if k in data}
    has_link_change = "linked_user_id" in data
    new_link = data.pop("linked_user_id", None)

    _check_scalars(data, creating=False)

    extra_ids = [v for v in relationship_patch.values() if v]

    with partner_scope(db, member_id, *extra_ids):
        try:
            member = load_active(db, family_id, member_id, lock=True)

            if "gender" in data:
                # a spouse change in the same patch is checked by link_spouses
                _check_gender_change(
                    db,
                    member,
                    data["gender"],
                    check_spouse="spouse_id" not in relationship_patch,
                )
            if "generation" in data and data["generation"] != member.generation:
                _check_generation_change(db, member, data["generation"])

            for key, value in data.items():
                setattr(member, key, value)

            if has_link_change:
                _apply_link(db, member, new_link)

            for role in ("father", "mother"):
                key = f"{role}_id"
                if key not in relationship_patch:
                    continue
                target_id = relationship_patch[key]
                if target_id is None:
                    unlink_parent(member, role)
                else:
                    parent = load_active(db, family_id, target_id, label="Parent", lock=True)
                    link_parent(db, member, parent, role)

            if "spouse_id" in relationship_patch:
                target_id = relationship_patch["spouse_id"]
                if target_id is None:
                    unlink_spouse(db, member)
                elif target_id != member.spouse_id:
                    spouse = load_active(db, family_id, target_id, label="Spouse", lock=True)
                    link_spouses(member, spouse)

            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(member)
    logger.info("Updated member %s in family %s", member.id, family_id)
    return member


def _apply_link(db: Session, member: FamilyMember, account_id: Optional[str]) -> None:
    """
    linked_user_id is never silently replaced: clearing is explicit (None),
    and setting requires the member to be unlinked or already bound to it.
    """
    if account_id is None:
        member.linked_user_id = None
        return

    if member.linked_user_id and member.linked_user_id != account_id:
        raise AlreadyLinked(
            f"{member.name} is already linked to another account",
            member_id=member.id,
        )

    ensure_account_free(db, member.family_id, account_id, except_member_id=member.id)
    member.linked_user_id = account_id


# ============================================================
# SOFT DELETE / RESTORE / PURGE
# ============================================================

def soft_delete_member(
    db: Session,
    family_id: str,
    member_id: str,
    deleted_by: Optional[str] = None,
) -> FamilyMember:
    """
    Tombstone a member. Its own father/mother/spouse pointers are kept as they
    were; active counterparts stop pointing at it (partner's spouse_id,
    children's parent field) and the children ids are remembered for restore.
    """
    from family_graph.core.relationships import partner_scope

    # Children are written too, so their ids join the lock scope. The set is
    # read before locking and re-read under the lock; retry if it moved.
    while True:
        child_ids = _peek_child_ids(db, family_id, member_id)

        with partner_scope(db, member_id, *child_ids) as partner_id:
            try:
                if _peek_child_ids(db, family_id, member_id) != child_ids:
                    db.rollback()
                    continue

                member = load_active(db, family_id, member_id, lock=True)

                children = []
                if child_ids:
                    children = (
                        db.query(FamilyMember)
                        .filter(FamilyMember.id.in_(child_ids))
                        .populate_existing()
                        .with_for_update()
                        .all()
                    )

                children_as_father = []
                children_as_mother = []
                for child in children:
                    if child.father_id == member.id:
                        children_as_father.append(child.id)
                        child.father_id = None
                    if child.mother_id == member.id:
                        children_as_mother.append(child.id)
                        child.mother_id = None

                if partner_id:
                    partner = find_member(db, partner_id, family_id=family_id)
                    if partner is not None and partner.spouse_id == member.id:
                        partner.spouse_id = None

                member.tombstone = {
                    "children_as_father": sorted(children_as_father),
                    "children_as_mother": sorted(children_as_mother),
                }
                member.deleted_at = _now()
                member.deleted_by = deleted_by

                db.commit()
            except Exception:
                db.rollback()
                raise
        break

    db.refresh(member)
    logger.info("Soft-deleted member %s in family %s", member.id, family_id)
    return member


def restore_member(db: Session, family_id: str, member_id: str):
    """Clear the tombstone and repair links. Returns (member, RepairReport)."""
    from family_graph.core.restore_repair import repair_links

    tomb = load_deleted(db, family_id, member_id)
    recorded = tomb.tombstone or {}
    child_ids = recorded.get("children_as_father", []) + recorded.get("children_as_mother", [])

    linked_ids = (tomb.id, tomb.father_id, tomb.mother_id, tomb.spouse_id)

    with member_locks.hold(*linked_ids, *child_ids):
        try:
            member = load_deleted(db, family_id, member_id, lock=True)
            member.deleted_at = None
            member.deleted_by = None
            report = repair_links(db, member)
            member.tombstone = None
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(member)
    logger.info(
        "Restored member %s in family %s (restored=%s cleared=%s)",
        member.id,
        family_id,
        report.restored,
        report.cleared,
    )
    return member, report


def purge_member(db: Session, family_id: str, member_id: str) -> None:
    """
    Irreversibly delete a tombstoned member. Other records that still mention
    the id are left alone; readers treat those as missing relations.
    """
    with member_locks.hold(member_id):
        try:
            member = load_deleted(db, family_id, member_id, lock=True)
            db.delete(member)
            db.commit()
        except Exception:
            db.rollback()
            raise

    member_locks.forget(member_id)
    logger.warning("Permanently deleted member %s in family %s", member_id, family_id)


# ============================================================
# LISTING
# ============================================================

def list_members(
    db: Session,
    family_id: str,
    generation: Optional[int] = None,
    gender: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
) -> list[FamilyMember]:
    q = db.query(FamilyMember).filter(
        FamilyMember.family_id == family_id,
        FamilyMember.deleted_at.is_(None),
    )

    if status == "alive":
        q = q.filter(FamilyMember.death_date.is_(None))
    elif status == "deceased":
        q = q.filter(FamilyMember.death_date.isnot(None))

    if generation is not None:
        q = q.filter(FamilyMember.generation == generation)

    if gender:
        q = q.filter(FamilyMember.gender == gender)

    if search:
        q = q.filter(FamilyMember.name.ilike(f"%{search.strip()}%"))

    return q.order_by(
        FamilyMember.generation.asc(),
        FamilyMember.birth_date.asc(),
        FamilyMember.name.asc(),
    ).all()


def list_deleted_members(db: Session, family_id: str) -> list[FamilyMember]:
    return (
        db.query(FamilyMember)
        .filter(
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.isnot(None),
        )
        .order_by(FamilyMember.deleted_at.desc())
        .all()
    )


def describe_member(db: Session, family_id: str, member_id: str) -> dict[str, Any]:
    """
    Member plus resolved relatives for the profile page. Pointers that do not
    resolve to an active member come back as None.
    """
    member = load_active(db, family_id, member_id)

    def resolve(pid: Optional[str]) -> Optional[FamilyMember]:
        return find_member(db, pid, family_id=family_id) if pid else None

    siblings: list[FamilyMember] = []
    if member.father_id or member.mother_id:
        conditions = []
        if member.father_id:
            conditions.append(FamilyMember.father_id == member.father_id)
        if member.mother_id:
            conditions.append(FamilyMember.mother_id == member.mother_id)

        q = db.query(FamilyMember).filter(
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.is_(None),
            FamilyMember.id != member.id,
        )
        if len(conditions) == 1:
            q = q.filter(conditions[0])
        else:
            q = q.filter(conditions[0] | conditions[1])
        siblings = sorted(q.all(), key=sibling_sort_key)

    my_order = member.child_order
    if my_order is None and (member.father_id or member.mother_id):
        ranked = sorted(
            siblings + [member],
            key=lambda m: (m.birth_date is None, m.birth_date or datetime.min.date(), m.id),
        )
        my_order = [m.id for m in ranked].index(member.id) + 1

    return {
        "member": member,
        "father": resolve(member.father_id),
        "mother": resolve(member.mother_id),
        "spouse": resolve(member.spouse_id),
        "children": sorted(active_children(db, member), key=sibling_sort_key),
        "siblings": siblings,
        "my_order": my_order,
        "total_siblings": len(siblings) + 1,
    }
