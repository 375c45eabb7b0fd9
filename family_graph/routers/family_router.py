import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from family_graph.database import get_db
from family_graph.auth import get_current_user
from family_graph.models.user import User
from family_graph.models.family import Family
from family_graph.models.family_user import FamilyUser
from family_graph.models.family_member import FamilyMember
from family_graph.schemas.family_schema import (
    FamilyCreate,
    FamilyOut,
    FamilyDetailOut,
    FamilyUserAdd,
    FamilyAdminTransfer,
    FamilyStatisticsOut,
)
from family_graph.core.family_access import (
    require_family_admin,
    require_family_user,
)
from family_graph.core import smart_link
from family_graph.core.statistics import family_statistics

logger = logging.getLogger("family_graph.routers.family")

router = APIRouter(prefix="/families", tags=["Families"])


# --------------------------------------------------
# CREATE FAMILY (creator becomes admin)
# --------------------------------------------------
@router.post("", response_model=FamilyOut)
def create_family(
    payload: FamilyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    name = payload.name.strip()
    if not name:
        raise HTTPException(400, "Family name cannot be empty")

    family = Family(name=name, admin_user_id=current_user.id)
    db.add(family)
    db.flush()

    db.add(FamilyUser(family_id=family.id, user_id=current_user.id))
    db.commit()
    db.refresh(family)

    return family


# --------------------------------------------------
# MY FAMILIES
# --------------------------------------------------
@router.get("/mine", response_model=list[FamilyOut])
def my_families(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(Family)
        .outerjoin(FamilyUser, FamilyUser.family_id == Family.id)
        .filter(
            (Family.admin_user_id == current_user.id)
            | (FamilyUser.user_id == current_user.id)
        )
        .distinct()
        .order_by(Family.created_at.asc())
        .all()
    )


# --------------------------------------------------
# FAMILY DETAIL
# --------------------------------------------------
@router.get("/{family_id}", response_model=FamilyDetailOut)
def get_family(
    family_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    family = require_family_user(db, family_id, current_user.id)

    my_member = (
        db.query(FamilyMember)
        .filter(
            FamilyMember.family_id == family.id,
            FamilyMember.linked_user_id == current_user.id,
            FamilyMember.deleted_at.is_(None),
        )
        .first()
    )

    return {
        "id": family.id,
        "name": family.name,
        "admin_user_id": family.admin_user_id,
        "created_at": family.created_at,
        "user_ids": sorted(u.user_id for u in family.users),
        "is_admin": family.admin_user_id == current_user.id,
        "my_member_id": my_member.id if my_member else None,
    }


# --------------------------------------------------
# ADD USER (ADMIN ONLY)
# --------------------------------------------------
@router.post("/{family_id}/users")
def add_family_user(
    family_id: str,
    payload: FamilyUserAdd,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    family = require_family_admin(db, family_id, current_user.id)

    user = db.query(User).filter(User.id == payload.user_id).first()
    if not user:
        raise HTTPException(404, "User not found")

    existing = db.query(FamilyUser).filter(
        FamilyUser.family_id == family.id,
        FamilyUser.user_id == user.id,
    ).first()

    if not existing:
        db.add(FamilyUser(family_id=family.id, user_id=user.id))
        db.commit()

    return {"status": "added", "family_id": family.id, "user_id": user.id}


# --------------------------------------------------
# TRANSFER ADMIN (ADMIN ONLY)
# --------------------------------------------------
@router.post("/{family_id}/transfer-admin", response_model=FamilyOut)
def transfer_admin(
    family_id: str,
    payload: FamilyAdminTransfer,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    family = require_family_admin(db, family_id, current_user.id)

    if payload.new_admin_user_id == current_user.id:
        raise HTTPException(400, "Cannot transfer admin to yourself")

    member_of_family = db.query(FamilyUser).filter(
        FamilyUser.family_id == family.id,
        FamilyUser.user_id == payload.new_admin_user_id,
    ).first()
    if not member_of_family:
        raise HTTPException(400, "The new admin must already be a user of this family")

    family.admin_user_id = payload.new_admin_user_id
    db.commit()
    db.refresh(family)

    logger.info("Family %s admin: %s -> %s", family.id, current_user.id, family.admin_user_id)
    return family


# --------------------------------------------------
# LEAVE FAMILY
# --------------------------------------------------
@router.post("/{family_id}/leave")
def leave_family(
    family_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    family = require_family_user(db, family_id, current_user.id)

    if family.admin_user_id == current_user.id:
        raise HTTPException(400, "Transfer the admin role before leaving")

    # the "is me" member stays in the tree, only the binding goes
    member = smart_link.unlink_account(db, family.id, current_user.id)

    db.query(FamilyUser).filter(
        FamilyUser.family_id == family.id,
        FamilyUser.user_id == current_user.id,
    ).delete()
    db.commit()

    logger.info("User %s left family %s", current_user.id, family.id)
    return {
        "status": "left",
        "family_id": family.id,
        "unlinked_member_id": member.id if member else None,
    }


# --------------------------------------------------
# STATISTICS
# --------------------------------------------------
@router.get("/{family_id}/statistics", response_model=FamilyStatisticsOut)
def get_statistics(
    family_id: str,
    from_year: Optional[int] = Query(default=None, ge=1),
    to_year: Optional[int] = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)

    if from_year is not None and to_year is not None and from_year > to_year:
        raise HTTPException(400, "from_year must not be after to_year")

    return family_statistics(db, family_id, from_year=from_year, to_year=to_year)
