from typing import Optional, Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_graph.database import get_db
from family_graph.auth import get_current_user
from family_graph.models.user import User
from family_graph.schemas.member_schema import (
    MemberCreate,
    MemberUpdate,
    MemberOut,
    MemberDetailOut,
    DeletedMemberOut,
    RestoreOut,
)
from family_graph.core.family_access import (
    require_family_admin,
    require_family_user,
)
from family_graph.core import member_store

router = APIRouter(prefix="/families/{family_id}/members", tags=["Family Members"])


# ============================================================
# LIST (filters: generation, gender, name search, alive/deceased)
# ============================================================

@router.get("", response_model=list[MemberOut])
def list_members(
    family_id: str,
    generation: Optional[int] = None,
    gender: Optional[Literal["male", "female", "other"]] = None,
    search: Optional[str] = None,
    status: Optional[Literal["alive", "deceased"]] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)

    return member_store.list_members(
        db,
        family_id,
        generation=generation,
        gender=gender,
        search=search,
        status=status,
    )


# ============================================================
# RECYCLE BIN (ADMIN ONLY)
# Declared before /{member_id} so "deleted" is not read as an id
# ============================================================

@router.get("/deleted", response_model=list[DeletedMemberOut])
def list_deleted_members(
    family_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)
    return member_store.list_deleted_members(db, family_id)


# ============================================================
# CREATE (ADMIN ONLY)
# ============================================================

@router.post("", response_model=MemberOut)
def create_member(
    family_id: str,
    payload: MemberCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    fields = payload.model_dump(exclude={"is_me"})

    return member_store.create_member(
        db,
        family_id,
        fields,
        linked_user_id=current_user.id if payload.is_me else None,
    )


# ============================================================
# DETAIL
# ============================================================

@router.get("/{member_id}", response_model=MemberDetailOut)
def get_member(
    family_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)
    return member_store.describe_member(db, family_id, member_id)


# ============================================================
# UPDATE (ADMIN ONLY)
# ============================================================

@router.put("/{member_id}", response_model=MemberOut)
def update_member(
    family_id: str,
    member_id: str,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    patch = payload.model_dump(exclude_unset=True)
    return member_store.update_member(db, family_id, member_id, patch)


# ============================================================
# SOFT DELETE (ADMIN ONLY)
# ============================================================

@router.delete("/{member_id}")
def delete_member(
    family_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    member_store.soft_delete_member(db, family_id, member_id, deleted_by=current_user.id)
    return {"status": "deleted", "id": member_id}


# ============================================================
# RESTORE (ADMIN ONLY)
# ============================================================

@router.post("/{member_id}/restore", response_model=RestoreOut)
def restore_member(
    family_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    member, report = member_store.restore_member(db, family_id, member_id)
    return {
        "member": member,
        "restored": report.restored,
        "cleared": report.cleared,
    }


# ============================================================
# PERMANENT DELETE (ADMIN ONLY, tombstoned members only)
# ============================================================

@router.delete("/{member_id}/permanent")
def purge_member(
    family_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    member_store.purge_member(db, family_id, member_id)
    return {"status": "purged", "id": member_id}
