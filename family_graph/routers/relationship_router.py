from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_graph.database import get_db
from family_graph.auth import get_current_user
from family_graph.models.user import User
from family_graph.schemas.member_schema import MemberOut
from family_graph.schemas.relationship_schema import (
    SpouseAttach,
    SpousePairOut,
    SpouseDetachOut,
    ParentAttach,
)
from family_graph.core.family_access import require_family_admin
from family_graph.core import relationships

router = APIRouter(prefix="/families/{family_id}/relationships", tags=["Relationships"])


# --------------------------------------------------
# ATTACH SPOUSE
# --------------------------------------------------
@router.post("/spouse", response_model=SpousePairOut)
def attach_spouse(
    family_id: str,
    payload: SpouseAttach,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    member, spouse = relationships.attach_spouse(db, family_id, payload.member_id, payload.spouse_id)
    return {"member": member, "spouse": spouse}


# --------------------------------------------------
# DETACH SPOUSE
# --------------------------------------------------
@router.delete("/spouse/{member_id}", response_model=SpouseDetachOut)
def detach_spouse(
    family_id: str,
    member_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    member, former_id = relationships.detach_spouse(db, family_id, member_id)
    return {"member": member, "former_spouse_id": former_id}


# --------------------------------------------------
# ATTACH PARENT
# --------------------------------------------------
@router.post("/parent", response_model=MemberOut)
def attach_parent(
    family_id: str,
    payload: ParentAttach,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    return relationships.attach_parent(
        db,
        family_id,
        payload.child_id,
        payload.parent_id,
        payload.role,
    )


# --------------------------------------------------
# DETACH PARENT
# --------------------------------------------------
@router.delete("/parent/{child_id}/{role}", response_model=MemberOut)
def detach_parent(
    family_id: str,
    child_id: str,
    role: Literal["father", "mother"],
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    return relationships.detach_parent(db, family_id, child_id, role)
