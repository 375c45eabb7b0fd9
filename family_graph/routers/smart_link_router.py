from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from family_graph.database import get_db
from family_graph.auth import get_current_user
from family_graph.models.user import User
from family_graph.schemas.member_schema import MemberOut
from family_graph.schemas.smart_link_schema import SmartLinkOut, SmartLinkConfirm
from family_graph.core.family_access import require_family_user
from family_graph.core import smart_link

router = APIRouter(prefix="/families/{family_id}/smart-link", tags=["Smart Link"])


# ============================================================
# SUGGESTIONS FOR THE CALLING ACCOUNT
# ============================================================

@router.get("", response_model=SmartLinkOut)
def suggest_links(
    family_id: str,
    min_score: Optional[float] = Query(default=None, ge=0, le=1),
    limit: Optional[int] = Query(default=None, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)

    identity = smart_link.ExternalIdentity(
        account_id=current_user.id,
        name=current_user.name,
        email=current_user.email,
    )
    result = smart_link.suggest_links(db, family_id, identity, min_score=min_score, limit=limit)

    return {
        "auto_match": {"found": result.found, "member": result.auto_match},
        "possible_matches": [
            {"member": c.member, "score": c.score} for c in result.possible_matches
        ],
    }


# ============================================================
# CONFIRM "THIS IS ME"
# "I am a new person" is POST /members with is_me=true instead.
# ============================================================

@router.post("/confirm", response_model=MemberOut)
def confirm_link(
    family_id: str,
    payload: SmartLinkConfirm,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)

    return smart_link.confirm_link(
        db,
        family_id,
        payload.member_id,
        current_user.id,
        email=current_user.email,
    )


# ============================================================
# RELEASE MY LINK
# ============================================================

@router.delete("")
def unlink_me(
    family_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)

    member = smart_link.unlink_account(db, family_id, current_user.id)
    return {"status": "unlinked", "member_id": member.id if member else None}
