from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from family_graph.database import get_db
from family_graph.auth import get_current_user
from family_graph.models.user import User
from family_graph.schemas.join_request_schema import (
    JoinRequestCreate,
    JoinRequestHandle,
    JoinRequestOut,
    JoinRequestSuggestionsOut,
    JoinRequestHandledOut,
)
from family_graph.core.family_access import require_family, require_family_admin
from family_graph.core import join_requests

router = APIRouter(prefix="/families/{family_id}/join-requests", tags=["Join Requests"])


# ============================================================
# ASK TO JOIN
# ============================================================

@router.post("", response_model=JoinRequestOut)
def create_join_request(
    family_id: str,
    payload: JoinRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    family = require_family(db, family_id)
    return join_requests.create_join_request(db, family, current_user, message=payload.message)


# ============================================================
# ADMIN: LIST
# ============================================================

@router.get("", response_model=list[JoinRequestOut])
def list_join_requests(
    family_id: str,
    status: Optional[str] = Query(default=None, pattern="^(pending|approved|rejected)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)
    return join_requests.list_join_requests(db, family_id, status=status)


# ============================================================
# ADMIN: WHO MIGHT THIS BE?
# ============================================================

@router.get("/{request_id}/suggestions", response_model=JoinRequestSuggestionsOut)
def join_request_suggestions(
    family_id: str,
    request_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    request, result = join_requests.join_request_suggestions(db, family_id, request_id)
    return {
        "request": request,
        "auto_match": {"found": result.found, "member": result.auto_match},
        "possible_matches": [
            {"member": c.member, "score": c.score} for c in result.possible_matches
        ],
    }


# ============================================================
# ADMIN: APPROVE / REJECT
# ============================================================

@router.post("/{request_id}/handle", response_model=JoinRequestHandledOut)
def handle_join_request(
    family_id: str,
    request_id: str,
    payload: JoinRequestHandle,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_admin(db, family_id, current_user.id)

    request, member = join_requests.handle_join_request(
        db,
        family_id,
        request_id,
        current_user.id,
        payload.action,
        link_option=payload.link_option,
        member_id=payload.member_id,
    )
    return {"request": request, "linked_member": member}
