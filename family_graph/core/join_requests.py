"""
Join requests: an account asks to see a family, the admin reviews smart-link
suggestions for it and approves with a link option, or rejects.

Approval is one unit of work: the account becomes a family user, the chosen
member (if any) is bound to it, and the request is closed.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from family_graph.core.errors import (
    AlreadyMember,
    DuplicateJoinRequest,
    InvalidJoinRequest,
    JoinRequestClosed,
    NameMismatch,
    NotFound,
)
from family_graph.core.family_access import is_family_user
from family_graph.core.locks import member_locks
from family_graph.core.member_store import load_active
from family_graph.core.smart_link import (
    ExternalIdentity,
    SmartLinkResult,
    bind_account,
    link_candidates,
    match_candidates,
    names_match,
)
from family_graph.models.family import Family
from family_graph.models.family_join_request import FamilyJoinRequest, LINK_OPTIONS
from family_graph.models.family_member import FamilyMember
from family_graph.models.family_user import FamilyUser
from family_graph.models.user import User

logger = logging.getLogger("family_graph.core.join_requests")


def _identity(user: User) -> ExternalIdentity:
    return ExternalIdentity(account_id=user.id, name=user.name, email=user.email)


# ============================================================
# CREATE / LIST
# ============================================================

def create_join_request(
    db: Session,
    family: Family,
    user: User,
    message: Optional[str] = None,
) -> FamilyJoinRequest:
    if is_family_user(db, family, user.id):
        raise AlreadyMember("You are already a member of this family", family_id=family.id)

    existing = (
        db.query(FamilyJoinRequest)
        .filter(
            FamilyJoinRequest.family_id == family.id,
            FamilyJoinRequest.user_id == user.id,
        )
        .first()
    )

    if existing is not None:
        if existing.status == "pending":
            raise DuplicateJoinRequest(
                "You already have a pending request for this family",
                request_id=existing.id,
            )
        # rejected, or approved for someone who has since left: start over
        db.delete(existing)
        db.flush()

    request = FamilyJoinRequest(
        family_id=family.id,
        user_id=user.id,
        message=(message or "").strip() or None,
        status="pending",
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info("Join request %s: user %s -> family %s", request.id, user.id, family.id)
    return request


def list_join_requests(
    db: Session,
    family_id: str,
    status: Optional[str] = None,
) -> list[FamilyJoinRequest]:
    q = db.query(FamilyJoinRequest).filter(FamilyJoinRequest.family_id == family_id)
    if status:
        q = q.filter(FamilyJoinRequest.status == status)
    return q.order_by(FamilyJoinRequest.created_at.desc()).all()


def load_join_request(
    db: Session,
    family_id: str,
    request_id: str,
    lock: bool = False,
) -> FamilyJoinRequest:
    q = db.query(FamilyJoinRequest).filter(
        FamilyJoinRequest.id == request_id,
        FamilyJoinRequest.family_id == family_id,
    )
    if lock:
        q = q.populate_existing().with_for_update()

    request = q.first()
    if request is None:
        raise NotFound("Join request not found", request_id=request_id)
    return request


# ============================================================
# SUGGESTIONS
# ============================================================

def join_request_suggestions(
    db: Session,
    family_id: str,
    request_id: str,
) -> tuple[FamilyJoinRequest, SmartLinkResult]:
    request = load_join_request(db, family_id, request_id)
    result = match_candidates(_identity(request.user), link_candidates(db, family_id))
    return request, result


# ============================================================
# APPROVE / REJECT
# ============================================================

def _pick_member_id(
    db: Session,
    family_id: str,
    user: User,
    link_option: str,
    member_id: Optional[str],
) -> Optional[str]:
    if link_option == "auto":
        result = match_candidates(_identity(user), link_candidates(db, family_id))
        if not result.found:
            raise NotFound("No auto-match member found. Link a member manually or add as new.")
        return result.auto_match.id

    if link_option == "manual":
        if not member_id:
            raise InvalidJoinRequest("member_id is required for a manual link")
        return member_id

    return None


def handle_join_request(
    db: Session,
    family_id: str,
    request_id: str,
    admin_id: str,
    action: str,
    link_option: Optional[str] = None,
    member_id: Optional[str] = None,
) -> tuple[FamilyJoinRequest, Optional[FamilyMember]]:
    """
    action is "approve" or "reject". Approval links according to link_option
    (default "new"). Returns the closed request and the linked member, if any.
    """
    if action not in ("approve", "reject"):
        raise InvalidJoinRequest(f"Unknown action '{action}'", action=action)

    option = link_option or "new"
    if option not in LINK_OPTIONS:
        raise InvalidJoinRequest(f"Unknown link option '{option}'", link_option=option)

    request = load_join_request(db, family_id, request_id)
    if request.status != "pending":
        raise JoinRequestClosed("Request has already been processed", status=request.status)

    user = request.user
    target_id = _pick_member_id(db, family_id, user, option, member_id) if action == "approve" else None

    member = None
    with member_locks.hold(target_id):
        try:
            request = load_join_request(db, family_id, request_id, lock=True)
            if request.status != "pending":
                raise JoinRequestClosed("Request has already been processed", status=request.status)

            if action == "approve":
                if target_id:
                    member = load_active(db, family_id, target_id, lock=True)
                    if option == "manual" and not names_match(member.name, user.name):
                        raise NameMismatch(
                            f"{member.name} does not match {user.name} closely enough",
                            member_id=member.id,
                        )
                    bind_account(db, member, user.id, email=user.email)

                already_in = (
                    db.query(FamilyUser)
                    .filter(
                        FamilyUser.family_id == family_id,
                        FamilyUser.user_id == user.id,
                    )
                    .first()
                )
                if already_in is None:
                    db.add(FamilyUser(family_id=family_id, user_id=user.id))

                request.status = "approved"
                request.link_option = option
                request.linked_member_id = target_id
            else:
                request.status = "rejected"

            request.handled_by = admin_id
            request.handled_at = datetime.utcnow()
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(request)
    if member is not None:
        db.refresh(member)

    logger.info(
        "Join request %s %s by %s (link=%s member=%s)",
        request.id,
        request.status,
        admin_id,
        request.link_option,
        request.linked_member_id,
    )
    return request, member
