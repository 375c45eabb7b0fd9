"""
Smart-link: match an authenticated account to an existing member record.

Suggestions are only suggestions. Nothing is written until the user confirms
a candidate through confirm_link; "I am a new person" goes through the normal
create-member flow with is_me set.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Iterable, Optional

from sqlalchemy.orm import Session
from unidecode import unidecode

from family_graph.config import settings
from family_graph.core.errors import AlreadyLinked
from family_graph.core.locks import member_locks
from family_graph.core.member_store import ensure_account_free, load_active
from family_graph.models.family_member import FamilyMember

logger = logging.getLogger("family_graph.core.smart_link")


@dataclass
class ExternalIdentity:
    account_id: str
    name: str
    email: Optional[str] = None


@dataclass
class MatchCandidate:
    member: FamilyMember
    score: float


@dataclass
class SmartLinkResult:
    auto_match: Optional[FamilyMember] = None
    possible_matches: list[MatchCandidate] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.auto_match is not None


# ============================================================
# NAME SIMILARITY
# ============================================================

def normalize_name(name: Optional[str]) -> str:
    """Lowercase, strip diacritics (đ, ø, ß included) and punctuation."""
    if not name:
        return ""
    text = unidecode(unicodedata.normalize("NFD", name.casefold()))
    text = re.sub(r"[^\w\s]", " ", text.lower())
    return " ".join(text.split())


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Score in [0, 1]: the better of word overlap (order-insensitive) and
    difflib's character ratio, on case/diacritic-folded names.
    """
    n1 = normalize_name(a)
    n2 = normalize_name(b)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0

    words1 = n1.split()
    words2 = n2.split()
    remaining = list(words2)
    overlap = 0
    for w in words1:
        if w in remaining:
            remaining.remove(w)
            overlap += 1
    token_score = overlap / max(len(words1), len(words2))

    ratio = SequenceMatcher(None, n1, n2).ratio()
    return round(max(token_score, ratio), 4)


def names_match(a: Optional[str], b: Optional[str]) -> bool:
    """Close enough to link a chosen member to an account without an email hit."""
    return name_similarity(a, b) >= settings.SMART_LINK_NAME_MATCH_SCORE


def _same_email(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()


# ============================================================
# MATCHING
# ============================================================

def match_candidates(
    identity: ExternalIdentity,
    members: Iterable[FamilyMember],
    min_score: Optional[float] = None,
    limit: Optional[int] = None,
) -> SmartLinkResult:
    """
    Pure matching over already-filtered candidates (active, unlinked).
    Auto-match needs exactly one email hit; ties in score sort by id.
    """
    if min_score is None:
        min_score = settings.SMART_LINK_MIN_SCORE
    if limit is None:
        limit = settings.SMART_LINK_MAX_CANDIDATES

    members = list(members)

    email_hits = [m for m in members if _same_email(m.email, identity.email)]
    auto_match = email_hits[0] if len(email_hits) == 1 else None

    scored = []
    for m in members:
        score = name_similarity(m.name, identity.name)
        if score > min_score:
            scored.append(MatchCandidate(member=m, score=score))

    scored.sort(key=lambda c: (-c.score, c.member.id))

    return SmartLinkResult(auto_match=auto_match, possible_matches=scored[:limit])


def link_candidates(db: Session, family_id: str) -> list[FamilyMember]:
    return (
        db.query(FamilyMember)
        .filter(
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.is_(None),
            FamilyMember.linked_user_id.is_(None),
        )
        .all()
    )


def suggest_links(
    db: Session,
    family_id: str,
    identity: ExternalIdentity,
    min_score: Optional[float] = None,
    limit: Optional[int] = None,
) -> SmartLinkResult:
    result = match_candidates(identity, link_candidates(db, family_id), min_score, limit)
    logger.info(
        "Smart-link for account %s in family %s: auto_match=%s candidates=%d",
        identity.account_id,
        family_id,
        result.auto_match.id if result.auto_match else None,
        len(result.possible_matches),
    )
    return result


# ============================================================
# CONFIRMATION
# ============================================================

def bind_account(
    db: Session,
    member: FamilyMember,
    account_id: str,
    email: Optional[str] = None,
) -> bool:
    """
    Set member.linked_user_id without committing. Returns False when the
    member is already bound to this account; a different binding is refused.
    Caller holds the member's lock.
    """
    if member.linked_user_id == account_id:
        return False

    if member.linked_user_id:
        raise AlreadyLinked(
            f"{member.name} is already linked to another account",
            member_id=member.id,
        )

    ensure_account_free(db, member.family_id, account_id, except_member_id=member.id)

    member.linked_user_id = account_id
    if email and not member.email:
        member.email = email
    return True


def confirm_link(
    db: Session,
    family_id: str,
    member_id: str,
    account_id: str,
    email: Optional[str] = None,
) -> FamilyMember:
    """
    Bind account_id to the member the user picked. Re-confirming the same
    binding is a no-op; replacing a different binding is refused.
    """
    with member_locks.hold(member_id):
        try:
            member = load_active(db, family_id, member_id, lock=True)
            changed = bind_account(db, member, account_id, email=email)
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(member)
    if changed:
        logger.info("Linked account %s to member %s in family %s", account_id, member.id, family_id)
    return member


def unlink_account(db: Session, family_id: str, account_id: str) -> Optional[FamilyMember]:
    """Release the account's "is me" member in this family, if any."""
    member = (
        db.query(FamilyMember)
        .filter(
            FamilyMember.family_id == family_id,
            FamilyMember.linked_user_id == account_id,
            FamilyMember.deleted_at.is_(None),
        )
        .first()
    )
    if member is None:
        return None

    with member_locks.hold(member.id):
        try:
            member = load_active(db, family_id, member.id, lock=True)
            if member.linked_user_id == account_id:
                member.linked_user_id = None
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(member)
    logger.info("Unlinked account %s from member %s in family %s", account_id, member.id, family_id)
    return member
