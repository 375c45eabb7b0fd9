from pydantic import BaseModel
from typing import Optional, List

from family_graph.schemas.member_schema import MemberOut


# --------------------------------------------------
# SUGGESTIONS
# --------------------------------------------------
class AutoMatchOut(BaseModel):
    found: bool
    member: Optional[MemberOut] = None


class PossibleMatchOut(BaseModel):
    member: MemberOut
    score: float


class SmartLinkOut(BaseModel):
    auto_match: AutoMatchOut
    possible_matches: List[PossibleMatchOut] = []


# --------------------------------------------------
# CONFIRM ("this is me")
# --------------------------------------------------
class SmartLinkConfirm(BaseModel):
    member_id: str
