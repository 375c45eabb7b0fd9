from pydantic import BaseModel
from typing import Optional, Literal

from family_graph.schemas.member_schema import MemberOut


ParentRole = Literal["father", "mother"]


# --------------------------------------------------
# SPOUSE
# --------------------------------------------------
class SpouseAttach(BaseModel):
    member_id: str
    spouse_id: str


class SpousePairOut(BaseModel):
    member: MemberOut
    spouse: MemberOut


class SpouseDetachOut(BaseModel):
    member: MemberOut
    former_spouse_id: Optional[str] = None


# --------------------------------------------------
# PARENT
# --------------------------------------------------
class ParentAttach(BaseModel):
    child_id: str
    parent_id: str
    role: ParentRole
