from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

from family_graph.schemas.member_schema import MemberOut
from family_graph.schemas.smart_link_schema import SmartLinkOut


# --------------------------------------------------
# CREATE (any signed-in account)
# --------------------------------------------------
class JoinRequestCreate(BaseModel):
    message: Optional[str] = Field(default=None, max_length=1000)


# --------------------------------------------------
# HANDLE (admin)
# --------------------------------------------------
class JoinRequestHandle(BaseModel):
    action: Literal["approve", "reject"]
    link_option: Optional[Literal["auto", "manual", "new"]] = None
    member_id: Optional[str] = None


# --------------------------------------------------
# OUT
# --------------------------------------------------
class JoinRequestOut(BaseModel):
    id: str
    family_id: str
    user_id: str
    message: Optional[str] = None
    status: str
    handled_by: Optional[str] = None
    handled_at: Optional[datetime] = None
    link_option: Optional[str] = None
    linked_member_id: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class JoinRequestSuggestionsOut(SmartLinkOut):
    request: JoinRequestOut


class JoinRequestHandledOut(BaseModel):
    request: JoinRequestOut
    linked_member: Optional[MemberOut] = None
