from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import date, datetime


Gender = Literal["male", "female", "other"]


# --------------------------------------------------
# CREATE
# --------------------------------------------------
class MemberCreate(BaseModel):
    name: str = Field(min_length=1)
    gender: Gender
    generation: int = Field(ge=1)
    child_order: Optional[int] = Field(default=None, ge=1)

    email: Optional[str] = None
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    marriage_date: Optional[date] = None
    bio: Optional[str] = None

    # "add child of X" / "add spouse of Y"
    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    spouse_id: Optional[str] = None

    # link this new member to the calling account
    is_me: bool = False


# --------------------------------------------------
# UPDATE (only fields that were sent are applied)
# --------------------------------------------------
class MemberUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    gender: Optional[Gender] = None
    generation: Optional[int] = Field(default=None, ge=1)
    child_order: Optional[int] = Field(default=None, ge=1)

    email: Optional[str] = None
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    marriage_date: Optional[date] = None
    bio: Optional[str] = None

    # null clears the link; a new id goes through the relationship checks
    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    spouse_id: Optional[str] = None


# --------------------------------------------------
# MEMBER OUT
# --------------------------------------------------
class MemberOut(BaseModel):
    id: str
    family_id: str
    name: str
    gender: str
    generation: int
    child_order: Optional[int] = None

    email: Optional[str] = None
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    marriage_date: Optional[date] = None
    bio: Optional[str] = None

    father_id: Optional[str] = None
    mother_id: Optional[str] = None
    spouse_id: Optional[str] = None
    linked_user_id: Optional[str] = None

    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MemberPreview(BaseModel):
    id: str
    name: str
    gender: str
    generation: int
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    marriage_date: Optional[date] = None

    class Config:
        from_attributes = True


# --------------------------------------------------
# MEMBER DETAIL (profile page)
# --------------------------------------------------
class MemberDetailOut(BaseModel):
    member: MemberOut
    father: Optional[MemberPreview] = None
    mother: Optional[MemberPreview] = None
    spouse: Optional[MemberPreview] = None
    children: List[MemberPreview] = []
    siblings: List[MemberPreview] = []
    my_order: Optional[int] = None
    total_siblings: int

    class Config:
        from_attributes = True


# --------------------------------------------------
# RECYCLE BIN
# --------------------------------------------------
class DeletedMemberOut(MemberOut):
    deleted_by: Optional[str] = None


class RestoreOut(BaseModel):
    member: MemberOut
    restored: List[str] = []
    cleared: List[str] = []
