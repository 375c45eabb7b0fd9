from pydantic import BaseModel
from typing import Optional
from datetime import datetime


# --------------------------------------------------
# CREATE
# --------------------------------------------------
class FamilyCreate(BaseModel):
    name: str


# --------------------------------------------------
# ADD USER (admin grants read access to an account)
# --------------------------------------------------
class FamilyUserAdd(BaseModel):
    user_id: str


# --------------------------------------------------
# FAMILY OUT
# --------------------------------------------------
class FamilyOut(BaseModel):
    id: str
    name: str
    admin_user_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FamilyDetailOut(FamilyOut):
    user_ids: list[str] = []
    is_admin: bool
    my_member_id: Optional[str] = None


# --------------------------------------------------
# TRANSFER ADMIN
# --------------------------------------------------
class FamilyAdminTransfer(BaseModel):
    new_admin_user_id: str


# --------------------------------------------------
# STATISTICS
# --------------------------------------------------
class YearStats(BaseModel):
    year: int
    births: int = 0
    marriages: int = 0
    deaths: int = 0


class StatsSummary(BaseModel):
    births: int = 0
    marriages: int = 0
    deaths: int = 0


class FamilyStatisticsOut(BaseModel):
    yearly_stats: list[YearStats] = []
    total_years_with_events: int = 0
    summary: StatsSummary
