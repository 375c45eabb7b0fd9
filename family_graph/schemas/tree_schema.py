from pydantic import BaseModel
from typing import Optional, List, Dict
from datetime import date


class TreeNodeOut(BaseModel):
    id: str
    name: str
    gender: str
    generation: int
    birth_date: Optional[date] = None
    death_date: Optional[date] = None
    linked_user_id: Optional[str] = None

    parents: List[str] = []
    spouses: List[str] = []
    children: List[str] = []


class FamilyTreeOut(BaseModel):
    family_id: Optional[str] = None
    nodes: Dict[str, TreeNodeOut] = {}
    roots: List[str] = []
    couples: List[List[str]] = []
