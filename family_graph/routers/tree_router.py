from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from family_graph.database import get_db
from family_graph.auth import get_current_user
from family_graph.models.user import User
from family_graph.schemas.tree_schema import FamilyTreeOut
from family_graph.core.family_access import require_family_user
from family_graph.core.tree_builder import family_tree

router = APIRouter(prefix="/families/{family_id}/tree", tags=["Family Tree"])


@router.get("", response_model=FamilyTreeOut)
def get_tree(
    family_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    require_family_user(db, family_id, current_user.id)
    return family_tree(db, family_id)
