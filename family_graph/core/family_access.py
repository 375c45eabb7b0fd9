from fastapi import HTTPException
from sqlalchemy.orm import Session

from family_graph.models.family import Family
from family_graph.models.family_user import FamilyUser


def require_family(db: Session, family_id: str) -> Family:
    family = db.query(Family).filter(Family.id == family_id).first()
    if not family:
        raise HTTPException(404, "Family not found")
    return family


def is_family_user(db: Session, family: Family, user_id: str) -> bool:
    if family.admin_user_id == user_id:
        return True

    return (
        db.query(FamilyUser)
        .filter(
            FamilyUser.family_id == family.id,
            FamilyUser.user_id == user_id,
        )
        .first()
        is not None
    )


def require_family_user(db: Session, family_id: str, user_id: str) -> Family:
    """
    Read access: the admin or any account added to the family.
    Unknown family and no access both look like 404 to outsiders.
    """
    family = require_family(db, family_id)
    if not is_family_user(db, family, user_id):
        raise HTTPException(404, "Family not found or access denied")
    return family


def require_family_admin(db: Session, family_id: str, user_id: str) -> Family:
    family = require_family_user(db, family_id, user_id)
    if family.admin_user_id != user_id:
        raise HTTPException(403, "Only the family admin can do this")
    return family
