"""
Builds the renderable kinship graph from a flat list of members.

Output is an adjacency map keyed by member id. Children are derived in one
grouping pass over father_id / mother_id. Ids that do not resolve (purged,
deleted, other family) are dropped from every list instead of failing.
"""

import logging
from collections import defaultdict
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from family_graph.core.member_store import sibling_sort_key
from family_graph.models.family_member import FamilyMember

logger = logging.getLogger("family_graph.core.tree_builder")


def build_tree(members: Iterable[FamilyMember], family_id: Optional[str] = None) -> dict[str, Any]:
    members = list(members)
    by_id = {m.id: m for m in members}

    # ----------------------------
    # Children: single grouping pass
    # ----------------------------
    children_of: dict[str, list[FamilyMember]] = defaultdict(list)
    dangling = 0
    for m in members:
        for pid in {m.father_id, m.mother_id}:
            if not pid:
                continue
            if pid in by_id:
                children_of[pid].append(m)
            else:
                dangling += 1

    nodes: dict[str, dict[str, Any]] = {}
    couples: list[list[str]] = []
    roots: list[FamilyMember] = []

    for m in members:
        parents = [pid for pid in (m.father_id, m.mother_id) if pid and pid in by_id]

        spouses = []
        if m.spouse_id and m.spouse_id in by_id:
            spouses.append(m.spouse_id)
            partner = by_id[m.spouse_id]
            # display convention: each mutual couple once, smaller id first
            if partner.spouse_id == m.id and m.id < partner.id:
                couples.append([m.id, partner.id])
        elif m.spouse_id:
            dangling += 1

        if not parents:
            roots.append(m)

        nodes[m.id] = {
            "id": m.id,
            "name": m.name,
            "gender": m.gender,
            "generation": m.generation,
            "birth_date": m.birth_date,
            "death_date": m.death_date,
            "linked_user_id": m.linked_user_id,
            "parents": parents,
            "spouses": spouses,
            "children": [c.id for c in sorted(children_of.get(m.id, []), key=sibling_sort_key)],
        }

    if dangling:
        logger.debug("Tree build skipped %d unresolved references", dangling)

    return {
        "family_id": family_id,
        "nodes": nodes,
        "roots": [m.id for m in sorted(roots, key=lambda m: (m.generation, m.id))],
        "couples": sorted(couples),
    }


def family_tree(db: Session, family_id: str) -> dict[str, Any]:
    # No locking: a build may see a slightly stale snapshot
    members = (
        db.query(FamilyMember)
        .filter(
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.is_(None),
        )
        .all()
    )
    return build_tree(members, family_id=family_id)
