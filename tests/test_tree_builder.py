"""Tests for the kinship graph builder."""

from datetime import date

from family_graph.core import member_store
from family_graph.core.tree_builder import build_tree, family_tree
from family_graph.models.family_member import FamilyMember


def person(mid, gender="male", generation=1, **fields):
    return FamilyMember(id=mid, name=mid.upper(), gender=gender, generation=generation, **fields)


def children_by_scan(members, parent_id):
    return {m.id for m in members if parent_id in (m.father_id, m.mother_id)}


def test_children_match_parent_pointers():
    members = [
        person("a"),
        person("b", gender="female", spouse_id="a"),
        person("c", generation=2, father_id="a", mother_id="b"),
        person("d", gender="female", generation=2, father_id="a"),
        person("e", generation=2, mother_id="b"),
    ]
    members[0].spouse_id = "b"

    tree = build_tree(members)

    for m in members:
        assert set(tree["nodes"][m.id]["children"]) == children_by_scan(members, m.id)
    assert sorted(tree["nodes"]["c"]["parents"]) == ["a", "b"]


def test_dangling_references_are_omitted():
    members = [
        person("a", spouse_id="purged-wife"),
        person("c", generation=2, father_id="a", mother_id="purged-wife"),
        person("orphan", generation=3, father_id="purged-son"),
    ]

    tree = build_tree(members, family_id="fam")

    assert tree["family_id"] == "fam"
    assert tree["nodes"]["a"]["spouses"] == []
    assert tree["nodes"]["a"]["children"] == ["c"]
    assert tree["nodes"]["c"]["parents"] == ["a"]
    assert tree["nodes"]["orphan"]["parents"] == []
    assert "purged-wife" not in tree["nodes"]
    assert tree["couples"] == []


def test_couples_listed_once_smaller_id_first():
    members = [
        person("m2"),
        person("m1", gender="female"),
        person("x"),
    ]
    members[0].spouse_id = "m1"
    members[1].spouse_id = "m2"

    tree = build_tree(members)

    assert tree["couples"] == [["m1", "m2"]]
    assert tree["nodes"]["m1"]["spouses"] == ["m2"]
    assert tree["nodes"]["m2"]["spouses"] == ["m1"]
    assert tree["nodes"]["x"]["spouses"] == []


def test_one_sided_spouse_pointer_is_not_a_couple():
    members = [person("a", spouse_id="b"), person("b", gender="female")]

    tree = build_tree(members)

    assert tree["couples"] == []
    assert tree["nodes"]["a"]["spouses"] == ["b"]
    assert tree["nodes"]["b"]["spouses"] == []


def test_children_order_and_roots():
    members = [
        person("dad"),
        person("late", generation=2, father_id="dad", birth_date=date(2005, 1, 1)),
        person("early", generation=2, father_id="dad", birth_date=date(1999, 1, 1)),
        person("first", generation=2, father_id="dad", child_order=1, birth_date=date(2010, 1, 1)),
        person("in-law", generation=2),
    ]

    tree = build_tree(members)

    assert tree["nodes"]["dad"]["children"] == ["first", "early", "late"]
    assert tree["roots"] == ["dad", "in-law"]


def test_empty_family():
    assert build_tree([]) == {"family_id": None, "nodes": {}, "roots": [], "couples": []}


def test_family_tree_skips_deleted_members(db, family, make_member):
    dad = make_member("Dad")
    mum = make_member("Mum", gender="female", spouse_id=dad.id)
    kid = make_member("Kid", generation=2, father_id=dad.id)
    member_store.soft_delete_member(db, family.id, mum.id)

    tree = family_tree(db, family.id)

    assert set(tree["nodes"]) == {dad.id, kid.id}
    assert tree["nodes"][kid.id]["parents"] == [dad.id]
    assert tree["nodes"][dad.id]["spouses"] == []
    assert tree["nodes"][dad.id]["children"] == [kid.id]
