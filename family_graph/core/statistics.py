"""Per-year counts of births, marriages and deaths among a family's active members."""

from typing import Any, Optional

from sqlalchemy.orm import Session

from family_graph.models.family_member import FamilyMember

EVENTS = (("births", "birth_date"), ("marriages", "marriage_date"), ("deaths", "death_date"))


def family_statistics(
    db: Session,
    family_id: str,
    from_year: Optional[int] = None,
    to_year: Optional[int] = None,
) -> dict[str, Any]:
    rows = (
        db.query(FamilyMember.birth_date, FamilyMember.marriage_date, FamilyMember.death_date)
        .filter(
            FamilyMember.family_id == family_id,
            FamilyMember.deleted_at.is_(None),
        )
        .all()
    )

    by_year: dict[int, dict[str, int]] = {}
    for row in rows:
        for key, attr in EVENTS:
            day = getattr(row, attr)
            if day is None:
                continue
            if from_year is not None and day.year < from_year:
                continue
            if to_year is not None and day.year > to_year:
                continue
            counts = by_year.setdefault(day.year, {"births": 0, "marriages": 0, "deaths": 0})
            counts[key] += 1

    # marriages count once per member carrying a marriage_date
    yearly = [{"year": year, **by_year[year]} for year in sorted(by_year)]

    return {
        "yearly_stats": yearly,
        "total_years_with_events": len(yearly),
        "summary": {
            key: sum(y[key] for y in yearly) for key, _ in EVENTS
        },
    }
