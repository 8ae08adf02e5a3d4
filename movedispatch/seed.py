from sqlalchemy import select
from sqlalchemy.orm import Session

from .db import SessionLocal
from .models import MaterialRate, SpecialItemRate, Truck
from .services.config_store import get_config_snapshot


SEED_SPECIAL_ITEMS = [
    {"code": "piano", "label": "Piano", "price_cents": 15000},
    {"code": "poolTable", "label": "Pool Table", "price_cents": 20000},
    {"code": "safe", "label": "Safe (over 600 lbs)", "price_cents": 17500},
    {"code": "heavyFurniture", "label": "Heavy Furniture (over 600 lbs)", "price_cents": 10000},
    {"code": "artwork", "label": "Artwork (over $2000)", "price_cents": 7500},
]

SEED_MATERIALS = [
    {"code": "smallBox", "label": "Small Box", "unit_price_cents": 300},
    {"code": "mediumBox", "label": "Medium Box", "unit_price_cents": 450},
    {"code": "largeBox", "label": "Large Box", "unit_price_cents": 600},
    {"code": "packingTape", "label": "Packing Tape", "unit_price_cents": 500},
    {"code": "shrinkWrap", "label": "Shrink Wrap Roll", "unit_price_cents": 2500},
    {"code": "mattressBag", "label": "Mattress Bag", "unit_price_cents": 1200},
]


def _seed_rows(session: Session, model, entries: list[dict]) -> int:
    created = 0
    for entry in entries:
        exists = session.execute(
            select(model).where(model.code == entry["code"])
        ).scalar_one_or_none()
        if exists:
            continue
        session.add(model(is_active=True, **entry))
        created += 1
    return created


def seed_rates() -> tuple[int, int]:
    with SessionLocal() as session:
        special = _seed_rows(session, SpecialItemRate, SEED_SPECIAL_ITEMS)
        materials = _seed_rows(session, MaterialRate, SEED_MATERIALS)
        session.commit()
    return special, materials


def seed_trucks() -> int:
    """Create one active truck per unit of configured fleet capacity."""
    created = 0
    with SessionLocal() as session:
        total = get_config_snapshot(session).total_trucks
        existing = set(session.execute(select(Truck.name)).scalars())
        for number in range(1, total + 1):
            name = f"Truck {number}"
            if name in existing:
                continue
            session.add(Truck(name=name, is_active=True))
            created += 1
        session.commit()
    return created


def main() -> None:
    special, materials = seed_rates()
    trucks = seed_trucks()
    print(f"Seeded special items: {special}, materials: {materials}, trucks: {trucks}")


if __name__ == "__main__":
    main()
