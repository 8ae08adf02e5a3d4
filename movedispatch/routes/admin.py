from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..actors import Actor, get_actor, require_roles
from ..db import get_db
from ..errors import InvalidRequestError, NotFoundError
from ..models import Employee, MaterialRate, SpecialItemRate, Truck
from ..schemas import (
    CompanyConfigRead,
    CompanyConfigUpdate,
    EmployeeCreate,
    EmployeeRead,
    RateRead,
    RateUpsert,
    ReaperRunRead,
    TruckCreate,
    TruckRead,
    TruckUpdate,
)
from ..services import config_store
from ..services.reaper import reap_expired_holds


def _admin_only(actor: Actor = Depends(get_actor)) -> Actor:
    require_roles(actor)
    return actor


router = APIRouter(prefix="/admin", dependencies=[Depends(_admin_only)])


@router.get("/config", response_model=CompanyConfigRead)
def read_config(db: Session = Depends(get_db)) -> CompanyConfigRead:
    snapshot = config_store.get_config_snapshot(db)
    db.commit()
    return CompanyConfigRead.model_validate(snapshot)


@router.post("/config", response_model=CompanyConfigRead)
def update_config(
    payload: CompanyConfigUpdate, db: Session = Depends(get_db)
) -> CompanyConfigRead:
    snapshot = config_store.update_config(db, payload.model_dump(exclude_unset=True))
    return CompanyConfigRead.model_validate(snapshot)


@router.get("/trucks", response_model=list[TruckRead])
def trucks_list(db: Session = Depends(get_db)) -> list[Truck]:
    return list(db.execute(select(Truck).order_by(Truck.name)).scalars().all())


def _ensure_unique_truck_name(db: Session, name: str, truck_id: int | None = None) -> None:
    query = select(Truck.id).where(func.lower(Truck.name) == name.lower())
    if truck_id is not None:
        query = query.where(Truck.id != truck_id)
    if db.execute(query).first() is not None:
        raise InvalidRequestError(f"A truck named {name} already exists.")


@router.post("/trucks", response_model=TruckRead, status_code=201)
def trucks_create(payload: TruckCreate, db: Session = Depends(get_db)) -> Truck:
    name = payload.name.strip()
    _ensure_unique_truck_name(db, name)
    truck = Truck(name=name, is_active=payload.is_active)
    db.add(truck)
    db.commit()
    db.refresh(truck)
    return truck


@router.patch("/trucks/{truck_id}", response_model=TruckRead)
def trucks_update(
    truck_id: int, payload: TruckUpdate, db: Session = Depends(get_db)
) -> Truck:
    truck = db.get(Truck, truck_id)
    if truck is None:
        raise NotFoundError(f"Truck {truck_id} not found.")
    if payload.name is not None:
        name = payload.name.strip()
        _ensure_unique_truck_name(db, name, truck.id)
        truck.name = name
    if payload.is_active is not None:
        truck.is_active = payload.is_active
    db.commit()
    db.refresh(truck)
    return truck


@router.get("/employees", response_model=list[EmployeeRead])
def employees_list(db: Session = Depends(get_db)) -> list[Employee]:
    return list(db.execute(select(Employee).order_by(Employee.id)).scalars().all())


@router.post("/employees", response_model=EmployeeRead, status_code=201)
def employees_create(
    payload: EmployeeCreate, db: Session = Depends(get_db)
) -> Employee:
    if payload.user_id is not None:
        existing = db.execute(
            select(Employee.id).where(Employee.user_id == payload.user_id)
        ).first()
        if existing is not None:
            raise InvalidRequestError(
                f"User {payload.user_id} already has an employee record."
            )
    employee = Employee(**payload.model_dump())
    db.add(employee)
    db.commit()
    db.refresh(employee)
    return employee


@router.get("/rates/special-items", response_model=list[RateRead])
def special_item_rates(db: Session = Depends(get_db)) -> list[RateRead]:
    rates = db.execute(select(SpecialItemRate).order_by(SpecialItemRate.code)).scalars()
    return [
        RateRead(
            code=rate.code,
            label=rate.label,
            price_cents=rate.price_cents,
            is_active=rate.is_active,
        )
        for rate in rates
    ]


@router.post("/rates/special-items", response_model=RateRead)
def upsert_special_item_rate(
    payload: RateUpsert, db: Session = Depends(get_db)
) -> RateRead:
    rate = db.execute(
        select(SpecialItemRate).where(SpecialItemRate.code == payload.code)
    ).scalar_one_or_none()
    if rate is None:
        rate = SpecialItemRate(code=payload.code)
        db.add(rate)
    rate.label = payload.label
    rate.price_cents = payload.price_cents
    rate.is_active = payload.is_active
    db.commit()
    return RateRead.model_validate(payload.model_dump())


@router.get("/rates/materials", response_model=list[RateRead])
def material_rates(db: Session = Depends(get_db)) -> list[RateRead]:
    rates = db.execute(select(MaterialRate).order_by(MaterialRate.code)).scalars()
    return [
        RateRead(
            code=rate.code,
            label=rate.label,
            price_cents=rate.unit_price_cents,
            is_active=rate.is_active,
        )
        for rate in rates
    ]


@router.post("/rates/materials", response_model=RateRead)
def upsert_material_rate(
    payload: RateUpsert, db: Session = Depends(get_db)
) -> RateRead:
    rate = db.execute(
        select(MaterialRate).where(MaterialRate.code == payload.code)
    ).scalar_one_or_none()
    if rate is None:
        rate = MaterialRate(code=payload.code)
        db.add(rate)
    rate.label = payload.label
    rate.unit_price_cents = payload.price_cents
    rate.is_active = payload.is_active
    db.commit()
    return RateRead.model_validate(payload.model_dump())


@router.post("/reaper/run", response_model=ReaperRunRead)
def run_reaper_once(db: Session = Depends(get_db)) -> ReaperRunRead:
    result = reap_expired_holds(db)
    return ReaperRunRead(
        expired_booking_ids=result.expired_booking_ids,
        skipped_booking_ids=result.skipped_booking_ids,
    )
