from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..actors import Actor, ActorRole, get_actor, require_roles
from ..db import get_db
from ..errors import InvalidRequestError
from ..schemas import SalesCommissionRow, SalesStatsRead
from ..services import billing as billing_service

router = APIRouter(prefix="/sales")


def _sales_user_id(actor: Actor) -> int:
    require_roles(actor, ActorRole.SALES)
    if actor.user_id is None:
        raise InvalidRequestError("A sales user id is required.")
    return actor.user_id


@router.get("/commissions", response_model=list[SalesCommissionRow])
def sales_commissions(
    actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> list[SalesCommissionRow]:
    rows = billing_service.list_sales_commissions(db, _sales_user_id(actor))
    return [SalesCommissionRow(**row) for row in rows]


@router.get("/stats", response_model=SalesStatsRead)
def sales_stats(
    actor: Actor = Depends(get_actor), db: Session = Depends(get_db)
) -> SalesStatsRead:
    return SalesStatsRead(**billing_service.sales_stats(db, _sales_user_id(actor)))
