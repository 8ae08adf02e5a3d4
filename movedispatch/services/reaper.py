"""Expire unpaid booking holds and free their capacity.

Each booking is expired in its own transaction. A booking that a payment
webhook confirmed (or a customer canceled) between the scan and the expiry
is rejected by the booking state machine and skipped. So is one an admin
deleted meanwhile. The reaper can therefore run alongside webhooks and
other reaper instances.
"""
from dataclasses import dataclass, field
from datetime import datetime
import logging
import time

from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..errors import ConcurrencyConflict, NotFoundError, StateError
from ..models.base import utcnow
from .bookings import expire_booking, expired_hold_ids
from .config_store import get_config_snapshot

logger = logging.getLogger(__name__)


@dataclass
class ReapResult:
    expired_booking_ids: list[int] = field(default_factory=list)
    skipped_booking_ids: list[int] = field(default_factory=list)


def reap_expired_holds(db: Session, now: datetime | None = None) -> ReapResult:
    now = now or utcnow()
    candidates = expired_hold_ids(db, now)
    db.rollback()
    result = ReapResult()
    for booking_id in candidates:
        try:
            expire_booking(db, booking_id, now)
        except (StateError, NotFoundError, ConcurrencyConflict) as exc:
            logger.info("Skipped expiring booking %s: %s", booking_id, exc)
            result.skipped_booking_ids.append(booking_id)
            continue
        result.expired_booking_ids.append(booking_id)
    if result.expired_booking_ids:
        logger.info("Expired %s unpaid holds", len(result.expired_booking_ids))
    return result


def check_interval(db: Session) -> None:
    hold_seconds = get_config_snapshot(db).hold_minutes * 60
    db.rollback()
    if settings.reaper_interval_seconds >= hold_seconds:
        logger.warning(
            "Reaper interval (%ss) is not shorter than the hold time (%ss)",
            settings.reaper_interval_seconds,
            hold_seconds,
        )


def run_reaper(session_factory: sessionmaker, max_runs: int | None = None) -> None:
    runs = 0
    with session_factory() as db:
        check_interval(db)
    while max_runs is None or runs < max_runs:
        with session_factory() as db:
            try:
                reap_expired_holds(db)
            except Exception:
                logger.exception("Reaper pass failed")
        runs += 1
        if max_runs is None or runs < max_runs:
            time.sleep(settings.reaper_interval_seconds)
