"""Orchestrates trip create / update / end / delete as atomic units of work.

States: (none) -> ongoing -> ended, with deletion allowed from either state.
Each mutating call validates its input before opening the transaction, then
runs the guard, the repository writes, the assignment sync and the audit
entry inside ``TripContext.transaction()``; nothing partial is ever committed.
"""
import logging
from datetime import date

from tripdetails.context import TripContext
from tripdetails.errors import ConflictError, ValidationError
from tripdetails.services.assignment_sync import AssignmentSynchronizer
from tripdetails.services.audit_service import log_action
from tripdetails.services.trip_repository import (
    ONGOING_CONFLICT,
    NewTrip,
    RosterChange,
    TripRepository,
    normalize_ids,
    prepare_new_trip,
    prepare_roster_change,
)

logger = logging.getLogger(__name__)


class TripLifecycleController:
    def __init__(self, ctx: TripContext):
        self.ctx = ctx
        self.repo = TripRepository(ctx.db, ctx.caps)
        self.sync = AssignmentSynchronizer(ctx.db, ctx.caps)

    def create(self, new_trip: NewTrip) -> dict:
        trip = prepare_new_trip(new_trip)

        with self.ctx.transaction():
            plant_id = self.repo.vehicle_plant(trip.vehicle_id)
            self.repo.ensure_people_exist(trip.driver_ids, "Driver")
            self.repo.ensure_people_exist(trip.helper_ids, "Helper")
            try:
                self.repo.guard.validate_open(trip.vehicle_id, trip.start_km)
            except ConflictError as exc:
                logger.warning("Rejected trip open on vehicle %s: %s", trip.vehicle_id, exc.message)
                raise
            if self.repo.has_ongoing_trip(trip.vehicle_id):
                raise ConflictError(ONGOING_CONFLICT)

            trip_id = self.repo.create_trip(trip)
            helper_ids = self.ctx.caps.helper_store.stored_ids(trip.helper_ids)
            self.sync.sync_roster(helper_ids, trip.vehicle_id, plant_id)
            self.sync.sync_roster(trip.driver_ids, trip.vehicle_id, plant_id)

            log_action(
                self.ctx.db, self.ctx.identity, "create", "trip", trip_id,
                f"Opened trip on vehicle {trip.vehicle_id} at {trip.start_km} km "
                f"(drivers={trip.driver_ids}, helpers={helper_ids})",
            )

        logger.info("Trip %s opened on vehicle %s by %s", trip_id, trip.vehicle_id, self.ctx.identity.username)
        return {
            "trip_id": trip_id,
            "helper_id": helper_ids[0] if helper_ids else None,
            "helper_ids": helper_ids,
        }

    def update(self, trip_id: int, change: RosterChange) -> None:
        change = prepare_roster_change(change)

        with self.ctx.transaction():
            # state first: an ended trip is a conflict whatever the payload holds
            self.repo.require_ongoing_trip(trip_id)
            if change.set_driver_ids is not None:
                self.repo.ensure_people_exist(change.set_driver_ids, "Driver")
            if change.set_helper_ids is not None:
                self.repo.ensure_people_exist(change.set_helper_ids, "Helper")

            trip = self.repo.update_roster(trip_id, change)
            plant_id = self.repo.vehicle_plant(trip.vehicle_id)
            if change.set_helper_ids:
                helper_ids = self.ctx.caps.helper_store.stored_ids(change.set_helper_ids)
                self.sync.sync_roster(helper_ids, trip.vehicle_id, plant_id)
            if change.set_driver_ids:
                self.sync.sync_roster(change.set_driver_ids, trip.vehicle_id, plant_id)

            log_action(
                self.ctx.db, self.ctx.identity, "update", "trip", trip_id,
                _describe_change(change),
            )

        logger.info("Trip %s updated by %s", trip_id, self.ctx.identity.username)

    def end(self, trip_id: int, end_date: date, end_km: int) -> dict:
        if end_date is None or end_km is None or end_km < 0:
            raise ValidationError("end_date and a non-negative end_km are required")

        with self.ctx.transaction():
            try:
                trip_id, total_km = self.repo.end_trip(trip_id, end_date, end_km)
            except ConflictError as exc:
                logger.warning("Rejected trip end for %s: %s", trip_id, exc.message)
                raise
            log_action(
                self.ctx.db, self.ctx.identity, "end", "trip", trip_id,
                f"Ended trip on {end_date.isoformat()} at {end_km} km ({total_km} km driven)",
            )

        logger.info("Trip %s ended (%s km)", trip_id, total_km)
        return {"trip_id": trip_id, "total_km": total_km}

    def delete(self, trip_id: int) -> None:
        with self.ctx.transaction():
            self.repo.delete_trip(trip_id)
            log_action(self.ctx.db, self.ctx.identity, "delete", "trip", trip_id, "Deleted trip")

        logger.info("Trip %s deleted by %s", trip_id, self.ctx.identity.username)

    def list_for_vehicle(self, vehicle_id: int, driver_ids=None, limit: int | None = None, offset: int = 0) -> dict:
        kwargs = {} if limit is None else {"limit": limit}
        rows, has_more = self.repo.list_trips_for_vehicle(
            vehicle_id, normalize_ids(driver_ids), offset=offset, **kwargs
        )
        return {"rows": rows, "has_more": has_more}

    def details(self, trip_id: int) -> dict:
        return self.repo.get_trip(trip_id)


def _describe_change(change: RosterChange) -> str:
    parts = []
    if change.set_driver_ids is not None:
        parts.append(f"drivers={change.set_driver_ids}")
    if change.set_helper_ids is not None:
        parts.append(f"helpers={change.set_helper_ids}")
    if change.set_customer_names is not None:
        parts.append(f"customers set ({len(change.set_customer_names)})")
    elif change.add_customer_names:
        parts.append(f"customers added ({len(change.add_customer_names)})")
    if change.note is not None:
        parts.append("note")
    return "Updated " + (", ".join(parts) if parts else "nothing")
