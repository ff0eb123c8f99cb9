"""Keeps one current vehicle assignment per driver or helper.

The assignment row is keyed by person id and overwritten on every roster
change ("latest write wins"); it is never deleted as a side effect of trip
changes. When the ``drivers`` table carries a ``plant_id`` column the plant is
mirrored onto the person as well.
"""
import logging
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tripdetails.services.schema_probe import SchemaCapabilities

logger = logging.getLogger(__name__)


class AssignmentSynchronizer:
    def __init__(self, db: Session, caps: SchemaCapabilities):
        self.db = db
        self.caps = caps

    def _existing(self, person_id: int):
        assignments = self.caps.table("assignments")
        return self.db.execute(
            select(assignments.c.id, assignments.c.vehicle_id, assignments.c.plant_id)
            .where(assignments.c.driver_id == person_id)
        ).first()

    def upsert_assignment(self, person_id: int, vehicle_id: int | None, plant_id: int | None) -> None:
        if not self.caps.has_assignments:
            logger.debug("assignments table missing; skipping upsert for person %s", person_id)
            return
        assignments = self.caps.table("assignments")
        values = {"vehicle_id": vehicle_id, "plant_id": plant_id, "assigned_date": date.today()}

        existing = self._existing(person_id)
        if existing:
            self.db.execute(
                update(assignments).where(assignments.c.id == existing.id).values(values)
            )
        else:
            self.db.execute(assignments.insert().values(driver_id=person_id, **values))
        logger.debug("Assignment for person %s -> vehicle %s (plant %s)", person_id, vehicle_id, plant_id)

    def mirror_plant(self, person_ids: list[int], plant_id: int) -> None:
        if not person_ids or not self.caps.drivers_have_plant:
            return
        drivers = self.caps.table("drivers")
        self.db.execute(
            update(drivers).where(drivers.c.id.in_(person_ids)).values(plant_id=plant_id)
        )

    def sync_roster(self, person_ids: list[int], vehicle_id: int, plant_id: int) -> None:
        """Point every person of a roster at the trip's vehicle and plant."""
        for person_id in person_ids:
            self.upsert_assignment(person_id, vehicle_id, plant_id)
        self.mirror_plant(person_ids, plant_id)

    def clear_assignment(self, driver_id: int, plant_id: int | None = None) -> bool:
        """Unset the vehicle of a driver's assignment. Returns False if there was none."""
        if not self.caps.has_assignments:
            return False
        assignments = self.caps.table("assignments")
        stmt = update(assignments).where(assignments.c.driver_id == driver_id)
        if plant_id:
            stmt = stmt.where(assignments.c.plant_id == plant_id)
        result = self.db.execute(stmt.values(vehicle_id=None, assigned_date=date.today()))
        return result.rowcount > 0

    def get_assignment(self, driver_id: int, plant_id: int | None = None) -> dict | None:
        if not self.caps.has_assignments:
            return None
        assignments = self.caps.table("assignments")
        stmt = select(
            assignments.c.vehicle_id, assignments.c.plant_id, assignments.c.assigned_date
        ).where(assignments.c.driver_id == driver_id)
        if plant_id:
            stmt = stmt.where(assignments.c.plant_id == plant_id)
        row = self.db.execute(stmt).first()
        return dict(row._mapping) if row else None
