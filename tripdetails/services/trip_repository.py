"""Reads and writes of trip rows and their roster links.

All statements run on the caller's session; committing or rolling back is the
lifecycle controller's job. Roster links go through the storage strategies
resolved by the schema probe, so this module never checks which tables exist
except for the optional ``trips`` columns it filters values against.
"""
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime

from sqlalchemy import and_, case, delete, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tripdetails.config import TRIP_LIST_DEFAULT_LIMIT, TRIP_LIST_MAX_LIMIT
from tripdetails.errors import ConflictError, NotFoundError, StorageError, ValidationError
from tripdetails.models import TRIP_STATUS_ENDED, TRIP_STATUS_ONGOING
from tripdetails.services.odometer_guard import OdometerGuard, TripReading
from tripdetails.services.schema_probe import SchemaCapabilities

logger = logging.getLogger(__name__)

LINK_TABLES = ("trip_drivers", "trip_helpers", "trip_helper", "trip_customers")
ONGOING_CONFLICT = "An ongoing trip already exists for this vehicle. Please end it first."
_ONGOING_VALUES = (TRIP_STATUS_ONGOING, "1")
_ENDED_VALUES = (TRIP_STATUS_ENDED, "0", "false")


def normalize_ids(values) -> list[int]:
    """Positive ints, duplicates collapsed, first-seen order kept."""
    ids = []
    for value in values or ():
        try:
            value = int(value)
        except (TypeError, ValueError):
            continue
        if value > 0 and value not in ids:
            ids.append(value)
    return ids


def normalize_names(values) -> list[str]:
    return [str(v).strip() for v in values or () if v is not None and str(v).strip()]


@dataclass
class TripRecord:
    id: int
    vehicle_id: int
    start_date: date | None
    start_km: int
    end_date: date | None
    end_km: int | None
    status: str
    note: str | None = None
    gps_lat: float | None = None
    gps_lng: float | None = None

    @property
    def is_ongoing(self) -> bool:
        return self.status == TRIP_STATUS_ONGOING

    @property
    def total_km(self) -> int | None:
        if self.end_km is None or self.start_km is None:
            return None
        return self.end_km - self.start_km


@dataclass
class RosterChange:
    set_driver_ids: list[int] | None = None
    set_helper_ids: list[int] | None = None
    add_customer_names: list[str] | None = None
    set_customer_names: list[str] | None = None
    note: str | None = None


@dataclass
class NewTrip:
    vehicle_id: int
    start_date: date
    start_km: int
    driver_ids: list[int]
    customer_names: list[str]
    helper_ids: list[int] = field(default_factory=list)
    note: str | None = None
    gps_lat: float | None = None
    gps_lng: float | None = None


def prepare_new_trip(trip: NewTrip) -> NewTrip:
    """Normalize a new trip and check required fields before any write."""
    prepared = replace(
        trip,
        driver_ids=normalize_ids(trip.driver_ids),
        helper_ids=normalize_ids(trip.helper_ids),
        customer_names=normalize_names(trip.customer_names),
        note=(trip.note or "").strip(),
    )
    if (
        not prepared.vehicle_id or prepared.vehicle_id <= 0
        or prepared.start_date is None
        or prepared.start_km is None
        or not prepared.driver_ids
        or not prepared.customer_names
    ):
        raise ValidationError("Required fields missing", fields={
            "vehicle_id": prepared.vehicle_id,
            "start_date": prepared.start_date.isoformat() if prepared.start_date else None,
            "start_km": prepared.start_km,
            "driver_ids_cnt": len(prepared.driver_ids),
            "customer_cnt": len(prepared.customer_names),
        })
    if prepared.start_km < 0:
        raise ValidationError("start_km must not be negative")
    return prepared


def prepare_roster_change(change: RosterChange) -> RosterChange:
    """Normalize a roster change; a trip must keep at least one driver and one customer."""
    prepared = RosterChange(
        set_driver_ids=None if change.set_driver_ids is None else normalize_ids(change.set_driver_ids),
        set_helper_ids=None if change.set_helper_ids is None else normalize_ids(change.set_helper_ids),
        add_customer_names=None if change.add_customer_names is None else normalize_names(change.add_customer_names),
        set_customer_names=None if change.set_customer_names is None else normalize_names(change.set_customer_names),
        note=None if change.note is None else change.note.strip(),
    )
    if prepared.set_driver_ids is not None and not prepared.set_driver_ids:
        raise ValidationError("set_driver_ids must contain at least one driver")
    if prepared.set_customer_names is not None and not prepared.set_customer_names:
        raise ValidationError("set_customer_names must contain at least one customer")
    return prepared


class TripRepository:
    def __init__(self, db: Session, caps: SchemaCapabilities):
        self.db = db
        self.caps = caps
        self.guard = OdometerGuard(self)

    @property
    def trips(self):
        return self.caps.trips

    # --- helpers ---

    def _known_columns(self, values: dict) -> dict:
        return {k: v for k, v in values.items() if k in self.trips.c}

    def _ongoing_condition(self):
        """SQL form of ``_status_of``: the two must agree on every row."""
        c = self.trips.c
        no_end = and_(*[c[name].is_(None) for name in ("end_km", "end_date") if name in c])
        if not self.caps.trips_have_status:
            return no_end
        status = func.lower(func.trim(func.coalesce(c.status, "")))
        return or_(status.in_(_ONGOING_VALUES), and_(status.not_in(_ENDED_VALUES), no_end))

    def _status_of(self, row) -> str:
        raw = row.get("status")
        if raw is not None:
            value = str(raw).strip().lower()
            if value in _ONGOING_VALUES:
                return TRIP_STATUS_ONGOING
            if value in _ENDED_VALUES:
                return TRIP_STATUS_ENDED
        if row.get("end_km") is None and row.get("end_date") is None:
            return TRIP_STATUS_ONGOING
        return TRIP_STATUS_ENDED

    def _record(self, row) -> TripRecord:
        return TripRecord(
            id=int(row["id"]),
            vehicle_id=int(row["vehicle_id"]),
            start_date=row.get("start_date"),
            start_km=int(row.get("start_km") or 0),
            end_date=row.get("end_date"),
            end_km=None if row.get("end_km") is None else int(row["end_km"]),
            status=self._status_of(row),
            note=row.get("note"),
            gps_lat=row.get("gps_lat"),
            gps_lng=row.get("gps_lng"),
        )

    # --- reference lookups ---

    def vehicle_plant(self, vehicle_id: int) -> int:
        vehicles = self.caps.table("vehicles")
        row = self.db.execute(
            select(vehicles.c.id, vehicles.c.plant_id).where(vehicles.c.id == vehicle_id)
        ).first()
        if row is None:
            raise NotFoundError("Vehicle not found")
        if row.plant_id is None:
            raise NotFoundError("Vehicle plant not found")
        return int(row.plant_id)

    def ensure_people_exist(self, person_ids: list[int], label: str = "Driver") -> None:
        if not person_ids:
            return
        drivers = self.caps.table("drivers")
        found = set(self.db.execute(
            select(drivers.c.id).where(drivers.c.id.in_(person_ids))
        ).scalars())
        missing = [pid for pid in person_ids if pid not in found]
        if missing:
            raise NotFoundError(f"{label} not found: {', '.join(str(m) for m in missing)}")

    def person_names(self, person_ids) -> dict[int, str]:
        person_ids = list(person_ids)
        if not person_ids:
            return {}
        drivers = self.caps.table("drivers")
        name_col = drivers.c[self.caps.driver_name_column]
        rows = self.db.execute(
            select(drivers.c.id, name_col).where(drivers.c.id.in_(person_ids))
        ).all()
        return {int(pid): str(name) for pid, name in rows}

    def last_end_km(self, vehicle_id: int) -> int | None:
        if "end_km" not in self.trips.c:
            return None
        value = self.db.execute(
            select(self.trips.c.end_km)
            .where(self.trips.c.vehicle_id == vehicle_id, self.trips.c.end_km.is_not(None))
            .order_by(self.trips.c.id.desc())
            .limit(1)
        ).scalar()
        return None if value is None else int(value)

    def has_ongoing_trip(self, vehicle_id: int) -> bool:
        found = self.db.execute(
            select(self.trips.c.id)
            .where(self.trips.c.vehicle_id == vehicle_id, self._ongoing_condition())
            .limit(1)
        ).first()
        return found is not None

    def fetch_trip(self, trip_id: int) -> TripRecord | None:
        row = self.db.execute(
            select(self.trips).where(self.trips.c.id == trip_id)
        ).mappings().first()
        return self._record(row) if row else None

    def require_trip(self, trip_id: int) -> TripRecord:
        trip = self.fetch_trip(trip_id)
        if trip is None:
            raise NotFoundError("Trip not found")
        return trip

    def require_ongoing_trip(self, trip_id: int) -> TripRecord:
        trip = self.require_trip(trip_id)
        if not trip.is_ongoing:
            raise ConflictError("Trip is not ongoing")
        return trip

    # --- operations ---

    def create_trip(self, new_trip: NewTrip) -> int:
        trip = prepare_new_trip(new_trip)
        values = self._known_columns({
            "vehicle_id": trip.vehicle_id,
            "start_date": trip.start_date,
            "start_km": trip.start_km,
            "status": TRIP_STATUS_ONGOING,
            "note": trip.note,
            "gps_lat": trip.gps_lat,
            "gps_lng": trip.gps_lng,
            "started_at": datetime.utcnow(),
        })
        try:
            result = self.db.execute(insert(self.trips).values(values))
        except IntegrityError as exc:
            # uq_trips_vehicle_ongoing lost a race with another request
            raise ConflictError(ONGOING_CONFLICT) from exc
        trip_id = int(result.inserted_primary_key[0])

        self.caps.driver_store.add(self.db, trip_id, trip.driver_ids)
        self.caps.customer_store.append(self.db, trip_id, trip.customer_names)
        if trip.helper_ids:
            helper_store = self.caps.helper_store
            helper_store.add(self.db, trip_id, helper_store.stored_ids(trip.helper_ids))
        return trip_id

    def get_trip(self, trip_id: int) -> dict:
        trip = self.require_trip(trip_id)
        driver_ids = self.caps.driver_store.load(self.db, [trip_id]).get(trip_id, [])
        helper_ids = self.caps.helper_store.load(self.db, [trip_id]).get(trip_id, [])
        customers = self.caps.customer_store.load(self.db, [trip_id]).get(trip_id, [])
        names = self.person_names(driver_ids + helper_ids)
        return {
            "id": trip.id,
            "vehicle_id": trip.vehicle_id,
            "start_date": trip.start_date,
            "start_km": trip.start_km,
            "end_date": trip.end_date,
            "end_km": trip.end_km,
            "total_km": trip.total_km,
            "status": trip.status,
            "note": trip.note,
            "gps_lat": trip.gps_lat,
            "gps_lng": trip.gps_lng,
            "driver_ids": driver_ids,
            "drivers": [names.get(d, f"Driver #{d}") for d in driver_ids],
            "helper_id": helper_ids[0] if helper_ids else None,
            "helper_ids": helper_ids,
            "helpers": [names.get(h, f"Helper #{h}") for h in helper_ids],
            "customers": customers,
        }

    def list_trips_for_vehicle(
        self,
        vehicle_id: int,
        driver_ids_filter: list[int] | None = None,
        limit: int = TRIP_LIST_DEFAULT_LIMIT,
        offset: int = 0,
    ) -> tuple[list[dict], bool]:
        if limit is None or limit <= 0:
            limit = TRIP_LIST_DEFAULT_LIMIT
        limit = min(limit, TRIP_LIST_MAX_LIMIT)
        offset = max(offset or 0, 0)

        stmt = select(self.trips).where(self.trips.c.vehicle_id == vehicle_id)
        driver_ids_filter = normalize_ids(driver_ids_filter)
        if driver_ids_filter:
            stmt = stmt.where(self.caps.driver_store.filter_clause(self.trips, driver_ids_filter))
        stmt = (
            stmt.order_by(case((self._ongoing_condition(), 1), else_=0).desc(), self.trips.c.id.desc())
            .limit(limit + 1)
            .offset(offset)
        )
        records = [self._record(row) for row in self.db.execute(stmt).mappings()]
        has_more = len(records) > limit
        records = records[:limit]

        trip_ids = [r.id for r in records]
        drivers = self.caps.driver_store.load(self.db, trip_ids)
        helpers = self.caps.helper_store.load(self.db, trip_ids)
        customers = self.caps.customer_store.load(self.db, trip_ids)
        people = {pid for ids in list(drivers.values()) + list(helpers.values()) for pid in ids}
        names = self.person_names(people)

        rows = []
        for r in records:
            driver_ids = drivers.get(r.id, [])
            helper_ids = helpers.get(r.id, [])
            helper_names = sorted(names.get(h, f"Helper #{h}") for h in helper_ids)
            rows.append({
                "id": r.id,
                "vehicle_id": r.vehicle_id,
                "start_date": r.start_date,
                "start_km": r.start_km,
                "end_date": r.end_date,
                "end_km": r.end_km,
                "total_km": r.total_km,
                "status": r.status,
                "driver_ids": driver_ids,
                "drivers": ", ".join(sorted(names.get(d, f"Driver #{d}") for d in driver_ids)),
                "helper_ids": helper_ids,
                "helpers": ", ".join(helper_names),
                "customers": ", ".join(customers.get(r.id, [])),
            })
        return rows, has_more

    def update_roster(self, trip_id: int, change: RosterChange) -> TripRecord:
        """Apply a prepared roster change to an ongoing trip."""
        trip = self.require_ongoing_trip(trip_id)

        if change.note is not None and "note" in self.trips.c:
            self.db.execute(
                update(self.trips).where(self.trips.c.id == trip_id).values(note=change.note)
            )

        if change.set_helper_ids is not None:
            helper_store = self.caps.helper_store
            helper_store.replace(self.db, trip_id, helper_store.stored_ids(change.set_helper_ids))

        customer_store = self.caps.customer_store
        if change.set_customer_names:
            customer_store.replace(self.db, trip_id, change.set_customer_names)
        elif change.add_customer_names:
            existing = {
                name.strip().lower()
                for name in customer_store.load(self.db, [trip_id]).get(trip_id, [])
            }
            to_add = []
            for name in change.add_customer_names:
                key = name.lower()
                if key in existing:
                    continue
                existing.add(key)
                to_add.append(name)
            customer_store.append(self.db, trip_id, to_add)

        if change.set_driver_ids:
            self.caps.driver_store.replace(self.db, trip_id, change.set_driver_ids)

        return trip

    def end_trip(self, trip_id: int, end_date: date, end_km: int) -> tuple[int, int]:
        trip = self.require_trip(trip_id)
        if not trip.is_ongoing:
            raise ConflictError("Trip already ended")
        self.guard.validate_close(TripReading(trip.start_km, trip.start_date), end_km, end_date)

        values = self._known_columns({
            "end_date": end_date,
            "end_km": end_km,
            "status": TRIP_STATUS_ENDED,
            "ended_at": datetime.utcnow(),
        })
        if "end_km" not in values:
            raise StorageError("No suitable columns to record the trip end")
        self.db.execute(update(self.trips).where(self.trips.c.id == trip_id).values(values))
        return trip_id, end_km - trip.start_km

    def delete_trip(self, trip_id: int) -> None:
        for name in LINK_TABLES:
            if self.caps.table_exists(name):
                link = self.caps.table(name)
                self.db.execute(delete(link).where(link.c.trip_id == trip_id))
        result = self.db.execute(delete(self.trips).where(self.trips.c.id == trip_id))
        if result.rowcount <= 0:
            raise NotFoundError("Trip not found or already deleted")
