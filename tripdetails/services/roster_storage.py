"""Storage strategies for trip rosters.

A trip's drivers, helpers and customers have lived in different places over the
schema's history: junction tables, a legacy single-helper table, and
comma-delimited text columns on ``trips``. Each class here hides one of those
shapes behind the same interface so the repository never branches on schema.
Strategies are chosen once by the schema probe.
"""
from sqlalchemy import Table, delete, exists, false, insert, literal, or_, select, update, String
from sqlalchemy.orm import Session


def parse_id_csv(value) -> list[int]:
    ids = []
    for part in str(value or "").split(","):
        part = part.strip()
        if part.isdigit() and int(part) > 0 and int(part) not in ids:
            ids.append(int(part))
    return ids


# --- People (drivers / helpers) ---

class PersonLinkStore:
    """No storage available: reads are empty and writes are dropped."""

    name = "none"
    multi = False

    def load(self, db: Session, trip_ids: list[int]) -> dict[int, list[int]]:
        return {}

    def add(self, db: Session, trip_id: int, person_ids: list[int]) -> None:
        pass

    def remove(self, db: Session, trip_id: int, person_ids: list[int]) -> None:
        pass

    def clear(self, db: Session, trip_id: int) -> None:
        pass

    def stored_ids(self, person_ids: list[int]) -> list[int]:
        """The subset of ``person_ids`` this strategy is able to keep."""
        return list(person_ids) if self.multi else list(person_ids[:1])

    def replace(self, db: Session, trip_id: int, person_ids: list[int]) -> None:
        """Make the stored roster equal ``person_ids`` by set difference."""
        current = self.load(db, [trip_id]).get(trip_id, [])
        to_add = [p for p in person_ids if p not in current]
        to_remove = [p for p in current if p not in person_ids]
        if to_add:
            self.add(db, trip_id, to_add)
        if to_remove:
            self.remove(db, trip_id, to_remove)

    def filter_clause(self, trips: Table, person_ids: list[int]):
        # nothing is stored, so no trip can match a person filter
        return false()


class JunctionLinkStore(PersonLinkStore):
    """One row per (trip, person) in a junction table such as ``trip_drivers``."""

    multi = True

    def __init__(self, table: Table, person_column: str):
        self.table = table
        self.person_col = table.c[person_column]
        self.name = f"table:{table.name}"

    def load(self, db, trip_ids):
        if not trip_ids:
            return {}
        rows = db.execute(
            select(self.table.c.trip_id, self.person_col)
            .where(self.table.c.trip_id.in_(trip_ids))
            .order_by(self.table.c.trip_id, self.person_col)
        ).all()
        out: dict[int, list[int]] = {}
        for trip_id, person_id in rows:
            out.setdefault(int(trip_id), []).append(int(person_id))
        return out

    def add(self, db, trip_id, person_ids):
        if not person_ids:
            return
        db.execute(
            insert(self.table),
            [{"trip_id": trip_id, self.person_col.key: pid} for pid in person_ids],
        )

    def remove(self, db, trip_id, person_ids):
        db.execute(
            delete(self.table).where(
                self.table.c.trip_id == trip_id,
                self.person_col.in_(person_ids),
            )
        )

    def clear(self, db, trip_id):
        db.execute(delete(self.table).where(self.table.c.trip_id == trip_id))

    def filter_clause(self, trips, person_ids):
        return exists().where(
            self.table.c.trip_id == trips.c.id,
            self.person_col.in_(person_ids),
        )


class SingleJunctionLinkStore(JunctionLinkStore):
    """Legacy ``trip_helper`` table: only the first person of a roster is kept."""

    multi = False

    def load(self, db, trip_ids):
        loaded = super().load(db, trip_ids)
        return {trip_id: ids[:1] for trip_id, ids in loaded.items()}

    def add(self, db, trip_id, person_ids):
        if not person_ids or self.load(db, [trip_id]).get(trip_id):
            return
        super().add(db, trip_id, person_ids[:1])

    def replace(self, db, trip_id, person_ids):
        self.clear(db, trip_id)
        if person_ids:
            super().add(db, trip_id, person_ids[:1])


class TextLinkStore(PersonLinkStore):
    """Comma-delimited ids in a text column of ``trips`` (e.g. ``helper_text``)."""

    multi = True

    def __init__(self, trips: Table, column: str):
        self.trips = trips
        self.column = trips.c[column]
        self.name = f"column:{trips.name}.{column}"

    def load(self, db, trip_ids):
        if not trip_ids:
            return {}
        rows = db.execute(
            select(self.trips.c.id, self.column).where(self.trips.c.id.in_(trip_ids))
        ).all()
        return {int(trip_id): parse_id_csv(value) for trip_id, value in rows if parse_id_csv(value)}

    def _write(self, db, trip_id, person_ids):
        value = ",".join(str(p) for p in person_ids) or None
        db.execute(
            update(self.trips).where(self.trips.c.id == trip_id).values({self.column.key: value})
        )

    def add(self, db, trip_id, person_ids):
        current = self.load(db, [trip_id]).get(trip_id, [])
        self._write(db, trip_id, current + [p for p in person_ids if p not in current])

    def remove(self, db, trip_id, person_ids):
        current = self.load(db, [trip_id]).get(trip_id, [])
        self._write(db, trip_id, [p for p in current if p not in person_ids])

    def replace(self, db, trip_id, person_ids):
        self._write(db, trip_id, list(person_ids))

    def clear(self, db, trip_id):
        self._write(db, trip_id, [])

    def filter_clause(self, trips, person_ids):
        padded = literal(",", type_=String) + self.column + literal(",", type_=String)
        return or_(*[padded.like(f"%,{pid},%") for pid in person_ids])


# --- Customers ---

class CustomerNameStore:
    """No customer storage available."""

    name = "none"

    def load(self, db: Session, trip_ids: list[int]) -> dict[int, list[str]]:
        return {}

    def append(self, db: Session, trip_id: int, names: list[str]) -> None:
        pass

    def replace(self, db: Session, trip_id: int, names: list[str]) -> None:
        pass

    def clear(self, db: Session, trip_id: int) -> None:
        pass


class TableCustomerStore(CustomerNameStore):
    """Ordered rows in ``trip_customers``."""

    def __init__(self, table: Table, name_column: str):
        self.table = table
        self.name_col = table.c[name_column]
        self.name = f"table:{table.name}"

    def load(self, db, trip_ids):
        if not trip_ids:
            return {}
        order = self.table.c.id if "id" in self.table.c else self.name_col
        rows = db.execute(
            select(self.table.c.trip_id, self.name_col)
            .where(self.table.c.trip_id.in_(trip_ids))
            .order_by(self.table.c.trip_id, order)
        ).all()
        out: dict[int, list[str]] = {}
        for trip_id, name in rows:
            out.setdefault(int(trip_id), []).append(name)
        return out

    def append(self, db, trip_id, names):
        if names:
            db.execute(
                insert(self.table),
                [{"trip_id": trip_id, self.name_col.key: n} for n in names],
            )

    def replace(self, db, trip_id, names):
        self.clear(db, trip_id)
        self.append(db, trip_id, names)

    def clear(self, db, trip_id):
        db.execute(delete(self.table).where(self.table.c.trip_id == trip_id))


class TextCustomerStore(CustomerNameStore):
    """Customer names joined by ", " in ``trips.customers_text``."""

    def __init__(self, trips: Table, column: str):
        self.trips = trips
        self.column = trips.c[column]
        self.name = f"column:{trips.name}.{column}"

    def load(self, db, trip_ids):
        if not trip_ids:
            return {}
        rows = db.execute(
            select(self.trips.c.id, self.column).where(self.trips.c.id.in_(trip_ids))
        ).all()
        out = {}
        for trip_id, value in rows:
            names = [n.strip() for n in str(value or "").split(",") if n.strip()]
            if names:
                out[int(trip_id)] = names
        return out

    def append(self, db, trip_id, names):
        current = self.load(db, [trip_id]).get(trip_id, [])
        self.replace(db, trip_id, current + list(names))

    def replace(self, db, trip_id, names):
        db.execute(
            update(self.trips)
            .where(self.trips.c.id == trip_id)
            .values({self.column.key: ", ".join(names) or None})
        )

    def clear(self, db, trip_id):
        self.replace(db, trip_id, [])
