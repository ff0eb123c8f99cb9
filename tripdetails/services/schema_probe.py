"""Detects which optional trip tables and columns the database has.

Deployments run against several schema generations (single-helper table,
text fallback columns, no assignments table, ...). The probe inspects the
database once, reflects the trip tables that exist, and resolves the storage
strategy for every roster kind. The resulting ``SchemaCapabilities`` snapshot
is immutable and shared by every request.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import MetaData, Table, inspect
from sqlalchemy.engine import Engine

from tripdetails.services.roster_storage import (
    CustomerNameStore,
    JunctionLinkStore,
    PersonLinkStore,
    SingleJunctionLinkStore,
    TableCustomerStore,
    TextCustomerStore,
    TextLinkStore,
)

logger = logging.getLogger(__name__)

TRIP_TABLES = (
    "plants",
    "vehicles",
    "drivers",
    "trips",
    "trip_drivers",
    "trip_helpers",
    "trip_helper",
    "trip_customers",
    "assignments",
)
REQUIRED_TABLES = ("vehicles", "drivers", "trips")
DRIVER_NAME_COLUMNS = ("name", "driver_name", "full_name")
CUSTOMER_NAME_COLUMNS = ("customer_name", "name", "title")


class SchemaNotSupported(RuntimeError):
    pass


@dataclass(frozen=True)
class SchemaCapabilities:
    tables: dict[str, Table]
    driver_store: PersonLinkStore
    helper_store: PersonLinkStore
    customer_store: CustomerNameStore
    driver_name_column: str = "name"

    def table_exists(self, name: str) -> bool:
        return name in self.tables

    def column_exists(self, table: str, column: str) -> bool:
        return table in self.tables and column in self.tables[table].c

    def table(self, name: str) -> Table:
        return self.tables[name]

    @property
    def trips(self) -> Table:
        return self.tables["trips"]

    @property
    def has_assignments(self) -> bool:
        return self.table_exists("assignments")

    @property
    def trips_have_status(self) -> bool:
        return self.column_exists("trips", "status")

    @property
    def drivers_have_plant(self) -> bool:
        return self.column_exists("drivers", "plant_id")

    def describe(self) -> dict:
        return {
            "tables": sorted(self.tables),
            "driver_storage": self.driver_store.name,
            "helper_storage": self.helper_store.name,
            "helper_multi": self.helper_store.multi,
            "customer_storage": self.customer_store.name,
            "assignments": self.has_assignments,
            "trip_status_column": self.trips_have_status,
            "driver_plant_column": self.drivers_have_plant,
            "driver_name_column": self.driver_name_column,
        }


class SchemaCapabilityProbe:
    def __init__(self, bind: Engine):
        self.bind = bind

    def table_exists(self, name: str) -> bool:
        return inspect(self.bind).has_table(name)

    def column_exists(self, table: str, column: str) -> bool:
        if not self.table_exists(table):
            return False
        return any(c["name"] == column for c in inspect(self.bind).get_columns(table))

    def capabilities(self) -> SchemaCapabilities:
        present = [name for name in TRIP_TABLES if self.table_exists(name)]
        missing = [name for name in REQUIRED_TABLES if name not in present]
        if missing:
            raise SchemaNotSupported(f"Required tables missing: {', '.join(missing)}")

        metadata = MetaData()
        metadata.reflect(bind=self.bind, only=present)
        tables = {name: metadata.tables[name] for name in present}
        trips = tables["trips"]

        caps = SchemaCapabilities(
            tables=tables,
            driver_store=self._driver_store(tables, trips),
            helper_store=self._helper_store(tables, trips),
            customer_store=self._customer_store(tables, trips),
            driver_name_column=_first_column(tables["drivers"], DRIVER_NAME_COLUMNS) or "id",
        )
        logger.info("Schema capabilities resolved: %s", caps.describe())
        return caps

    @staticmethod
    def _driver_store(tables, trips) -> PersonLinkStore:
        if "trip_drivers" in tables:
            return JunctionLinkStore(tables["trip_drivers"], "driver_id")
        if "drivers_text" in trips.c:
            return TextLinkStore(trips, "drivers_text")
        logger.warning("No driver roster storage found; driver links will not be kept")
        return PersonLinkStore()

    @staticmethod
    def _helper_store(tables, trips) -> PersonLinkStore:
        if "trip_helpers" in tables:
            return JunctionLinkStore(tables["trip_helpers"], "helper_id")
        if "trip_helper" in tables:
            return SingleJunctionLinkStore(tables["trip_helper"], "helper_id")
        if "helper_text" in trips.c:
            return TextLinkStore(trips, "helper_text")
        return PersonLinkStore()

    @staticmethod
    def _customer_store(tables, trips) -> CustomerNameStore:
        if "trip_customers" in tables:
            name_column = _first_column(tables["trip_customers"], CUSTOMER_NAME_COLUMNS)
            if name_column:
                return TableCustomerStore(tables["trip_customers"], name_column)
        if "customers_text" in trips.c:
            return TextCustomerStore(trips, "customers_text")
        logger.warning("No customer storage found; customer names will not be kept")
        return CustomerNameStore()


def _first_column(table: Table, candidates) -> str | None:
    for name in candidates:
        if name in table.c:
            return name
    return None
