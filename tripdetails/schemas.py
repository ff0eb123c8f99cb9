import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

_DMY = re.compile(r"^(\d{2})[-/](\d{2})[-/](\d{4})$")


def _coerce_date(value):
    """Accept YYYY-MM-DD as well as the DD-MM-YYYY / DD/MM/YYYY the mobile app sends."""
    if isinstance(value, str):
        value = value.strip()
        match = _DMY.match(value)
        if match:
            day, month, year = match.groups()
            return f"{year}-{month}-{day}"
        if value == "":
            return None
    return value


# --- Auth ---
class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    username: str
    full_name: str
    role: str
    driver_id: Optional[int] = None
    active: bool
    created_at: datetime


# --- Trips ---
class TripCreate(BaseModel):
    vehicle_id: Optional[int] = None
    start_date: Optional[date] = None
    start_km: Optional[int] = None
    driver_ids: list[int] = []
    helper_ids: list[int] = []
    helper_id: Optional[int] = None  # legacy single helper
    customer_names: list[str] = []
    note: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, value):
        return _coerce_date(value)

    @model_validator(mode="after")
    def merge_legacy_helper(self):
        if self.helper_id and self.helper_id > 0 and self.helper_id not in self.helper_ids:
            self.helper_ids = [*self.helper_ids, self.helper_id]
        return self


class TripUpdate(BaseModel):
    set_driver_ids: Optional[list[int]] = None
    set_helper_ids: Optional[list[int]] = None
    helper_id: Optional[int] = None  # legacy: present with null/0 clears helpers
    add_customer_names: Optional[list[str]] = None
    set_customer_names: Optional[list[str]] = None
    note: Optional[str] = None

    @field_validator("helper_id", mode="before")
    @classmethod
    def blank_helper_is_clear(cls, value):
        return 0 if value == "" else value

    @model_validator(mode="after")
    def legacy_helper_to_set(self):
        if self.set_helper_ids is None and "helper_id" in self.model_fields_set:
            self.set_helper_ids = [self.helper_id] if self.helper_id and self.helper_id > 0 else []
        return self


class TripEnd(BaseModel):
    end_date: date
    end_km: int

    @field_validator("end_date", mode="before")
    @classmethod
    def parse_end_date(cls, value):
        return _coerce_date(value)

    @field_validator("end_km", mode="before")
    @classmethod
    def strip_thousands_separator(cls, value):
        if isinstance(value, str):
            return value.replace(",", "").strip()
        return value


class TripCreated(BaseModel):
    ok: bool = True
    trip_id: int
    helper_id: Optional[int] = None
    helper_ids: list[int] = []


class TripEnded(BaseModel):
    ok: bool = True
    trip_id: int
    total_km: int


class TripSummary(BaseModel):
    id: int
    vehicle_id: int
    start_date: Optional[date] = None
    start_km: int
    end_date: Optional[date] = None
    end_km: Optional[int] = None
    total_km: Optional[int] = None
    status: str
    driver_ids: list[int] = []
    drivers: str = ""
    helper_ids: list[int] = []
    helpers: str = ""
    customers: str = ""


class TripList(BaseModel):
    ok: bool = True
    rows: list[TripSummary]
    has_more: bool


class TripDetail(BaseModel):
    ok: bool = True
    id: int
    vehicle_id: int
    start_date: Optional[date] = None
    start_km: int
    end_date: Optional[date] = None
    end_km: Optional[int] = None
    total_km: Optional[int] = None
    status: str
    note: Optional[str] = None
    gps_lat: Optional[float] = None
    gps_lng: Optional[float] = None
    driver_ids: list[int] = []
    drivers: list[str] = []
    helper_id: Optional[int] = None
    helper_ids: list[int] = []
    helpers: list[str] = []
    customers: list[str] = []


# --- Driver vehicle assignment ---
class DriverVehicleUpdate(BaseModel):
    vehicle_id: Optional[int] = None  # null or <= 0 clears the assignment
    plant_id: Optional[int] = None


class DriverVehicleOut(BaseModel):
    ok: bool = True
    vehicle_id: Optional[int] = None
    vehicle_no: Optional[str] = None
    plant_id: Optional[int] = None
    assigned_date: Optional[date] = None
