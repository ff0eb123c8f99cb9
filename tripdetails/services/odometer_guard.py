"""Odometer and date rules for opening and closing trips."""
from dataclasses import dataclass
from datetime import date

from tripdetails.errors import ConflictError


@dataclass
class TripReading:
    """The parts of a trip the close rules look at."""
    start_km: int
    start_date: date | None


def check_open(start_km: int, last_end_km: int | None) -> None:
    # Equality is allowed: a new trip may start where the last one ended.
    if last_end_km is not None and start_km < last_end_km:
        raise ConflictError(f"start km must be at least the last end km ({last_end_km})")


def check_close(trip: TripReading, end_km: int, end_date: date) -> None:
    if end_km <= trip.start_km:
        raise ConflictError(f"end km must be greater than start km ({trip.start_km})")
    if trip.start_date is not None and end_date < trip.start_date:
        raise ConflictError(
            f"end date ({end_date.isoformat()}) cannot be before start date ({trip.start_date.isoformat()})"
        )


class OdometerGuard:
    def __init__(self, repository):
        self.repository = repository

    def validate_open(self, vehicle_id: int, start_km: int) -> None:
        check_open(start_km, self.repository.last_end_km(vehicle_id))

    def validate_close(self, trip: TripReading, end_km: int, end_date: date) -> None:
        check_close(trip, end_km, end_date)
