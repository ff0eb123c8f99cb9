"""Driver self-service: read or change the vehicle the logged-in driver is on."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select

from tripdetails.auth import Identity, require_driver
from tripdetails.context import TripContext, get_trip_context
from tripdetails.errors import NotFoundError, ValidationError
from tripdetails.schemas import DriverVehicleOut, DriverVehicleUpdate
from tripdetails.services.assignment_sync import AssignmentSynchronizer
from tripdetails.services.audit_service import log_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/driver-vehicle", tags=["driver-vehicle"])


def _vehicle(ctx: TripContext, vehicle_id: int):
    vehicles = ctx.caps.table("vehicles")
    columns = [vehicles.c.id, vehicles.c.plant_id]
    if "vehicle_no" in vehicles.c:
        columns.append(vehicles.c.vehicle_no)
    row = ctx.db.execute(select(*columns).where(vehicles.c.id == vehicle_id)).mappings().first()
    return dict(row) if row else None


@router.get("", response_model=DriverVehicleOut)
def get_driver_vehicle(plant_id: Optional[int] = None, ctx: TripContext = Depends(get_trip_context)):
    if not ctx.identity.is_driver:
        return {"ok": True}

    assignment = AssignmentSynchronizer(ctx.db, ctx.caps).get_assignment(ctx.identity.driver_id, plant_id)
    if not assignment or assignment["vehicle_id"] is None:
        return {"ok": True, "plant_id": assignment["plant_id"] if assignment else None}

    vehicle = _vehicle(ctx, assignment["vehicle_id"]) or {}
    return {
        "ok": True,
        "vehicle_id": assignment["vehicle_id"],
        "vehicle_no": vehicle.get("vehicle_no"),
        "plant_id": assignment["plant_id"],
        "assigned_date": assignment["assigned_date"],
    }


@router.post("", response_model=DriverVehicleOut)
def set_driver_vehicle(
    data: DriverVehicleUpdate,
    ctx: TripContext = Depends(get_trip_context),
    identity: Identity = Depends(require_driver),
):
    driver_id = identity.driver_id
    sync = AssignmentSynchronizer(ctx.db, ctx.caps)

    if not data.vehicle_id or data.vehicle_id <= 0:
        with ctx.transaction():
            sync.clear_assignment(driver_id, data.plant_id)
            log_action(ctx.db, ctx.identity, "assign", "assignment", driver_id, "Cleared own vehicle")
        logger.info("Driver %s cleared their vehicle", driver_id)
        return {"ok": True, "plant_id": data.plant_id}

    with ctx.transaction():
        vehicle = _vehicle(ctx, data.vehicle_id)
        if vehicle is None:
            raise NotFoundError("Vehicle not found")
        if data.plant_id and vehicle["plant_id"] != data.plant_id:
            raise ValidationError("Vehicle does not belong to this plant", fields={
                "vehicle_id": data.vehicle_id,
                "plant_id": data.plant_id,
            })
        plant_id = vehicle["plant_id"]
        sync.upsert_assignment(driver_id, data.vehicle_id, plant_id)
        if plant_id is not None:
            sync.mirror_plant([driver_id], plant_id)
        log_action(
            ctx.db, ctx.identity, "assign", "assignment", driver_id,
            f"Set own vehicle to {vehicle.get('vehicle_no') or data.vehicle_id}",
        )

    logger.info("Driver %s assigned to vehicle %s", driver_id, data.vehicle_id)
    return {
        "ok": True,
        "vehicle_id": data.vehicle_id,
        "vehicle_no": vehicle.get("vehicle_no"),
        "plant_id": plant_id,
    }
