from typing import Optional

from fastapi import APIRouter, Depends, Query

from tripdetails.auth import Identity, require_role
from tripdetails.context import TripContext, get_trip_context
from tripdetails.schemas import TripCreate, TripCreated, TripDetail, TripEnd, TripEnded, TripList, TripUpdate
from tripdetails.services.roster_storage import parse_id_csv
from tripdetails.services.trip_lifecycle import TripLifecycleController
from tripdetails.services.trip_repository import NewTrip, RosterChange

router = APIRouter(prefix="/api/trips", tags=["trips"])


@router.get("", response_model=TripList)
def list_trips(
    vehicle_id: int,
    driver_ids: Optional[str] = Query(None, description="Comma separated driver ids"),
    limit: Optional[int] = None,
    offset: int = 0,
    ctx: TripContext = Depends(get_trip_context),
):
    result = TripLifecycleController(ctx).list_for_vehicle(
        vehicle_id, parse_id_csv(driver_ids), limit=limit, offset=offset
    )
    return {"ok": True, **result}


@router.post("", response_model=TripCreated, status_code=201)
def create_trip(data: TripCreate, ctx: TripContext = Depends(get_trip_context)):
    result = TripLifecycleController(ctx).create(NewTrip(
        vehicle_id=data.vehicle_id,
        start_date=data.start_date,
        start_km=data.start_km,
        driver_ids=data.driver_ids,
        customer_names=data.customer_names,
        helper_ids=data.helper_ids,
        note=data.note,
        gps_lat=data.gps_lat,
        gps_lng=data.gps_lng,
    ))
    return {"ok": True, **result}


@router.get("/{trip_id}", response_model=TripDetail)
def get_trip(trip_id: int, ctx: TripContext = Depends(get_trip_context)):
    return {"ok": True, **TripLifecycleController(ctx).details(trip_id)}


@router.put("/{trip_id}")
def update_trip(trip_id: int, data: TripUpdate, ctx: TripContext = Depends(get_trip_context)):
    TripLifecycleController(ctx).update(trip_id, RosterChange(
        set_driver_ids=data.set_driver_ids,
        set_helper_ids=data.set_helper_ids,
        add_customer_names=data.add_customer_names,
        set_customer_names=data.set_customer_names,
        note=data.note,
    ))
    return {"ok": True}


@router.post("/{trip_id}/end", response_model=TripEnded)
def end_trip(trip_id: int, data: TripEnd, ctx: TripContext = Depends(get_trip_context)):
    result = TripLifecycleController(ctx).end(trip_id, data.end_date, data.end_km)
    return {"ok": True, **result}


@router.delete("/{trip_id}")
def delete_trip(
    trip_id: int,
    ctx: TripContext = Depends(get_trip_context),
    _identity: Identity = Depends(require_role("supervisor")),
):
    TripLifecycleController(ctx).delete(trip_id)
    return {"ok": True, "trip_id": trip_id}
