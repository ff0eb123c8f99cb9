from datetime import date

from tripdetails.models import Assignment, AuditLog, Driver, Trip, TripCustomer, TripDriver, TripHelper
from tripdetails.services.trip_repository import ONGOING_CONFLICT, TripRepository

from tests.conftest import add_trip, trip_payload


class TestOpenTrip:
    def test_open_trip(self, client, db_session, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(
            fleet,
            driver_ids=[fleet["d1"].id, fleet["d2"].id],
            helper_ids=[fleet["h1"].id],
            customer_names=["Acme", " Globex "],
            note="Morning run",
        ), headers=driver_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["ok"] is True
        assert data["helper_id"] == fleet["h1"].id
        assert data["helper_ids"] == [fleet["h1"].id]

        trip = db_session.get(Trip, data["trip_id"])
        assert trip.status == "ongoing"
        assert trip.start_km == 1000
        assert trip.start_date == date(2026, 3, 2)
        assert trip.note == "Morning run"
        drivers = db_session.query(TripDriver).filter(TripDriver.trip_id == trip.id).all()
        assert {d.driver_id for d in drivers} == {fleet["d1"].id, fleet["d2"].id}
        customers = db_session.query(TripCustomer).filter(TripCustomer.trip_id == trip.id).all()
        assert [c.customer_name for c in customers] == ["Acme", "Globex"]

    def test_second_ongoing_trip_rejected(self, client, db_session, fleet, driver_headers):
        first = client.post("/api/trips", json=trip_payload(fleet), headers=driver_headers)
        assert first.status_code == 201

        second = client.post("/api/trips", json=trip_payload(
            fleet, start_km=2000, driver_ids=[fleet["d2"].id],
        ), headers=driver_headers)
        assert second.status_code == 409
        body = second.json()
        assert body["kind"] == "conflict"
        assert "already exists" in body["detail"]
        assert db_session.query(Trip).filter(Trip.vehicle_id == fleet["v1"].id).count() == 1

    def test_other_vehicle_unaffected(self, client, fleet, driver_headers):
        client.post("/api/trips", json=trip_payload(fleet), headers=driver_headers)
        resp = client.post("/api/trips", json=trip_payload(
            fleet, vehicle_id=fleet["v2"].id, driver_ids=[fleet["d2"].id],
        ), headers=driver_headers)
        assert resp.status_code == 201

    def test_duplicate_ids_collapsed(self, client, db_session, fleet, driver_headers):
        d1 = fleet["d1"].id
        resp = client.post("/api/trips", json=trip_payload(
            fleet, driver_ids=[d1, d1], customer_names=["Acme", "", "  "],
        ), headers=driver_headers)
        assert resp.status_code == 201
        trip_id = resp.json()["trip_id"]
        assert db_session.query(TripDriver).filter(TripDriver.trip_id == trip_id).count() == 1
        assert db_session.query(TripCustomer).filter(TripCustomer.trip_id == trip_id).count() == 1

    def test_legacy_helper_id_merged(self, client, db_session, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(
            fleet, helper_id=fleet["h2"].id, helper_ids=[fleet["h1"].id],
        ), headers=driver_headers)
        assert resp.status_code == 201
        assert resp.json()["helper_ids"] == [fleet["h1"].id, fleet["h2"].id]
        trip_id = resp.json()["trip_id"]
        assert db_session.query(TripHelper).filter(TripHelper.trip_id == trip_id).count() == 2

    def test_day_first_date_accepted(self, client, db_session, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, start_date="02/03/2026"), headers=driver_headers)
        assert resp.status_code == 201
        assert db_session.get(Trip, resp.json()["trip_id"]).start_date == date(2026, 3, 2)

    def test_open_is_audited(self, client, db_session, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet), headers=driver_headers)
        entry = db_session.query(AuditLog).filter(AuditLog.entity_type == "trip").one()
        assert entry.action == "create"
        assert entry.entity_id == resp.json()["trip_id"]
        assert entry.username == "testdriver"


class TestOdometerOnOpen:
    def test_start_equal_to_last_end_allowed(self, client, db_session, fleet, driver_headers):
        add_trip(db_session, fleet["v1"].id, start_km=500, end_km=1000)
        resp = client.post("/api/trips", json=trip_payload(fleet, start_km=1000), headers=driver_headers)
        assert resp.status_code == 201

    def test_start_below_last_end_rejected(self, client, db_session, fleet, driver_headers):
        add_trip(db_session, fleet["v1"].id, start_km=500, end_km=1000)
        resp = client.post("/api/trips", json=trip_payload(fleet, start_km=999), headers=driver_headers)
        assert resp.status_code == 409
        assert "1000" in resp.json()["detail"]
        assert db_session.query(Trip).count() == 1

    def test_first_trip_has_no_lower_bound(self, client, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, start_km=0), headers=driver_headers)
        assert resp.status_code == 201


class TestValidation:
    def test_missing_customers(self, client, db_session, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, customer_names=[]), headers=driver_headers)
        assert resp.status_code == 422
        body = resp.json()
        assert body["kind"] == "validation"
        assert body["fields"]["customer_cnt"] == 0
        assert db_session.query(Trip).count() == 0

    def test_missing_drivers(self, client, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, driver_ids=[]), headers=driver_headers)
        assert resp.status_code == 422
        assert resp.json()["fields"]["driver_ids_cnt"] == 0

    def test_missing_start_km(self, client, fleet, driver_headers):
        payload = trip_payload(fleet)
        del payload["start_km"]
        resp = client.post("/api/trips", json=payload, headers=driver_headers)
        assert resp.status_code == 422
        assert resp.json()["fields"]["start_km"] is None

    def test_negative_start_km(self, client, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, start_km=-5), headers=driver_headers)
        assert resp.status_code == 422

    def test_unknown_vehicle(self, client, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, vehicle_id=9999), headers=driver_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Vehicle not found"

    def test_unknown_driver(self, client, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(
            fleet, driver_ids=[fleet["d1"].id, 9999],
        ), headers=driver_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Driver not found: 9999"

    def test_unknown_helper(self, client, fleet, driver_headers):
        resp = client.post("/api/trips", json=trip_payload(fleet, helper_ids=[8888]), headers=driver_headers)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Helper not found: 8888"

    def test_requires_login(self, client, fleet):
        resp = client.post("/api/trips", json=trip_payload(fleet))
        assert resp.status_code == 401


class TestAssignmentSyncOnOpen:
    def test_roster_assigned_to_vehicle(self, client, db_session, fleet, driver_headers):
        client.post("/api/trips", json=trip_payload(
            fleet, driver_ids=[fleet["d1"].id], helper_ids=[fleet["h1"].id],
        ), headers=driver_headers)
        rows = {a.driver_id: a for a in db_session.query(Assignment).all()}
        assert rows[fleet["d1"].id].vehicle_id == fleet["v1"].id
        assert rows[fleet["h1"].id].vehicle_id == fleet["v1"].id
        assert rows[fleet["d1"].id].plant_id == fleet["north"].id
        assert rows[fleet["d1"].id].assigned_date == date.today()

    def test_latest_trip_wins(self, client, db_session, fleet, driver_headers):
        d1 = fleet["d1"].id
        client.post("/api/trips", json=trip_payload(fleet, driver_ids=[d1]), headers=driver_headers)
        client.post("/api/trips", json=trip_payload(
            fleet, vehicle_id=fleet["v3"].id, driver_ids=[d1],
        ), headers=driver_headers)

        rows = db_session.query(Assignment).filter(Assignment.driver_id == d1).all()
        assert len(rows) == 1
        assert rows[0].vehicle_id == fleet["v3"].id
        assert rows[0].plant_id == fleet["south"].id

    def test_plant_mirrored_on_person(self, client, db_session, fleet, driver_headers):
        client.post("/api/trips", json=trip_payload(
            fleet, vehicle_id=fleet["v3"].id, driver_ids=[fleet["d2"].id],
        ), headers=driver_headers)
        db_session.expire_all()
        assert db_session.get(Driver, fleet["d2"].id).plant_id == fleet["south"].id

    def test_failed_open_leaves_no_assignment(self, client, db_session, fleet, driver_headers):
        add_trip(db_session, fleet["v1"].id, start_km=500, end_km=1000)
        client.post("/api/trips", json=trip_payload(fleet, start_km=10), headers=driver_headers)
        assert db_session.query(Assignment).count() == 0


class TestOngoingDetection:
    def test_status_case_and_padding_ignored(self, client, db_session, fleet, driver_headers):
        older = add_trip(db_session, fleet["v1"].id, start_km=100, end_km=200)
        legacy = add_trip(db_session, fleet["v1"].id, start_km=900)
        legacy.status = " Ongoing "
        db_session.commit()

        resp = client.post("/api/trips", json=trip_payload(fleet), headers=driver_headers)
        assert resp.status_code == 409
        assert resp.json()["detail"] == ONGOING_CONFLICT
        assert db_session.query(Trip).count() == 2

        listing = client.get("/api/trips", params={"vehicle_id": fleet["v1"].id}, headers=driver_headers).json()
        assert [r["id"] for r in listing["rows"]] == [legacy.id, older.id]
        assert [r["status"] for r in listing["rows"]] == ["ongoing", "ended"]

    def test_unknown_status_falls_back_to_end_fields(self, client, db_session, fleet, driver_headers):
        trip = add_trip(db_session, fleet["v1"].id, start_km=900)
        trip.status = "paused"
        db_session.commit()

        resp = client.post("/api/trips", json=trip_payload(fleet), headers=driver_headers)
        assert resp.status_code == 409

    def test_index_race_reported_as_conflict(self, client, db_session, fleet, driver_headers, monkeypatch):
        first = client.post("/api/trips", json=trip_payload(fleet), headers=driver_headers)
        assert first.status_code == 201

        # a concurrent request that passed the pre-check before the first insert landed
        monkeypatch.setattr(TripRepository, "has_ongoing_trip", lambda self, vehicle_id: False)
        second = client.post("/api/trips", json=trip_payload(
            fleet, start_km=2000, driver_ids=[fleet["d2"].id], helper_ids=[fleet["h2"].id],
        ), headers=driver_headers)
        assert second.status_code == 409
        body = second.json()
        assert body["kind"] == "conflict"
        assert body["detail"] == ONGOING_CONFLICT

        first_id = first.json()["trip_id"]
        db_session.expire_all()
        assert [t.id for t in db_session.query(Trip).all()] == [first_id]
        for model in (TripDriver, TripHelper, TripCustomer):
            assert db_session.query(model).filter(model.trip_id != first_id).count() == 0
        assert db_session.query(Assignment).filter(
            Assignment.driver_id.in_([fleet["d2"].id, fleet["h2"].id])
        ).count() == 0
