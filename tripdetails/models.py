from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, Float, ForeignKey, Text,
    UniqueConstraint, Index, text,
)
from sqlalchemy.orm import relationship

from tripdetails.database import Base

TRIP_STATUS_ONGOING = "ongoing"
TRIP_STATUS_ENDED = "ended"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    hashed_password = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default="driver")  # admin, supervisor, driver
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    audit_logs = relationship("AuditLog", back_populates="user")
    driver = relationship("Driver")

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


class AuditLog(Base):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_created", "created_at"),
        Index("ix_audit_entity", "entity_type", "entity_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    username = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)  # create, update, end, delete, login, assign
    entity_type = Column(String(50), nullable=True)  # trip, assignment, user
    entity_id = Column(Integer, nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="audit_logs")

    def __repr__(self):
        return f"<Audit {self.action} by {self.username} at {self.created_at}>"


class Plant(Base):
    __tablename__ = "plants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)

    vehicles = relationship("Vehicle", back_populates="plant")

    def __repr__(self):
        return f"<Plant {self.name}>"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_no = Column(String(50), unique=True, nullable=False, index=True)
    plant_id = Column(Integer, ForeignKey("plants.id", ondelete="RESTRICT"), nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    plant = relationship("Plant", back_populates="vehicles")
    trips = relationship("Trip", back_populates="vehicle")

    def __repr__(self):
        return f"<Vehicle {self.vehicle_no}>"


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default="driver")  # driver, helper, supervisor
    active = Column(Boolean, default=True, nullable=False)
    plant_id = Column(Integer, ForeignKey("plants.id", ondelete="SET NULL"), nullable=True)  # current plant mirror

    def __repr__(self):
        return f"<Driver {self.id} - {self.name}>"


class Trip(Base):
    __tablename__ = "trips"
    __table_args__ = (
        # At most one ongoing trip per vehicle
        Index(
            "uq_trips_vehicle_ongoing", "vehicle_id",
            unique=True,
            sqlite_where=text("status = 'ongoing'"),
            postgresql_where=text("status = 'ongoing'"),
        ),
        Index("ix_trips_vehicle", "vehicle_id", "id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False)
    start_date = Column(Date, nullable=False)
    start_km = Column(Integer, nullable=False)
    end_date = Column(Date, nullable=True)
    end_km = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default=TRIP_STATUS_ONGOING)
    note = Column(Text, nullable=True)
    gps_lat = Column(Float, nullable=True)
    gps_lng = Column(Float, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow, nullable=True)
    ended_at = Column(DateTime, nullable=True)

    vehicle = relationship("Vehicle", back_populates="trips")

    def __repr__(self):
        return f"<Trip {self.id} vehicle={self.vehicle_id} {self.status}>"


class TripDriver(Base):
    __tablename__ = "trip_drivers"

    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="RESTRICT"), primary_key=True)


class TripHelper(Base):
    __tablename__ = "trip_helpers"

    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), primary_key=True)
    helper_id = Column(Integer, ForeignKey("drivers.id", ondelete="RESTRICT"), primary_key=True)


class TripCustomer(Base):
    __tablename__ = "trip_customers"
    __table_args__ = (
        Index("ix_trip_customers_trip", "trip_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    customer_name = Column(String(200), nullable=False)


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("driver_id", name="uq_assignments_driver"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    plant_id = Column(Integer, ForeignKey("plants.id", ondelete="SET NULL"), nullable=True)
    assigned_date = Column(Date, nullable=False)

    def __repr__(self):
        return f"<Assignment driver={self.driver_id} -> vehicle={self.vehicle_id}>"
