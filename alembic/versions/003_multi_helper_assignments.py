"""Multi-helper trips, trip status, assignments and the one-ongoing-trip index

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "003"
down_revision = "002"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "trip_helpers",
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("helper_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("trip_id", "helper_id"),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["helper_id"], ["drivers.id"], ondelete="RESTRICT"),
    )
    op.execute("INSERT INTO trip_helpers (trip_id, helper_id) SELECT trip_id, helper_id FROM trip_helper")
    op.drop_table("trip_helper")

    # batch mode so SQLite can add the constraint-bearing columns
    with op.batch_alter_table("trips") as batch_op:
        batch_op.add_column(sa.Column("status", sa.String(20), nullable=False, server_default="ongoing"))
        batch_op.add_column(sa.Column("note", sa.Text(), nullable=True))
        batch_op.add_column(sa.Column("gps_lat", sa.Float(), nullable=True))
        batch_op.add_column(sa.Column("gps_lng", sa.Float(), nullable=True))
        batch_op.add_column(sa.Column("started_at", sa.DateTime(), nullable=True))
        batch_op.add_column(sa.Column("ended_at", sa.DateTime(), nullable=True))
    op.execute("UPDATE trips SET status = 'ended' WHERE end_km IS NOT NULL")

    op.create_index(
        "uq_trips_vehicle_ongoing", "trips", ["vehicle_id"],
        unique=True,
        sqlite_where=sa.text("status = 'ongoing'"),
        postgresql_where=sa.text("status = 'ongoing'"),
    )

    with op.batch_alter_table("drivers") as batch_op:
        batch_op.add_column(sa.Column("plant_id", sa.Integer(), nullable=True))
        batch_op.create_foreign_key("fk_drivers_plant", "plants", ["plant_id"], ["id"], ondelete="SET NULL")

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.Integer(), sa.ForeignKey("drivers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True),
        sa.Column("plant_id", sa.Integer(), sa.ForeignKey("plants.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assigned_date", sa.Date(), nullable=False),
        sa.UniqueConstraint("driver_id", name="uq_assignments_driver"),
    )


def downgrade():
    op.drop_table("assignments")
    with op.batch_alter_table("drivers") as batch_op:
        batch_op.drop_constraint("fk_drivers_plant", type_="foreignkey")
        batch_op.drop_column("plant_id")

    op.drop_index("uq_trips_vehicle_ongoing", table_name="trips")
    with op.batch_alter_table("trips") as batch_op:
        for column in ("ended_at", "started_at", "gps_lng", "gps_lat", "note", "status"):
            batch_op.drop_column(column)

    op.create_table(
        "trip_helper",
        sa.Column("trip_id", sa.Integer(), nullable=False),
        sa.Column("helper_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("trip_id", "helper_id"),
        sa.ForeignKeyConstraint(["trip_id"], ["trips.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["helper_id"], ["drivers.id"], ondelete="RESTRICT"),
    )
    op.execute(
        "INSERT INTO trip_helper (trip_id, helper_id) "
        "SELECT trip_id, MIN(helper_id) FROM trip_helpers GROUP BY trip_id"
    )
    op.drop_table("trip_helpers")
