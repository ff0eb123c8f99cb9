import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tripdetails.auth import hash_password
from tripdetails.config import DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USERNAME
from tripdetails.database import Base, SessionLocal, engine
from tripdetails.errors import TripError
from tripdetails.logging_config import setup_logging
from tripdetails.models import User
from tripdetails.routes import auth, driver_vehicle, meta, trips
from tripdetails.services.schema_probe import SchemaCapabilityProbe

setup_logging()
logger = logging.getLogger(__name__)

# Create tables (safe if already exist; Alembic handles migrations in production)
Base.metadata.create_all(bind=engine)


def create_default_admin():
    """Create default admin user on first startup."""
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.username == DEFAULT_ADMIN_USERNAME).first()
        if not existing:
            admin = User(
                username=DEFAULT_ADMIN_USERNAME,
                full_name="System Administrator",
                hashed_password=hash_password(DEFAULT_ADMIN_PASSWORD),
                role="admin",
            )
            db.add(admin)
            db.commit()
            logger.info("Created default admin user '%s'", DEFAULT_ADMIN_USERNAME)
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.capabilities = SchemaCapabilityProbe(engine).capabilities()
    create_default_admin()
    yield


app = FastAPI(title="TripDetails", version="1.0.0", lifespan=lifespan)


@app.exception_handler(TripError)
async def trip_error_handler(request: Request, exc: TripError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(auth.router)
app.include_router(trips.router)
app.include_router(driver_vehicle.router)
app.include_router(meta.router)
