"""Request-scoped context handed to the trip lifecycle controller.

Bundles the database session, the authenticated identity and the schema
capability snapshot so nothing downstream reaches for globals. The
``transaction`` context manager is the single place where a unit of work is
committed or rolled back.
"""
import logging
from contextlib import contextmanager

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripdetails.auth import Identity, get_current_identity
from tripdetails.database import get_db
from tripdetails.errors import StorageError, TripError, UnexpectedError
from tripdetails.services.schema_probe import SchemaCapabilities

logger = logging.getLogger(__name__)


class TripContext:
    def __init__(self, db: Session, identity: Identity, caps: SchemaCapabilities):
        self.db = db
        self.identity = identity
        self.caps = caps

    @contextmanager
    def transaction(self):
        """Commit on success; roll back and raise a ``TripError`` on any failure."""
        try:
            yield self.db
            self.db.commit()
        except TripError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Storage failure; transaction rolled back")
            raise StorageError("Database error") from exc
        except Exception as exc:
            self.db.rollback()
            logger.exception("Unexpected failure; transaction rolled back")
            raise UnexpectedError("Unexpected server error") from exc


def get_capabilities(request: Request) -> SchemaCapabilities:
    return request.app.state.capabilities


def get_trip_context(
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    caps: SchemaCapabilities = Depends(get_capabilities),
) -> TripContext:
    return TripContext(db, identity, caps)
