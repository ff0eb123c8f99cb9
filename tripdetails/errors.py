"""Error taxonomy for trip lifecycle operations.

Every failure surfaced by the lifecycle engine is a ``TripError`` carrying a
``kind`` and a human-readable message. Messages never include storage
internals; the original exception is chained and logged instead.
"""


class TripError(Exception):
    kind = "unexpected"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "kind": self.kind, "detail": self.message}


class ValidationError(TripError):
    """Missing or malformed input, raised before any write."""
    kind = "validation"
    status_code = 422

    def __init__(self, message: str, fields: dict | None = None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.fields:
            payload["fields"] = self.fields
        return payload


class NotFoundError(TripError):
    kind = "not_found"
    status_code = 404


class ConflictError(TripError):
    """An invariant would be violated: duplicate ongoing trip, odometer, state."""
    kind = "conflict"
    status_code = 409


class StorageError(TripError):
    kind = "storage"
    status_code = 500


class UnexpectedError(TripError):
    kind = "unexpected"
    status_code = 500
