"""
Domain error taxonomy.

Every error carries a machine-readable ``kind`` and the HTTP status the API
layer answers with.
"""

from __future__ import annotations


class IDSyncroError(Exception):
    """Base exception for all IDSyncro errors."""

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(IDSyncroError):
    """Malformed or empty input."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(IDSyncroError):
    """Requested record does not exist."""

    kind = "not_found"
    status_code = 404


class CapacityExceededError(IDSyncroError):
    """A counter-based sequence scope has no numbers left."""

    kind = "capacity_exceeded"
    status_code = 409

    def __init__(self, artifact_type: str, year: str, limit: int) -> None:
        self.artifact_type = artifact_type
        self.year = year
        self.limit = limit
        super().__init__(
            f"Identifier capacity exhausted for {artifact_type} in year {year} "
            f"(maximum {limit})"
        )


class ConflictError(IDSyncroError):
    """An identifier collided with an existing one and retries ran out."""

    kind = "conflict"
    status_code = 409


class IntegrityError(IDSyncroError):
    """Stored record no longer matches its fingerprint or signature."""

    kind = "integrity_error"
    status_code = 409
