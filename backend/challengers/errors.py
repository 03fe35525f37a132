"""Domain error kinds raised by the challenge engine.

Every error carries the HTTP status the API answers with; the services never
import FastAPI, the single exception handler in ``main`` does the mapping.
"""
from __future__ import annotations


class ChallengersError(Exception):
    status_code = 400
    code = "challengers_error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__doc__ or self.code)


class NotFound(ChallengersError):
    """Referenced entity does not exist."""
    status_code = 404
    code = "not_found"

    def __init__(self, entity: str, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        suffix = f" {entity_id}" if entity_id is not None else ""
        super().__init__(f"{entity}{suffix} not found")


class Unauthorized(ChallengersError):
    """Actor is not allowed to perform this operation."""
    status_code = 403
    code = "unauthorized"


class InvalidTransition(ChallengersError):
    """Operation is not allowed in the current state."""
    status_code = 409
    code = "invalid_transition"


class NotInProgress(InvalidTransition):
    """Challenge is not in progress."""
    code = "not_in_progress"


class NotParticipating(InvalidTransition):
    """User is not actively participating in this challenge."""
    code = "not_participating"


class CapacityExceeded(ChallengersError):
    """Capacity limit reached."""
    status_code = 409
    code = "capacity_exceeded"


class ChallengeFull(CapacityExceeded):
    """Challenge has reached its participant limit."""
    code = "challenge_full"


class QuotaExceeded(CapacityExceeded):
    """All photo checks for the current round were already submitted."""
    code = "quota_exceeded"


class AlreadyJoined(ChallengersError):
    """User already joined this challenge."""
    status_code = 409
    code = "already_joined"


class AlreadyReviewed(ChallengersError):
    """Photo check already carries the requested outcome."""
    status_code = 409
    code = "already_reviewed"


class JoinWindowClosed(ChallengersError):
    """Not enough days left in the current period to complete the required checks."""
    status_code = 409
    code = "join_window_closed"


class ParticipantsPresent(ChallengersError):
    """Challenge still has participants besides the host."""
    status_code = 409
    code = "participants_present"


class InvalidDateRange(ChallengersError):
    """End date must be after start date."""
    status_code = 422
    code = "invalid_date_range"


class InvalidUpload(ChallengersError):
    """Uploaded file is not a supported image."""
    status_code = 422
    code = "invalid_upload"


class StorageFailure(ChallengersError):
    """Asset store request failed."""
    status_code = 502
    code = "storage_failure"
