"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class PatientNotFoundError(NotFoundException):
    """No persisted patient record resolves for an appointment's patient."""

    def __init__(self, message: str = "Patient record not found"):
        """Initialize with 404 status code."""
        super().__init__(message)


class InvalidTransitionError(AppException):
    """Queue transition rejected by status order or by the appointment time gate."""

    def __init__(self, message: str = "Invalid queue transition"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class DuplicateQueueEntryError(ConflictException):
    """A queue entry already exists for the appointment."""

    def __init__(self, message: str = "Queue entry already exists for this appointment"):
        """Initialize with 409 status code."""
        super().__init__(message)


class UpstreamUnavailableError(AppException):
    """A reader or store failed or did not answer in time."""

    def __init__(self, message: str = "Upstream service unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)
