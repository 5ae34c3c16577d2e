class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ScheduleValidationError(AppError):
    """Raised when the term snapshot cannot be scheduled as given."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ScheduleLockedError(AppError):
    """Raised when another commit or clear holds the term lease."""
    def __init__(self, semester: str, year: int):
        super().__init__(
            f"A schedule commit for {semester} {year} is already in progress",
            status_code=409,
            details={"semester": semester, "year": year},
        )

class ScheduleRunCancelledError(AppError):
    """Raised when a run is cancelled before it finishes; nothing is written."""
    def __init__(self, semester: str, year: int):
        super().__init__(
            f"Schedule generation for {semester} {year} was cancelled",
            status_code=409,
            details={"semester": semester, "year": year},
        )

class SchedulePersistenceError(AppError):
    """Raised when committing a schedule fails; the transaction was rolled back."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=503, details={"retryable": True, **(details or {})})

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class ScheduleIntegrityError(AppError):
    """Raised when a generated schedule fails verification before it is written."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=500, details=details)
