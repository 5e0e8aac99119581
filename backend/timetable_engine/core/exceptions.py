class AppError(Exception):
    """Base class for all engine exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when a schedule or ledger operation would break a scheduling invariant."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class GenerationTimeoutError(AppError):
    """Raised inside the search loops once the generation deadline has passed."""
    def __init__(self, elapsed_seconds: float, limit_seconds: float):
        super().__init__(
            f"No conflict-free solution found within {limit_seconds:g}s",
            status_code=504,
            details={"elapsed_seconds": round(elapsed_seconds, 3), "limit_seconds": limit_seconds},
        )
