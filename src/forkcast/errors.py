# errors.py

class ForkcastError(Exception):
    """Base class for all forkcast errors."""
    pass


class ValidationError(ForkcastError):
    """Raised when a chat payload or user input is rejected before any network call."""
    def __init__(self, message: str, http_status: int = 400):
        super().__init__(message)
        self.message = message
        self.http_status = http_status


class UpstreamError(ForkcastError):
    """Raised when the completion API answers with a non-2xx status (after retries, if any)."""
    def __init__(self, message: str, status_code: int, attempts: int = 1, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.attempts = attempts
        self.body = body


class UpstreamTimeout(ForkcastError):
    """Raised when an upstream attempt exceeds its deadline."""
    def __init__(self, message: str, timeout_s: float):
        super().__init__(message)
        self.timeout_s = timeout_s


class SessionNotFound(ForkcastError):
    """Raised when a chat session id is not part of the local collection."""
    pass


class StorageError(ForkcastError):
    """Raised when the local session storage cannot be read or written."""
    pass
