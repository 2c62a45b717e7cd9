"""Error taxonomy for the automation engine.

Every failure raised by the engine carries an ``ErrorKind`` tag chosen at the
point of failure. Control flow (retry, fallback, HTTP status) branches on the
kind, never on the message text.
"""

from enum import Enum


class ErrorKind(str, Enum):
    SESSION_INIT = "session_init"
    POOL_EXHAUSTED = "pool_exhausted"
    NAVIGATION = "navigation"
    STRUCTURE = "structure"
    BLOCKED = "blocked"
    EXHAUSTED = "exhausted"
    UPLOAD = "upload"
    DEADLINE = "deadline"


# Public messages returned in {"success": false, "error": ...} bodies
_PUBLIC_MESSAGES = {
    ErrorKind.BLOCKED: "Search blocked by CAPTCHA - try again later",
    ErrorKind.STRUCTURE: (
        "Failed to locate search field or results - "
        "page structure may have changed"
    ),
    ErrorKind.POOL_EXHAUSTED: "No browser capacity available, try again shortly",
    ErrorKind.DEADLINE: "Operation did not complete within the request deadline",
    ErrorKind.UPLOAD: "Failed to store captured artifact",
    ErrorKind.SESSION_INIT: "Browser initialization failed",
}


class AutomationError(Exception):
    """Base class for engine failures."""

    kind: ErrorKind = ErrorKind.NAVIGATION
    status_code: int = 500

    def __init__(self, message: str, provider: str | None = None):
        self.message = message
        self.provider = provider
        super().__init__(message)

    @property
    def public_message(self) -> str:
        return _PUBLIC_MESSAGES.get(self.kind, "Failed to perform search")


class SessionInitFailure(AutomationError):
    """The browser engine could not be launched. Fatal for the request."""

    kind = ErrorKind.SESSION_INIT


class BrowserPoolExhausted(AutomationError):
    """No lease slot became free before the admission timeout."""

    kind = ErrorKind.POOL_EXHAUSTED
    status_code = 503


class NavigationFailure(AutomationError):
    kind = ErrorKind.NAVIGATION


class StructureChanged(NavigationFailure):
    """An expected input or result selector never appeared."""

    kind = ErrorKind.STRUCTURE


class BlockDetected(AutomationError):
    kind = ErrorKind.BLOCKED
    status_code = 503


class RetriesExhausted(AutomationError):
    """The page stayed indeterminate for every attempt."""

    kind = ErrorKind.EXHAUSTED


class DeadlineExceeded(AutomationError):
    kind = ErrorKind.DEADLINE
    status_code = 504


class UploadFailure(AutomationError):
    kind = ErrorKind.UPLOAD


class AllProvidersExhausted(AutomationError):
    """Every provider in the chain failed; wraps the last underlying error."""

    def __init__(self, last_error: AutomationError, attempted: list[str]):
        self.last_error = last_error
        self.attempted = attempted
        self.kind = last_error.kind
        self.status_code = last_error.status_code
        super().__init__(
            f"All providers exhausted ({', '.join(attempted)}): {last_error.message}",
            provider=last_error.provider,
        )


class BadRequestError(Exception):
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
