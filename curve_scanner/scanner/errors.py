class ScannerError(Exception):
    """Base for scanner failures."""


class InvalidEventError(ScannerError):
    """A single log is missing data it must carry; the event is skipped."""


class ScannerFatalError(ScannerError):
    """Reconnection attempts exhausted; the stream halts."""

    def __init__(self, message: str, attempts: int, last_error: BaseException | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
