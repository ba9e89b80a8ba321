"""Errors that abort a device lab run."""


class LabRunError(Exception):
    """Raised when a device lab run cannot complete.

    Carries a human-readable message and, where available, the last payload
    received from the server (a task snapshot or a raw response).
    """

    def __init__(self, message: str, payload: object | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.payload = payload

    def __str__(self) -> str:
        if self.payload is None:
            return self.message
        return f"{self.message}: {self.payload}"


class InvalidInputError(LabRunError):
    """Raised when local inputs are missing or unreadable."""


class ServerResponseError(LabRunError):
    """Raised when the server answers with an unusable response."""


class LabBusyError(LabRunError):
    """Raised when all lab devices stayed busy through every retry."""


class TaskFailedError(LabRunError):
    """Raised when the server reports the task as canceled or errored."""


class TaskTimeoutError(LabRunError):
    """Raised when the task did not finish within the timeout budget."""
