"""Exceptions raised inside the payment core.

None of these leave `PaymentService.process()`; the orchestrator turns them
into outcome status + message.
"""


class ValidationError(ValueError):
    """Client-caused request problem. Never retried, never persisted."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(reason)
        self.field = field
        self.reason = reason


class PersistenceError(RuntimeError):
    """The payment store could not read or write a record."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation
