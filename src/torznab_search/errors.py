"""Application error hierarchy.

Errors carry a machine-readable ``code`` and an HTTP-style ``status_code``
so a route handler can map them to a response without inspecting messages.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class APIError(AppError):
    """Error talking to an external API (transport failure, bad status, timeout)."""

    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message, "API_ERROR", status_code)


class ValidationError(AppError):
    """Invalid input supplied by the caller."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "VALIDATION_ERROR", 400)


class ConfigurationError(AppError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", 500)

