"""Custom exception types for domain and API layers."""


class AppError(Exception):
    """Base app exception."""


class ValidationError(AppError):
    """Business-rule violation reported back to the caller."""

    @property
    def message(self) -> str:
        return str(self)
