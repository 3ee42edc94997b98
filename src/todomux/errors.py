"""Error taxonomy shared by handlers, the store and the recovery middleware."""


class HTTPError(Exception):
    """An error that resolves to a JSON ``{"error": message}`` response."""

    status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(HTTPError):
    """Malformed or missing input."""

    status = 400


class AuthError(HTTPError):
    """Missing or incorrect credential."""

    status = 401


class NotFoundError(HTTPError):
    """Unknown or soft-deleted record."""

    status = 404


class StoreError(HTTPError):
    """Underlying persistence failure."""

    status = 500
