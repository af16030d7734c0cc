"""Domain errors surfaced to callers as ``{success: false, error}`` envelopes.

Each error carries the HTTP status it maps to. Pool-provider failures use
``PoolApiError`` from the pool client instead.
"""


class DashboardError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class Unauthenticated(DashboardError):
    status_code = 401


class Forbidden(DashboardError):
    status_code = 403


class ValidationFailed(DashboardError):
    status_code = 400


class NotConfigured(DashboardError):
    """A tenant has no pool subaccount mapped to their user record."""

    status_code = 404


class ConfigurationError(DashboardError):
    """The service itself is missing configuration, e.g. the pool credential."""

    status_code = 500
