"""Error taxonomy shared by the services and the API layer."""

from typing import Any


class ForkcastError(Exception):
    """Base error carrying the HTTP status and the message safe to return."""

    status_code = 500

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)


class RequestValidationFailed(ForkcastError):
    """Malformed or missing request input."""

    status_code = 400


class FeatureDisabledError(ForkcastError):
    """The requested capability is switched off."""

    status_code = 403

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"{feature} feature is disabled")


class VerificationFailedError(ForkcastError):
    """Human verification was missing, failed or scored too low."""

    status_code = 400


class UpstreamServiceError(ForkcastError):
    """A weather, geocoding or LLM provider failed or returned a bad payload."""

    status_code = 500


class RateLimitError(UpstreamServiceError):
    """The upstream provider rejected the call with a rate limit."""
