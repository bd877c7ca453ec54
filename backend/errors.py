"""Error taxonomy shared by the classifier, provider and bookmark layers."""

from __future__ import annotations


class SorterError(Exception):
    """Base class for all errors raised by the bookmark sorter."""


class PreconditionError(SorterError):
    """Raised when a required input such as the API key is missing."""


class StoreError(SorterError):
    """Raised when a bookmark store operation fails."""


class UnknownNodeError(StoreError):
    """Raised when a bookmark store id does not exist."""


class ClassificationError(SorterError):
    """Base class for failures while talking to an inference provider."""


class ProviderAPIError(ClassificationError):
    """The provider answered with an HTTP error status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthError(ProviderAPIError):
    pass


class ProviderPermissionError(ProviderAPIError):
    pass


class ModelNotFoundError(ProviderAPIError):
    pass


class RateLimitError(ProviderAPIError):
    pass


class NoFallbackModelError(ClassificationError):
    """Raised when the model discovery yields no replacement model."""


class TransportError(ClassificationError):
    """Raised for timeouts and connection failures."""


class TokenExchangeError(ClassificationError):
    """Raised when the GitHub Copilot session token cannot be obtained."""


class ResponseFormatError(ClassificationError):
    """Raised when the model output is not the expected JSON document."""
