"""
Errors raised by the key rotation manager.

Network and timeout failures are not wrapped: they surface as the
`requests` exception that occurred.
"""


class KeyManagerError(Exception):
    """Base class for classified lookup failures."""


class NoCredentialsConfigured(KeyManagerError):
    """No MXToolbox API keys were configured."""

    def __init__(self, message: str = "No MXToolbox API keys configured"):
        super().__init__(message)


class AllCredentialsExhausted(KeyManagerError):
    """Every configured key is currently blocked."""

    def __init__(
        self,
        message: str = "All MXToolbox API keys are rate limited. Please wait before making more requests.",
    ):
        super().__init__(message)


class RateLimited(KeyManagerError):
    """Upstream answered 429 for the key in use."""

    def __init__(self, key_preview: str):
        self.key_preview = key_preview
        super().__init__(f"API key {key_preview} rate limited")


class InvalidCredential(KeyManagerError):
    """Upstream rejected the key (401)."""

    def __init__(self, key_preview: str):
        self.key_preview = key_preview
        super().__init__(f"Invalid API key: {key_preview}")


class InsufficientPermission(KeyManagerError):
    """Upstream refused the lookup for this key (403)."""

    def __init__(self, key_preview: str):
        self.key_preview = key_preview
        super().__init__(f"API key {key_preview} doesn't have permission for blacklist lookups")


class AllEndpointsFailed(KeyManagerError):
    """Every endpoint variant failed without a classifiable error."""

    def __init__(self, message: str = "All endpoints failed"):
        super().__init__(message)
