class CatalogError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(CatalogError):
    """Settings could not be loaded; the process cannot start."""


class ProviderError(CatalogError):
    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        status_code: int | None = None,
        raw: str | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.raw = raw


class FetchError(ProviderError):
    """Upstream answered with a non-success status or could not be reached."""


class ParseError(ProviderError):
    """Upstream payload did not have the expected shape."""


class TransactionError(CatalogError):
    """The plan replace transaction was rolled back."""


def describe_error(exc: BaseException) -> str:
    # Only our own messages are safe to hand back to callers.
    if isinstance(exc, CatalogError):
        return exc.message
    return f"Unexpected error: {type(exc).__name__}"


class UnauthorizedError(CatalogError):
    """A protected trigger was called without a valid sync key."""
