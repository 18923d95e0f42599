"""Custom exceptions for SplitCheck."""


class SplitCheckError(Exception):
    """Base exception for all SplitCheck errors."""

    pass


class ConfigurationError(SplitCheckError):
    """Raised when configuration is invalid or missing."""

    pass


class LocaleStringsError(ConfigurationError):
    """Raised when a locale string bundle is missing required keys."""

    def __init__(self, missing: list[str], message: str | None = None):
        self.missing = missing
        super().__init__(
            message or f"Locale strings missing required keys: {', '.join(missing)}"
        )


class StoreError(SplitCheckError):
    """Base class for document store errors."""

    pass


class StoreWriteError(StoreError):
    """Raised when a partial update is rejected by the store."""

    pass


class DocumentNotFoundError(StoreError):
    """Raised when a check document does not exist."""

    def __init__(self, check_id: str, message: str | None = None):
        self.check_id = check_id
        super().__init__(message or f"Check {check_id} does not exist")


class DocumentRemovedError(StoreError):
    """Raised when a check document is deleted while it is being edited."""

    def __init__(self, check_id: str, message: str | None = None):
        self.check_id = check_id
        super().__init__(message or f"Check {check_id} was removed")


class PermissionDeniedError(StoreError):
    """Raised when the store refuses access to a check document."""

    pass
