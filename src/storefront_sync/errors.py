"""Exceptions raised synchronously by the storefront services.

Remote-mirror failures are never raised; they are reported through
`storefront_sync.mirror.sync.SyncResult` instead.
"""


class StorefrontError(Exception):
    """Base class for errors surfaced to callers."""


class ValidationError(StorefrontError):
    """A required field is missing or malformed; nothing was written."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


class DuplicateEmailError(ValidationError):
    def __init__(self, email: str) -> None:
        super().__init__("email", f"E-mail already registered: {email}")
        self.email = email


class UnknownStoreCodeError(ValidationError):
    def __init__(self, code: str) -> None:
        super().__init__("store_code", f"No storefront with code {code!r}")
        self.code = code


class AuthenticationError(StorefrontError):
    """Unknown e-mail or wrong password at sign-in."""


class NotFoundError(StorefrontError):
    """A record referenced by id does not exist in its collection."""
