# storefront/domain/errors.py


class StorefrontError(Exception):
    """Base class for every failure the storefront surfaces to a user."""


class NotFoundError(StorefrontError):
    """Unknown book code or order id."""


class ValidationError(StorefrontError):
    """Missing or invalid request fields, or an action attempted out of order."""


class NetworkError(StorefrontError):
    """Backend unreachable, timed out, or answered with a non-2xx status."""


class GenerationTimeoutError(StorefrontError):
    """Page generation did not finish within the polling window. Recoverable."""

    notice = "Generation is taking longer than expected. Please refresh the page."


class SignatureError(StorefrontError):
    """Webhook signature did not match the shared secret."""
