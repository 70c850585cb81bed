"""Exception types shared across SellLink."""


class SellLinkError(Exception):
    """Base class for SellLink errors."""


class ListingValidationError(SellLinkError):
    """Wizard input that cannot be accepted (empty upload, empty label, ...)."""
