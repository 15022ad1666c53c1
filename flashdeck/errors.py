"""Exceptions raised by flashdeck."""


class FlashdeckError(Exception):
    """Base exception for all flashdeck errors."""
    pass


class InvalidQualityError(FlashdeckError, ValueError):
    """Raised when a review rating is outside the 0-5 scale."""
    pass


class CardImportError(FlashdeckError):
    """Raised when a card import file cannot be read or parsed."""
    pass
