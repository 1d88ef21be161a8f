"""
Typed errors raised by the disclosure and consent services.

Policy denials are never exceptions; these cover invalid input,
ineligible drivers and misuse of a negotiation.
"""


class DisclosureError(Exception):
    """Base class for all service errors."""


class InvalidRatingError(DisclosureError, ValueError):
    """Driver rating outside [0, 5]."""


class InvalidGrantError(DisclosureError, ValueError):
    """Malformed consent grant (expiry modes or category)."""


class IneligibleDriverError(DisclosureError):
    """
    Driver failed the consent-request eligibility gate.

    ``reason`` names the unmet criterion and is safe to show to the driver.
    """

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class NegotiationNotFoundError(DisclosureError, LookupError):
    """No negotiation matches the given identifier."""


class NegotiationAccessError(DisclosureError, PermissionError):
    """Caller is not the passenger the negotiation was addressed to."""


class InvalidNegotiationStateError(DisclosureError):
    """Negotiation cannot take the requested transition."""
