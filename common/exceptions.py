"""Error taxonomy shared by the settlement core.

Each class carries a ``user_message`` that is safe to show a buyer. The
exception text itself may hold operator detail and is only logged.
"""


class StorefrontError(Exception):
    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str = "", *, user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class AdmissionDenied(StorefrontError):
    """Not enough available stock to reserve the requested quantity."""

    user_message = "Not enough stock for one or more items."


class ValidationFailed(StorefrontError, ValueError):
    """Malformed input; nothing was mutated."""

    user_message = "Invalid request."

    def __init__(self, message: str = "", *, user_message: str | None = None):
        # Validation messages are written for the buyer
        super().__init__(message, user_message=user_message if user_message is not None else message or None)


class GatewayError(StorefrontError):
    """The payment processor failed or answered with something unusable."""

    user_message = "We could not process your payment. Please try again."


class ConsistencyViolation(StorefrontError):
    """Ledger and order state disagree; needs manual reconciliation."""


class NotificationReplay(StorefrontError):
    """A processor notification that was already handled."""
