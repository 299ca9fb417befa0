"""Domain exceptions for GroomDesk."""


class IdentityError(Exception):
    """Raised when an access token cannot be turned into an Identity."""


class ImpersonationError(Exception):
    """
    Raised when an impersonation token cannot be redeemed.

    The message is shown to the operator as-is, so keep it short:
    "Invalid token", "Business not found", or the RPC's own message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)
