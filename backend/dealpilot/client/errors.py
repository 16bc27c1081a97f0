from typing import Optional


class ConversationError(Exception):
    """Base class for failures of a single conversation turn."""


class TransportError(ConversationError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DealLookupError(ConversationError):
    pass


class InvalidTransitionError(ConversationError):
    pass
