class AiraError(Exception):
    """Base class for errors raised by the budget intake core."""


class ConflictError(AiraError):
    pass


class ConversationClosedError(ConflictError):
    """The session token points at a conversation that was reset."""


class NotFoundError(AiraError):
    pass


class ValidationFailure(AiraError):
    pass


class SalaryFormatError(ValidationFailure, ValueError):
    pass


class PayloadNotFoundError(ValidationFailure):
    pass


class MalformedPayloadError(ValidationFailure):
    pass


class BudgetValidationError(ValidationFailure):
    pass


class UpstreamError(AiraError):
    """The model call failed after every retry attempt."""


class TransientUpstreamError(UpstreamError):
    """A single model call failed. Absorbed by the retry loop."""


class BudgetGenerationError(AiraError):
    """Budget generation failed; ``reply`` is the message to show the user."""

    def __init__(self, message: str, reply: str):
        super().__init__(message)
        self.reply = reply
