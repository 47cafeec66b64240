"""ElderEase exceptions."""


class ElderEaseError(Exception):
    """Base exception for ElderEase errors."""

    def __init__(self, message: str, original_error: Exception | None = None):
        """Initialize ElderEase error.

        Args:
            message: Error message, safe to show to the caller
            original_error: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class ValidationError(ElderEaseError):
    """Exception raised when caller input is incomplete or invalid."""

    pass


class InvalidTimeRangeError(ValidationError):
    """Exception raised when a time range cannot be parsed."""

    pass


class UnknownServiceError(ValidationError):
    """Exception raised when a service has no entry in the rate table."""

    pass


class NotFoundError(ElderEaseError):
    """Exception raised when a document does not exist."""

    pass


class NotAllowedError(ElderEaseError):
    """Exception raised when the actor may not perform the operation."""

    pass


class ConflictError(ElderEaseError):
    """Exception raised when the current state forbids the operation."""

    pass


class RequestAlreadyAssignedError(ConflictError):
    """Exception raised when another acceptance already won the request."""

    pass


class RequestNotPendingError(ConflictError):
    """Exception raised when a request left the pending state."""

    pass


class ScheduleConflictError(ConflictError):
    """Exception raised when a volunteer would be double-booked."""

    pass


class AssignmentStateError(ConflictError):
    """Exception raised when an assignment is not in the required status."""

    pass


class DuplicateRatingError(ConflictError):
    """Exception raised when an assignment is rated twice."""

    pass


class ChatbotError(ElderEaseError):
    """Base exception for chatbot relay errors."""

    pass


class ChatbotValidationError(ChatbotError):
    """Exception raised for an empty chatbot message."""

    pass


class ChatbotConfigurationError(ChatbotError):
    """Exception raised when no language-model credential is configured."""

    pass


class ChatbotUpstreamError(ChatbotError):
    """Exception raised when the completion call fails."""

    pass
