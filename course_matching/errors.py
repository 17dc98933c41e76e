"""
Error taxonomy of the matching core.

Validation and conflict messages are shown to the end user verbatim.
Persistence errors carry a generic message; the detail only goes to the log.
"""

GENERIC_RETRY_MESSAGE = "Please try again later."


class MatchingError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MatchingError):
    status_code = 400


class ConflictError(MatchingError):
    status_code = 409


class NotFoundError(MatchingError):
    status_code = 404


class PersistenceError(MatchingError):
    status_code = 503

    def __init__(self, message: str = GENERIC_RETRY_MESSAGE):
        super().__init__(message)
