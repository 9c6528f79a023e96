class PrintAgentError(Exception):
    """Base error for the print pipeline. Carries the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PrintAgentError):
    status_code = 400


class AuthorizationError(PrintAgentError):
    status_code = 401


class NotFoundError(PrintAgentError):
    status_code = 404


class OperationalError(PrintAgentError):
    status_code = 500


class RenderTimeoutError(OperationalError):
    pass
