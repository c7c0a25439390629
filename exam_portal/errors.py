"""Domain exceptions raised by the services and mapped to HTTP responses in main.py."""


class ExamPortalError(Exception):
    """Base class; ``status_code`` is the HTTP status the error is reported with."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InternalError(ExamPortalError):
    status_code = 500


class ValidationError(ExamPortalError):
    status_code = 400
    default_message = "Invalid input"


# --- Authentication / authorisation ---


class AuthError(ExamPortalError):
    status_code = 401
    default_message = "Authentication required"


class TokenExpired(AuthError):
    default_message = "Token expired"


class TokenInvalid(AuthError):
    default_message = "Invalid token"


class IdentityNotFound(AuthError):
    default_message = "User not found"


class InvalidCredential(AuthError):
    default_message = "Incorrect password"


class Forbidden(ExamPortalError):
    status_code = 403
    default_message = "Access denied. Administrator permissions required."


# --- Policy violations ---


class PolicyViolation(ExamPortalError):
    status_code = 400
    default_message = "Operation not allowed"


class CredentialRequired(PolicyViolation):
    default_message = "Password required for administrator"


class DeadlinePassed(PolicyViolation):
    default_message = "The deadline for this exam has passed"


class AlreadyPassed(PolicyViolation):
    default_message = "You have already passed this exam"


class AttemptsExhausted(PolicyViolation):
    default_message = "You have used all attempts for this exam"


class TimeExpired(PolicyViolation):
    default_message = "The time for this exam has expired"


class InvalidAttempt(PolicyViolation):
    default_message = "Invalid or already finished attempt"


class NoQuestions(PolicyViolation):
    default_message = "This exam has no questions"


class NotPassed(PolicyViolation):
    default_message = "Certificates are only issued for passed exams"


class NotFound(ExamPortalError):
    status_code = 404
    default_message = "Not found"
