class AppError(Exception):
    """Base error carrying the HTTP status it maps to."""

    status_code = 500

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self):
        body = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    status_code = 400


class InvalidArgument(ValidationError):
    pass


class Conflict(ValidationError):
    status_code = 409


class Unauthorized(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class StorageUnavailable(AppError):
    status_code = 500


class ExternalServiceDegraded(AppError):
    """An optional external dependency failed. Never surfaced to a client."""

    status_code = 502
