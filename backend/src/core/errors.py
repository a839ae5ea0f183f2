class AppError(Exception):
    """Base error carrying the HTTP status the central handler responds with."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class PermissionDenied(AppError):
    status_code = 400


class UploadError(AppError):
    status_code = 500
