"""Error taxonomy shared by the pipeline, the services and the HTTP layer.

Every error carries the HTTP status the API answers with; the exception
handler in ``mini_cloudinary.main`` renders them as ``{"error": message}``.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class PayloadTooLarge(ValidationError):
    status_code = 413


class AuthError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class RemoteStoreError(AppError):
    """The blob store answered with a non-success status or was unreachable."""

    status_code = 502

    def __init__(self, message: str, key: str | None = None, status: int | None = None):
        super().__init__(message)
        self.key = key
        self.status = status


class RemoteWriteFailed(RemoteStoreError):
    pass


class RemoteReadNotFound(RemoteStoreError):
    pass


class RemoteReadFailed(RemoteStoreError):
    pass


class RemoteDeleteFailed(RemoteStoreError):
    pass


class TransformError(Exception):
    """Raised by the image transform; the pipeline turns it into a fallback."""


class PersistenceError(Exception):
    """The catalog snapshot could not be written."""
