from typing import Optional


class AppError(Exception):
    """Error that the HTTP boundary translates into a ``{"msg": ...}`` response."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str = "Server error", *, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500


class AuthRequired(AppError):
    status_code = 401
    code = "auth_required"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class ValidationFailed(AppError):
    status_code = 400
    code = "validation"


class Conflict(AppError):
    status_code = 400
    code = "conflict"


class ProviderTimeout(AppError):
    code = "timeout"


class ProviderRejected(AppError):
    code = "provider_rejected"


class MediaFetchError(AppError):
    code = "media_fetch"


class TranscodeFailed(AppError):
    code = "transcode"


class NoSpeech(AppError):
    code = "no_speech"


class DependencyUnavailable(AppError):
    code = "dependency_unavailable"


class InternalError(AppError):
    code = "internal"
