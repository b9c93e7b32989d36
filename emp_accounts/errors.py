from __future__ import annotations


class AppError(Exception):
    """Base error for expected failures; rendered as ``{"error": message}``."""

    http_status = 400

    def __init__(self, message: str, *, http_status: int | None = None):
        super().__init__(message)
        self.message = message
        if http_status is not None:
            self.http_status = http_status


class AuthenticationError(AppError):
    http_status = 401

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class InvalidToken(AuthenticationError):
    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class ExpiredToken(AuthenticationError):
    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class MalformedToken(AuthenticationError):
    def __init__(self, message: str = "Invalid token - missing user or company"):
        super().__init__(message)


class SessionInvalid(AuthenticationError):
    def __init__(self, message: str = "Invalid token - user not found, disabled, or company mismatch"):
        super().__init__(message)


class AuthorizationDenied(AppError):
    http_status = 403

    def __init__(self, message: str = "Forbidden - insufficient permissions"):
        super().__init__(message)


class ResourceNotFound(AppError):
    http_status = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class BadRequest(AppError):
    http_status = 400


class InvalidRequest(AppError):
    """Malformed identifiers; raised before any permission lookup runs."""

    http_status = 422


class ConflictError(AppError):
    http_status = 409


class TenantRequired(AppError):
    http_status = 400

    def __init__(self, message: str = "comp_code required"):
        super().__init__(message)
