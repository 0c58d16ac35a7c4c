"""Exceptions raised by the auth and account services; routes map them to HTTP responses."""


class AuthServiceError(Exception):
    """Base class carrying a user-facing message and the HTTP status it maps to."""

    status_code: int = 400

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class Unauthenticated(AuthServiceError):
    """No usable session token, or it names no known user. Never says which."""

    status_code = 401

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class InvalidCredentials(AuthServiceError):
    status_code = 401

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class AccountInactive(AuthServiceError):
    status_code = 403

    def __init__(self, message: str = "User is inactive") -> None:
        super().__init__(message)


class PermissionDenied(AuthServiceError):
    """Same message for every failed check; the required permission is not revealed."""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class InvariantViolation(AuthServiceError):
    """A user mutation would break the admin-safety rules (last admin, own role)."""

    status_code = 403


class BootstrapCompleted(AuthServiceError):
    status_code = 403

    def __init__(self, message: str = "Initial registration already completed") -> None:
        super().__init__(message)


class UserNotFound(AuthServiceError):
    status_code = 404

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class RoleNotFound(AuthServiceError):
    status_code = 400

    def __init__(self, message: str = "Role not found", status_code: int | None = None) -> None:
        super().__init__(message, status_code)


class NoFieldsToUpdate(AuthServiceError):
    status_code = 400

    def __init__(self, message: str = "No fields to update") -> None:
        super().__init__(message)


class UserAlreadyExists(AuthServiceError):
    status_code = 409

    def __init__(self, message: str = "User already exists") -> None:
        super().__init__(message)


class SeedFailure(Exception):
    """The RBAC seed pass failed and was rolled back; the service must not start."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)
