from typing import Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for errors that map onto a client-facing status code"""

    error_code = "error"

    def __init__(self, status_code: int, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class AuthenticationRequired(AppError):
    """Exception raised when no valid identity is attached to the request"""

    error_code = "authentication_required"

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"}
        )


class InvalidReactionType(AppError):
    error_code = "invalid_reaction_type"

    def __init__(self, reaction_type: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid reaction type '{reaction_type}'"
        )


class SelfFollowNotAllowed(AppError):
    error_code = "self_follow"

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot follow yourself"
        )


class InvalidUsername(AppError):
    error_code = "invalid_username"

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class InvalidSearchQuery(AppError):
    error_code = "invalid_search_query"

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class CheckinNotFound(AppError):
    """Exception raised when a check-in is missing or not visible to the caller"""

    error_code = "checkin_not_found"

    def __init__(self, checkin_id: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Check-in '{checkin_id}' not found"
        )


class FollowNotFound(AppError):
    error_code = "follow_not_found"

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Follow relationship not found"
        )


class AlreadyFollowing(AppError):
    error_code = "already_following"

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail="Already following this user"
        )


class UsernameTaken(AppError):
    error_code = "username_taken"

    def __init__(self, username: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Username '{username}' is already taken"
        )


class CheckinRateLimited(AppError):
    """Exception raised when a check-in is attempted inside the cooldown window"""

    error_code = "checkin_rate_limited"

    def __init__(self, cooldown_minutes: int, retry_after_seconds: int):
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Already checked in within the last {cooldown_minutes} minutes",
            headers={"Retry-After": str(retry_after_seconds)}
        )


class StorageUnavailable(AppError):
    """Exception raised when the object store cannot issue an upload slot"""

    error_code = "storage_unavailable"

    def __init__(self, detail: str = "Object storage unavailable"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class MissingParameter(AppError):
    error_code = "missing_parameter"

    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
