"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_USER_NOT_FOUND = "E_USER_NOT_FOUND"
    E_CONTENT_NOT_FOUND = "E_CONTENT_NOT_FOUND"
    E_DRAFT_NOT_FOUND = "E_DRAFT_NOT_FOUND"
    E_COMMENT_NOT_FOUND = "E_COMMENT_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_KIND = "E_INVALID_KIND"
    E_INVALID_MEDIA_TYPE = "E_INVALID_MEDIA_TYPE"
    E_INVALID_CONTENT_TYPE = "E_INVALID_CONTENT_TYPE"
    E_FILE_TOO_LARGE = "E_FILE_TOO_LARGE"
    E_SELF_FOLLOW = "E_SELF_FOLLOW"

    # Conflict errors (409)
    E_TOO_MANY_PENDING_UPLOADS = "E_TOO_MANY_PENDING_UPLOADS"
    E_UPLOAD_INCOMPLETE = "E_UPLOAD_INCOMPLETE"
    E_ALREADY_FOLLOWING = "E_ALREADY_FOLLOWING"
    E_NOT_FOLLOWING = "E_NOT_FOLLOWING"
    E_ALREADY_REPORTED = "E_ALREADY_REPORTED"
    E_POLL_EXPIRED = "E_POLL_EXPIRED"

    # Throttling (429)
    E_RATE_LIMITED = "E_RATE_LIMITED"

    # Server errors
    E_INTERNAL = "E_INTERNAL"  # 500
    E_STORAGE_MISSING = "E_STORAGE_MISSING"  # 500
    E_STORAGE_ERROR = "E_STORAGE_ERROR"  # 502


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_USER_NOT_FOUND: 404,
    ApiErrorCode.E_CONTENT_NOT_FOUND: 404,
    ApiErrorCode.E_DRAFT_NOT_FOUND: 404,
    ApiErrorCode.E_COMMENT_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_KIND: 400,
    ApiErrorCode.E_INVALID_MEDIA_TYPE: 400,
    ApiErrorCode.E_INVALID_CONTENT_TYPE: 400,
    ApiErrorCode.E_FILE_TOO_LARGE: 400,
    ApiErrorCode.E_SELF_FOLLOW: 400,
    ApiErrorCode.E_TOO_MANY_PENDING_UPLOADS: 409,
    ApiErrorCode.E_UPLOAD_INCOMPLETE: 409,
    ApiErrorCode.E_ALREADY_FOLLOWING: 409,
    ApiErrorCode.E_NOT_FOLLOWING: 409,
    ApiErrorCode.E_ALREADY_REPORTED: 409,
    ApiErrorCode.E_POLL_EXPIRED: 409,
    ApiErrorCode.E_RATE_LIMITED: 429,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_STORAGE_MISSING: 500,
    ApiErrorCode.E_STORAGE_ERROR: 502,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """Request conflicts with the current state of a resource."""

    def __init__(self, code: ApiErrorCode, message: str = "Conflict"):
        super().__init__(code, message)


class RateLimitedError(ApiError):
    """Caller exceeded a rate limit.

    Attributes:
        retry_after: Seconds until the current window resets.
    """

    def __init__(self, message: str, retry_after: int):
        super().__init__(ApiErrorCode.E_RATE_LIMITED, message)
        self.retry_after = retry_after
