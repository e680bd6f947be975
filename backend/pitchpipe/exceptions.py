from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
import traceback
from .logger import logger


class PitchPipeError(Exception):
    """Base exception for the video pipeline and matcher"""
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(PitchPipeError):
    """Raised when a referenced user or video does not exist"""
    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND"):
        super().__init__(message, code, 404)


class JobNotFoundError(NotFoundError):
    """Raised when job is not found"""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} not found", "JOB_NOT_FOUND")


class InvalidJobStateError(PitchPipeError):
    """Raised when job is in invalid state for operation"""
    def __init__(self, job_id: str, current_state: str, expected_state: str):
        self.job_id = job_id
        self.current_state = current_state
        self.expected_state = expected_state
        super().__init__(
            f"Job {job_id} is in state '{current_state}', expected '{expected_state}'",
            "INVALID_JOB_STATE",
            409,
        )


class UpstreamFailureError(PitchPipeError):
    """Raised when the transcription or analysis provider fails or times out"""
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider} failed: {message}", "UPSTREAM_FAILURE", 502)


class StorageFailureError(PitchPipeError):
    """Raised when media storage operations fail"""
    def __init__(self, message: str = "Media storage operation failed"):
        super().__init__(message, "STORAGE_FAILURE", 502)


class ConflictError(PitchPipeError):
    """Raised when a connection request already exists for the pair"""
    def __init__(self, message: str = "Connection request already exists"):
        super().__init__(message, "CONFLICT", 409)


class InvalidArgumentError(PitchPipeError):
    """Raised on malformed requests; nothing is persisted"""
    def __init__(self, message: str):
        super().__init__(message, "INVALID_ARGUMENT", 400)


class EncodingFailureError(PitchPipeError):
    """Raised when ffmpeg cannot compress the input"""
    def __init__(self, message: str = "Video compression failed"):
        super().__init__(message, "ENCODING_FAILURE", 500)


class NotificationError(PitchPipeError):
    """Raised when the completion e-mail cannot be sent"""
    def __init__(self, message: str = "Notification delivery failed"):
        super().__init__(message, "NOTIFICATION_FAILED", 502)


async def pitchpipe_exception_handler(request: Request, exc: PitchPipeError):
    """Handle custom application exceptions"""
    logger.error(
        f"Application exception: {exc.code} - {exc.message}",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "request_path": request.url.path,
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": exc.message,
            "status_code": exc.status_code,
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions"""
    logger.warning(
        f"HTTP {exc.status_code}: {exc.detail}",
        extra={
            "http_status_code": exc.status_code,
            "http_detail": exc.detail,
            "request_path": request.url.path,
        }
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTP_ERROR",
            "message": exc.detail,
            "status_code": exc.status_code,
        }
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    logger.error(
        f"Unhandled exception: {type(exc).__name__} - {str(exc)}",
        extra={
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
            "request_path": request.url.path,
            "exc_traceback": traceback.format_exc(),
        }
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "INTERNAL_SERVER_ERROR",
            "message": "An internal error occurred. Please try again later.",
        }
    )
