from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    INVALID_INPUT = "INVALID_INPUT"
    NOT_INITIALIZED = "NOT_INITIALIZED"
    CREDENTIALS_INVALID = "CREDENTIALS_INVALID"
    AUTH_FAILED = "AUTH_FAILED"
    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    REFRESH_FAILED = "REFRESH_FAILED"
    ARTIFACT_NOT_FOUND = "ARTIFACT_NOT_FOUND"
    GENERATION_FAILED = "GENERATION_FAILED"


class SeoSyncError(Exception):
    """Raised for all expected failure conditions of the sync workflow.

    Caught by the HTTP layer (server.py) and the CLI and serialised into the
    ``{"success": false, ...}`` envelope or a non-zero exit code. Business
    logic should let it propagate rather than catching it.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        step: str | None = None,
        status_code: int | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.step = step
        self.status_code = status_code
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        error: dict = {
            "code": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
        }
        if self.step is not None:
            error["step"] = self.step
        if self.status_code is not None:
            error["status_code"] = self.status_code
        return error
