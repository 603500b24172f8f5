from fastapi import HTTPException


class ApiError(HTTPException):
    """An expected failure, rendered as ``{"success": false, "message": ...}``."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)


class ValidationError(ApiError):
    status_code = 400


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409
