"""
Error taxonomy for the hangout core.

Services raise these exactly where they would raise ``HTTPException``; the
status code travels with the class so routers never translate errors by hand.
"""

from typing import Optional

from fastapi import HTTPException


class HangoutError(HTTPException):
    """Base class carrying a default status code and message"""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFound(HangoutError):
    status_code = 404
    default_detail = "Not found"


class BadRequest(HangoutError):
    status_code = 400
    default_detail = "Bad request"


class Forbidden(HangoutError):
    status_code = 403
    default_detail = "Access denied"


class Conflict(HangoutError):
    status_code = 409
    default_detail = "Conflict"


class Internal(HangoutError):
    status_code = 500
    default_detail = "Internal server error"
