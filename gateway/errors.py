"""Client-facing errors raised by the pipeline services.

Each error carries a stable ``code`` that is rendered to API callers as
``{"error": {"code": ..., "description": ...}}``.
"""

from typing import Optional


class GatewayError(Exception):
    status_code = 400
    code = "BAD_REQUEST_ERROR"

    def __init__(self, description: str, code: Optional[str] = None):
        super().__init__(description)
        self.description = description
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "description": self.description}}


class BadRequestError(GatewayError):
    status_code = 400
    code = "BAD_REQUEST_ERROR"


class NotFoundError(GatewayError):
    status_code = 404
    code = "NOT_FOUND_ERROR"


class AuthenticationError(GatewayError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"


class SettlementError(RuntimeError):
    """Raised by workers so the job queue retries the job."""
