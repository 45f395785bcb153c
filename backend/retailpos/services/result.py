from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

NOT_FOUND = "NOT_FOUND"
VALIDATION = "VALIDATION"
CONFLICT = "CONFLICT"
INVALID_STATE = "INVALID_STATE"
FORBIDDEN = "FORBIDDEN"

HTTP_STATUS_BY_CODE = {
    NOT_FOUND: 404,
    VALIDATION: 400,
    CONFLICT: 409,
    INVALID_STATE: 409,
    FORBIDDEN: 403,
}


@dataclass(frozen=True)
class ServiceResult:
    """
    Outcome of a core operation (debt, shifts).

    Domain failures are values, not exceptions: callers branch on
    `success` and map `code` to a response.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None) -> "ServiceResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, error: str) -> "ServiceResult":
        return cls(success=False, error=error, code=code)

    @property
    def http_status(self) -> int:
        if self.success:
            return 200
        return HTTP_STATUS_BY_CODE.get(self.code, 400)
