# sis/schemas/results.py
"""Typed success/failure envelope returned by every service operation."""
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from ..core.exceptions import ErrorKind, SISException

T = TypeVar('T')


class ServiceFailure(BaseModel):
    kind: ErrorKind
    code: str
    message: str
    status_code: int = 400
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: SISException) -> "ServiceFailure":
        return cls(
            kind=exc.kind,
            code=exc.code,
            message=exc.message,
            status_code=exc.status_code,
            details=exc.details,
        )


class ServiceResult(BaseModel, Generic[T]):
    success: bool
    message: str = ""
    data: Optional[T] = None
    error: Optional[ServiceFailure] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "") -> "ServiceResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, exc: SISException) -> "ServiceResult":
        return cls(success=False, message=exc.message, error=ServiceFailure.from_exception(exc))

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None
