"""
Shared result types for the service layer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ResultStatus(Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    `NOT_FOUND` is an expected empty state (data is None, error is None);
    `FAILED` carries the error message of the operation that went wrong.
    """

    data: Optional[T] = None
    error: Optional[str] = None
    status: ResultStatus = ResultStatus.OK

    @classmethod
    def ok(cls, data: Any) -> "ServiceResult":
        return cls(data=data)

    @classmethod
    def not_found(cls) -> "ServiceResult":
        return cls(status=ResultStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: str, data: Any = None) -> "ServiceResult":
        return cls(data=data, error=error, status=ResultStatus.FAILED)

    @property
    def is_ok(self) -> bool:
        return self.status == ResultStatus.OK

    @property
    def is_not_found(self) -> bool:
        return self.status == ResultStatus.NOT_FOUND

    @property
    def is_failed(self) -> bool:
        return self.status == ResultStatus.FAILED
